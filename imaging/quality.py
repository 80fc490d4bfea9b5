"""Quality gate turning pixel metrics into an actionable report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from core.logging import logger
from imaging.buffers import ImageBuffer, ImageDecodeError, ensure_buffer
from imaging.metrics import SAMPLE_SIZE, measure


MAX_SCORE = 100
MIN_SCORE = 0


@dataclass(frozen=True)
class QualityThresholds:
    """Thresholds and penalties for the quality gate."""

    min_brightness: float = 30.0
    max_brightness: float = 220.0
    min_contrast: float = 20.0
    min_sharpness: float = 15.0
    min_resolution: int = 400
    min_quality_score: int = 40
    dark_penalty: int = 25
    overexposed_penalty: int = 20
    low_contrast_penalty: int = 20
    blurry_penalty: int = 30
    low_resolution_penalty: int = 15

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "QualityThresholds":
        gate_cfg = config.get("quality_gate") or {}
        thresholds_cfg = gate_cfg.get("thresholds") or {}
        defaults = cls()
        return cls(
            min_brightness=float(thresholds_cfg.get("min_brightness", defaults.min_brightness)),
            max_brightness=float(thresholds_cfg.get("max_brightness", defaults.max_brightness)),
            min_contrast=float(thresholds_cfg.get("min_contrast", defaults.min_contrast)),
            min_sharpness=float(thresholds_cfg.get("min_sharpness", defaults.min_sharpness)),
            min_resolution=int(thresholds_cfg.get("min_resolution", defaults.min_resolution)),
            min_quality_score=int(
                thresholds_cfg.get("min_quality_score", defaults.min_quality_score)
            ),
        )


@dataclass(frozen=True)
class QualityReport:
    """Outcome of the quality gate for one submitted image."""

    is_valid: bool
    score: int
    issues: tuple[str, ...] = field(default_factory=tuple)
    recommendations: tuple[str, ...] = field(default_factory=tuple)
    brightness: float = 0.0
    contrast: float = 0.0
    sharpness: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "score": self.score,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "brightness": self.brightness,
            "contrast": self.contrast,
            "sharpness": self.sharpness,
        }


def default_report(issue: str) -> QualityReport:
    """Report returned when an image cannot be analysed at all."""

    return QualityReport(is_valid=False, score=MIN_SCORE, issues=(issue,))


def evaluate(
    image: ImageBuffer | bytes | str,
    thresholds: QualityThresholds | None = None,
    *,
    sample_size: int = SAMPLE_SIZE,
) -> QualityReport:
    """Score an image's fitness for classification.

    Each rule applies its penalty independently. Decoding failures produce a
    zero-score report instead of an exception.

    Args:
        image: Decoded buffer, encoded bytes or a data URI / base64 string.
        thresholds: Optional threshold overrides.
        sample_size: Side of the centered square used for pixel metrics.

    Returns:
        The quality report.
    """

    thresholds = thresholds or QualityThresholds()
    try:
        buffer = ensure_buffer(image)
    except ImageDecodeError as exc:
        logger.warning("[Quality] image could not be decoded: %s", exc)
        return default_report("Failed to load image")

    if buffer.width == 0 or buffer.height == 0:
        return default_report("Could not analyze image")

    metrics = measure(buffer, sample_size)
    issues: list[str] = []
    recommendations: list[str] = []
    score = MAX_SCORE

    if metrics.brightness < thresholds.min_brightness:
        issues.append("too dark")
        recommendations.append("Move to a well-lit area or use flash")
        score -= thresholds.dark_penalty
    if metrics.brightness > thresholds.max_brightness:
        issues.append("overexposed")
        recommendations.append("Reduce lighting or avoid direct sunlight")
        score -= thresholds.overexposed_penalty
    if metrics.contrast < thresholds.min_contrast:
        issues.append("low contrast")
        recommendations.append("Make sure the affected area is clearly visible")
        score -= thresholds.low_contrast_penalty
    if metrics.sharpness < thresholds.min_sharpness:
        issues.append("blurry")
        recommendations.append("Hold the camera steady and tap to focus")
        score -= thresholds.blurry_penalty
    if min(buffer.width, buffer.height) < thresholds.min_resolution:
        issues.append("low resolution")
        recommendations.append("Move closer to the plant or use a higher resolution")
        score -= thresholds.low_resolution_penalty

    score = max(MIN_SCORE, min(MAX_SCORE, score))
    report = QualityReport(
        is_valid=score >= thresholds.min_quality_score,
        score=score,
        issues=tuple(issues),
        recommendations=tuple(recommendations),
        brightness=round(metrics.brightness, 2),
        contrast=round(metrics.contrast, 2),
        sharpness=round(metrics.sharpness, 2),
    )
    logger.info(
        "[Quality] %sx%s score=%s valid=%s issues=%s",
        buffer.width,
        buffer.height,
        report.score,
        report.is_valid,
        ",".join(report.issues) or "none",
    )
    return report
