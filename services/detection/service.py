"""Caller-facing boundary for photo-based disease detection.

``DetectionService.detect`` is the only place where pipeline exceptions turn
into HTTP-style responses. Everything below it raises.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Mapping

from core.logging import logger as LOGGER
from core.rate_limiting import FixedWindowRateLimiter, RateLimiter
from imaging.buffers import ImageBuffer, ImageDecodeError, decode_image, decode_payload
from imaging.compression import CompressedImage, CompressionOptions, compress_image
from imaging.quality import QualityReport, QualityThresholds, evaluate
from imaging.sharpen import PREPROCESS_OPTIONS, preprocess_for_detection
from services.detection.classifier import (
    DEFAULT_TEMPERATURE,
    Classifier,
    build_classifier_or_null,
    build_instructions,
    load_system_instructions,
)
from services.detection.errors import DetectionError, InvalidInputError
from services.detection.models import DetectionOutcome, DetectionRequest, DetectionResponse
from services.detection.orchestrator import RequestOrchestrator, utc_timestamp
from services.detection.validation import fallback_result


DEFAULT_SURFACE = "detect_disease"
DEFAULT_MAX_IMAGE_BYTES = 6 * 1024 * 1024
SURFACE_MIN_IMAGE_BYTES: dict[str, int] = {
    "detect_disease": 5000,
    "vision_detect": 10 * 1024,
}
QUALITY_ABORT_REASON = "Image quality too low for analysis"


def caller_key_from_headers(headers: Mapping[str, str] | None, default: str = "unknown") -> str:
    """Return the first ``X-Forwarded-For`` entry, matched case-insensitively."""

    for name, value in (headers or {}).items():
        if str(name).lower() == "x-forwarded-for" and value:
            first = str(value).split(",")[0].strip()
            if first:
                return first
    return default


def _error_response(exc: DetectionError) -> DetectionResponse:
    headers: dict[str, str] = {}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return DetectionResponse(status=exc.status, body=exc.to_payload(), headers=headers)


class DetectionService:
    """Validate, prepare, gate and classify one photo per call."""

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        *,
        surface: str = DEFAULT_SURFACE,
        min_image_bytes: int | None = None,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        sharpen: bool = True,
        compression: CompressionOptions | None = None,
        quality_gate: bool = True,
        thresholds: QualityThresholds | None = None,
        system_instructions: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        self._orchestrator = orchestrator
        self._surface = surface
        if min_image_bytes is None:
            min_image_bytes = SURFACE_MIN_IMAGE_BYTES.get(surface, 0)
        self._min_image_bytes = max(0, int(min_image_bytes))
        self._max_image_bytes = int(max_image_bytes)
        self._sharpen = sharpen
        self._compression = compression or (PREPROCESS_OPTIONS if sharpen else CompressionOptions())
        self._quality_gate = quality_gate
        self._thresholds = thresholds or QualityThresholds()
        self._system_instructions = system_instructions
        self._temperature = float(temperature)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        surface: str = DEFAULT_SURFACE,
        *,
        classifier: Classifier | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> "DetectionService":
        """Wire the full pipeline for ``surface`` from a config mapping."""

        classifier = classifier or build_classifier_or_null(config)
        rate_limiter = rate_limiter or FixedWindowRateLimiter.from_config(config, surface)
        orchestrator = RequestOrchestrator.from_config(config, classifier, rate_limiter)

        surface_cfg = ((config.get("rate_limit") or {}).get("surfaces") or {}).get(surface) or {}
        compression_cfg = config.get("compression") or {}
        preprocess_cfg = config.get("preprocess") or {}
        sharpen = bool(preprocess_cfg.get("enabled", True))
        if sharpen:
            # The byte budget comes from the compression section unless preprocess overrides it.
            budget = compression_cfg.get("max_size_kb", PREPROCESS_OPTIONS.max_size_kb)
            compression = CompressionOptions.from_config(
                {**dataclasses.asdict(PREPROCESS_OPTIONS), "max_size_kb": budget, **preprocess_cfg}
            )
        else:
            compression = CompressionOptions.from_config(compression_cfg)
        gate_cfg = config.get("quality_gate") or {}
        classifier_cfg = config.get("classifier") or {}

        return cls(
            orchestrator,
            surface=surface,
            min_image_bytes=surface_cfg.get("min_image_bytes"),
            max_image_bytes=int(surface_cfg.get("max_image_bytes", DEFAULT_MAX_IMAGE_BYTES)),
            sharpen=sharpen,
            compression=compression,
            quality_gate=bool(gate_cfg.get("enabled", True)),
            thresholds=QualityThresholds.from_config(config),
            temperature=float(classifier_cfg.get("temperature", DEFAULT_TEMPERATURE)),
        )

    @property
    def surface(self) -> str:
        return self._surface

    async def detect(self, request: DetectionRequest) -> DetectionResponse:
        """Run the pipeline and always answer with a ``DetectionResponse``."""

        timestamp = utc_timestamp()
        tag = f"[Detect:{request.request_id}]"
        try:
            return await self._detect(request, timestamp)
        except DetectionError as exc:
            LOGGER.warning("%s %s: %s", tag, exc.code, exc.message)
            return _error_response(exc)
        except Exception as exc:
            LOGGER.exception("%s unexpected failure: %s", tag, exc)
            body = fallback_result("Unexpected error", timestamp).to_payload()
            body.update({"error": "Failed to analyze image", "errorCode": "INTERNAL_ERROR"})
            return DetectionResponse(status=500, body=body)

    def check_quality(self, image: ImageBuffer | bytes | str) -> QualityReport:
        """Quality-gate a photo without classifying it."""

        return evaluate(image, self._thresholds)

    async def _detect(self, request: DetectionRequest, timestamp: str) -> DetectionResponse:
        encoded = self._validated_payload(request.image)
        try:
            source = decode_image(encoded)
        except ImageDecodeError as exc:
            raise InvalidInputError(
                "Could not read the image. Please upload a valid photo.", code="INVALID_IMAGE"
            ) from exc

        if self._quality_gate:
            report = evaluate(source, self._thresholds)
            if not report.is_valid:
                LOGGER.info(
                    "[Detect:%s] quality gate rejected photo (score=%s)",
                    request.request_id,
                    report.score,
                )
                outcome = DetectionOutcome.degraded_with(
                    fallback_result(QUALITY_ABORT_REASON, timestamp), QUALITY_ABORT_REASON
                )
                return self._outcome_response(outcome, quality=report)

        try:
            prepared = self._prepare(source)
        except ImageDecodeError as exc:
            raise InvalidInputError(
                "Could not process the image. Please upload a regular photo.", code="INVALID_IMAGE"
            ) from exc
        instructions = build_instructions(
            request.language,
            system=self._system(),
            temperature=self._temperature,
        )
        outcome = await self._orchestrator.run(
            request, prepared.data, instructions, timestamp=timestamp
        )
        return self._outcome_response(outcome)

    def _validated_payload(self, image: bytes | str | None) -> bytes:
        if image is None or (isinstance(image, (str, bytes)) and not image):
            raise InvalidInputError("Image data is required")
        if isinstance(image, str) and len(image) > self._max_image_bytes:
            raise InvalidInputError(
                "Image is too large. Please use a smaller image.", code="IMAGE_TOO_LARGE"
            )
        try:
            encoded = decode_payload(image)
        except ImageDecodeError as exc:
            raise InvalidInputError(
                "Could not read the image. Please upload a valid photo.", code="INVALID_IMAGE"
            ) from exc
        if len(encoded) > self._max_image_bytes:
            raise InvalidInputError(
                "Image is too large. Please use a smaller image.", code="IMAGE_TOO_LARGE"
            )
        if len(encoded) < self._min_image_bytes:
            raise InvalidInputError(
                "Image is too small or corrupted. Please take a clearer photo.",
                code="INVALID_IMAGE",
            )
        return encoded

    def _prepare(self, source: ImageBuffer) -> CompressedImage:
        if self._sharpen:
            return preprocess_for_detection(source, self._compression)
        return compress_image(source, self._compression)

    def _system(self) -> str:
        if self._system_instructions is None:
            self._system_instructions = load_system_instructions()
        return self._system_instructions

    def _outcome_response(
        self,
        outcome: DetectionOutcome,
        *,
        quality: QualityReport | None = None,
    ) -> DetectionResponse:
        body = outcome.result.to_payload()
        if outcome.degraded:
            body["degraded"] = True
            body["reason"] = outcome.reason
        if quality is not None:
            body["quality"] = quality.to_payload()
        return DetectionResponse(status=200, body=body)

