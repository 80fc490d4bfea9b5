"""Defensive parsing and normalization of classifier output.

Classifier text is partially trusted: it may wrap the record in prose or code
fences, omit fields, or send the wrong types. ``ResponseValidator.parse``
always returns a complete ``DetectionResult`` and reports through the outcome
kind whether it had to fall back.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Mapping

from core.logging import clip_for_log, logger
from services.detection import localization
from services.detection.models import (
    ACTION_URGENCIES,
    MAX_CONFIDENCE,
    MEDIUM_CONFIDENCE_THRESHOLD,
    SEVERITIES,
    SUPPORTED_LANGUAGES,
    DetectionOutcome,
    DetectionResult,
)


DEFAULT_CONFIDENCE = 50
DEFAULT_CROP = "Unknown Crop"
DEFAULT_ISSUE = "Unable to Determine"
DEFAULT_CATEGORY = "disease"
DEFAULT_SEVERITY = "Medium"
DEFAULT_URGENCY = "within_week"
MAX_LABEL_CHARS = 120
MAX_TEXT_CHARS = 1200

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _strip_html(text: str) -> str:
    return re.sub(r"<[^>]+>", "", text).strip()


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}…"


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_object_span(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, ignoring braces inside strings.

    When the braces never balance, the greedy span from the first ``{`` to
    the last ``}`` is returned so that ``json`` can report the real error.
    """

    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    end = text.rfind("}")
    if end > start:
        return text[start : end + 1]
    return None


def normalize_confidence(value: Any) -> int:
    """Coerce an upstream confidence into ``[0, MAX_CONFIDENCE]``.

    Missing, non-numeric and negative values become ``DEFAULT_CONFIDENCE``.
    Strings are read like ``"85%"`` -> 85.
    """

    number: int | None = None
    if isinstance(value, bool) or value is None:
        number = None
    elif isinstance(value, int):
        number = value
    elif isinstance(value, float):
        number = int(value) if math.isfinite(value) else None
    elif isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        number = int(match.group(1)) if match else None

    if number is None or number < 0:
        return DEFAULT_CONFIDENCE
    return min(number, MAX_CONFIDENCE)


def _first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _label(value: Any, default: str) -> str:
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        return default
    text = _strip_html(str(value))
    return _clip(text, MAX_LABEL_CHARS) if text else default


def _severity(value: Any) -> str:
    if isinstance(value, str):
        lowered = value.strip().lower()
        for severity in SEVERITIES:
            if severity.lower() == lowered:
                return severity
    return DEFAULT_SEVERITY


def _urgency(value: Any) -> str:
    if isinstance(value, str):
        lowered = value.strip().lower().replace(" ", "_")
        if lowered in ACTION_URGENCIES:
            return lowered
    return DEFAULT_URGENCY


def multilingual(value: Any, default: Mapping[str, str]) -> dict[str, str]:
    """Return ``value`` as a complete language map, or ``default`` wholesale.

    A map missing any supported language counts as invalid, the same as a
    missing field; individual languages are never patched in.
    """

    if not isinstance(value, Mapping):
        return dict(default)
    normalized: dict[str, str] = {}
    for key, text in value.items():
        lang = localization.LANGUAGE_ALIASES.get(str(key).strip().lower())
        if lang is None or not isinstance(text, str):
            continue
        cleaned = _strip_html(text)
        if cleaned and lang not in normalized:
            normalized[lang] = _clip(cleaned, MAX_TEXT_CHARS)
    if any(lang not in normalized for lang in SUPPORTED_LANGUAGES):
        return dict(default)
    return {lang: normalized[lang] for lang in SUPPORTED_LANGUAGES}


def fallback_result(reason: str, timestamp: str) -> DetectionResult:
    """Zero-confidence result steering the user toward a better photo."""

    return DetectionResult(
        crop="Unknown",
        issue="Detection Incomplete",
        category="unknown",
        severity="Low",
        confidence=0,
        description=localization.fallback_description(reason),
        solutions=dict(localization.FALLBACK_SOLUTIONS),
        prevention=dict(localization.FALLBACK_PREVENTION),
        tts_script=dict(localization.FALLBACK_TTS),
        action_urgency="routine",
        expert_consultation_recommended=True,
        timestamp=timestamp,
    )


class ResponseValidator:
    """Turn raw classifier text into a normalized ``DetectionResult``."""

    def __init__(self, *, expert_threshold: int = MEDIUM_CONFIDENCE_THRESHOLD) -> None:
        self._expert_threshold = int(expert_threshold)

    def validate(self, raw_text: str | None, timestamp: str) -> DetectionResult:
        return self.parse(raw_text, timestamp).result

    def parse(self, raw_text: str | None, timestamp: str) -> DetectionOutcome:
        payload = self._load_json_or_none(raw_text or "")
        if payload is None:
            logger.warning(
                "[Validate] unparseable classifier output: %s", clip_for_log(raw_text, 200)
            )
            reason = "Could not parse the analysis response"
            return DetectionOutcome.degraded_with(fallback_result(reason, timestamp), reason)
        return DetectionOutcome.success(self.build_result(payload, timestamp))

    def build_result(self, payload: Mapping[str, Any], timestamp: str) -> DetectionResult:
        crop = _label(payload.get("crop"), DEFAULT_CROP)
        issue = _label(_first_present(payload, "issue", "disease"), DEFAULT_ISSUE)
        category = _label(payload.get("category"), DEFAULT_CATEGORY).lower()
        confidence = normalize_confidence(payload.get("confidence"))

        expert = _first_present(
            payload,
            "expert_consultation_recommended",
            "expertConsultationRecommended",
            "expert_consultation",
        )
        below_threshold = confidence < self._expert_threshold
        if not isinstance(expert, bool):
            expert = below_threshold
        expert = expert or below_threshold

        return DetectionResult(
            crop=crop,
            issue=issue,
            category=category,
            severity=_severity(payload.get("severity")),
            confidence=confidence,
            description=multilingual(payload.get("description"), localization.DEFAULT_DESCRIPTION),
            solutions=multilingual(payload.get("solutions"), localization.DEFAULT_SOLUTIONS),
            prevention=multilingual(
                _first_present(payload, "prevention", "preventive_tips"),
                localization.DEFAULT_PREVENTION,
            ),
            tts_script=multilingual(
                _first_present(payload, "tts", "tts_script", "ttsScript"),
                localization.default_tts(crop, issue),
            ),
            action_urgency=_urgency(_first_present(payload, "action_urgency", "actionUrgency")),
            expert_consultation_recommended=expert,
            timestamp=timestamp,
        )

    def _load_json_or_none(self, text: str) -> dict[str, Any] | None:
        span = extract_object_span(strip_code_fences(text))
        if span is None:
            return None
        try:
            value = json.loads(span)
        except (ValueError, RecursionError):
            return None
        return value if isinstance(value, dict) else None
