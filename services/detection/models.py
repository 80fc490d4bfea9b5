"""Data models for detection requests, results and outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping
import uuid

from services.detection.localization import LANGUAGE_ALIASES


SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "hi", "kn")
DEFAULT_LANGUAGE = "en"
SEVERITIES: tuple[str, ...] = ("Low", "Medium", "High")
ACTION_URGENCIES: tuple[str, ...] = ("immediate", "within_3_days", "within_week", "routine")
MEDIUM_CONFIDENCE_THRESHOLD = 70
HIGH_CONFIDENCE_THRESHOLD = 85
MAX_CONFIDENCE = 99


def normalize_language(language_hint: str | None) -> str:
    """Map a caller language hint onto the supported set."""

    candidate = LANGUAGE_ALIASES.get(str(language_hint or "").strip().lower())
    return candidate if candidate in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class DetectionRequest:
    """One inbound detection call."""

    image: bytes | str | None
    language_hint: str = DEFAULT_LANGUAGE
    caller_key: str = "unknown"
    request_id: str = field(default_factory=new_request_id)

    @property
    def language(self) -> str:
        return normalize_language(self.language_hint)


@dataclass(frozen=True)
class DetectionResult:
    """Structured, confidence-scored diagnosis for one photo.

    Multilingual fields map language codes to text and always contain every
    entry of ``SUPPORTED_LANGUAGES``.
    """

    crop: str
    issue: str
    category: str
    severity: str
    confidence: int
    description: Mapping[str, str]
    solutions: Mapping[str, str]
    prevention: Mapping[str, str]
    tts_script: Mapping[str, str]
    action_urgency: str
    expert_consultation_recommended: bool
    timestamp: str

    @property
    def confidence_band(self) -> str:
        if self.confidence >= HIGH_CONFIDENCE_THRESHOLD:
            return "high"
        if self.confidence >= MEDIUM_CONFIDENCE_THRESHOLD:
            return "medium"
        return "low"

    def to_payload(self) -> dict[str, Any]:
        return {
            "crop": self.crop,
            "issue": self.issue,
            "category": self.category,
            "severity": self.severity,
            "confidence": self.confidence,
            "description": dict(self.description),
            "solutions": dict(self.solutions),
            "prevention": dict(self.prevention),
            "tts": dict(self.tts_script),
            "actionUrgency": self.action_urgency,
            "expertConsultationRecommended": self.expert_consultation_recommended,
            "timestamp": self.timestamp,
        }


class OutcomeKind(str, Enum):
    """Whether a result came from a validated classifier answer."""

    SUCCESS = "success"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class DetectionOutcome:
    """Tagged result handed back by the orchestrator and validator."""

    kind: OutcomeKind
    result: DetectionResult
    reason: str = ""
    attempts: int = 0

    @property
    def degraded(self) -> bool:
        return self.kind is OutcomeKind.DEGRADED

    @classmethod
    def success(cls, result: DetectionResult) -> "DetectionOutcome":
        return cls(kind=OutcomeKind.SUCCESS, result=result)

    @classmethod
    def degraded_with(
        cls, result: DetectionResult, reason: str, *, attempts: int = 0
    ) -> "DetectionOutcome":
        return cls(kind=OutcomeKind.DEGRADED, result=result, reason=reason, attempts=attempts)


@dataclass(frozen=True)
class DetectionResponse:
    """Transport-neutral reply: an HTTP-style status code plus a JSON-ready body."""

    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == 200
