"""Photo-based crop disease detection pipeline."""

from services.detection.classifier import (
    ClassificationInstructions,
    Classifier,
    NullClassifier,
    OpenAIVisionClassifier,
    build_classifier_or_null,
    build_instructions,
)
from services.detection.errors import (
    DetectionError,
    InvalidInputError,
    RateLimitedError,
    ServiceUnavailableError,
)
from services.detection.models import (
    DetectionOutcome,
    DetectionRequest,
    DetectionResponse,
    DetectionResult,
    OutcomeKind,
)
from services.detection.orchestrator import RequestOrchestrator, RequestState
from services.detection.service import DetectionService, caller_key_from_headers
from services.detection.validation import ResponseValidator, fallback_result

__all__ = [
    "ClassificationInstructions",
    "Classifier",
    "NullClassifier",
    "OpenAIVisionClassifier",
    "build_classifier_or_null",
    "build_instructions",
    "DetectionError",
    "InvalidInputError",
    "RateLimitedError",
    "ServiceUnavailableError",
    "DetectionOutcome",
    "DetectionRequest",
    "DetectionResponse",
    "DetectionResult",
    "OutcomeKind",
    "RequestOrchestrator",
    "RequestState",
    "DetectionService",
    "caller_key_from_headers",
    "ResponseValidator",
    "fallback_result",
]
