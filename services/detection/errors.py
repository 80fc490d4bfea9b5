"""Error taxonomy for the detection pipeline."""

from __future__ import annotations

from typing import Any


class DetectionError(Exception):
    """Error surfaced to the caller as a non-200 response."""

    status = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "errorCode": self.code}


class InvalidInputError(DetectionError):
    """Missing, oversized, undersized or undecodable image. Never retried."""

    status = 400
    code = "INVALID_INPUT"


class RateLimitedError(DetectionError):
    status = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, *, retry_after: float) -> None:
        super().__init__(message)
        self.retry_after = max(0, int(round(retry_after)))

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["retryAfter"] = self.retry_after
        return payload


class ServiceUnavailableError(DetectionError):
    """The classifier cannot serve requests no matter how often we retry."""

    status = 503
    code = "SERVICE_UNAVAILABLE"


class ClassifierError(Exception):
    """Failure reported by, or while reaching, the classifier."""


class TransientClassifierError(ClassifierError):
    """Failure worth retrying: transport errors and upstream 5xx."""


class ClassifierTimeoutError(TransientClassifierError):
    pass


class UpstreamThrottledError(TransientClassifierError):
    pass


class QuotaExhaustedError(ClassifierError):
    """Quota or billing exhaustion upstream; retrying cannot succeed."""
