"""Rate-checked, time-boxed and retried classifier calls."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from core.logging import logger as LOGGER
from core.rate_limiting import RateLimiter
from services.detection.classifier import Classifier, ClassificationInstructions
from services.detection.errors import (
    QuotaExhaustedError,
    RateLimitedError,
    ServiceUnavailableError,
    TransientClassifierError,
)
from services.detection.models import DetectionOutcome, DetectionRequest
from services.detection.validation import ResponseValidator, fallback_result


DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_S = 1.5
DEFAULT_TIMEOUT_S = 45.0


class RequestState(str, Enum):
    """Per-request orchestration states."""

    INIT = "init"
    RATE_CHECK = "rate_check"
    REJECTED = "rejected"
    CALLING = "calling"
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    FATAL_FAILURE = "fatal_failure"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class RequestOrchestrator:
    """Drive one classification per request with bounded retries.

    The admission decision is made once, before the first call. Each attempt
    is cancelled at ``timeout_s``. Retry ``n`` waits ``base_delay_s * n``.
    Quota exhaustion fails fast; every other upstream failure is retried and
    finally degrades to a fallback result.
    """

    def __init__(
        self,
        classifier: Classifier,
        rate_limiter: RateLimiter,
        validator: ResponseValidator | None = None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._classifier = classifier
        self._rate_limiter = rate_limiter
        self._validator = validator or ResponseValidator()
        self._max_attempts = max(1, int(max_attempts))
        self._base_delay_s = max(0.0, float(base_delay_s))
        self._timeout_s = float(timeout_s)
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        classifier: Classifier,
        rate_limiter: RateLimiter,
    ) -> "RequestOrchestrator":
        orchestrator_cfg = config.get("orchestrator") or {}
        return cls(
            classifier,
            rate_limiter,
            max_attempts=int(orchestrator_cfg.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
            base_delay_s=float(orchestrator_cfg.get("base_delay_s", DEFAULT_BASE_DELAY_S)),
            timeout_s=float(orchestrator_cfg.get("timeout_s", DEFAULT_TIMEOUT_S)),
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def run(
        self,
        request: DetectionRequest,
        image: bytes,
        instructions: ClassificationInstructions,
        *,
        timestamp: str | None = None,
    ) -> DetectionOutcome:
        """Classify ``image`` for ``request``.

        Raises:
            RateLimitedError: The caller exceeded its admission window.
            ServiceUnavailableError: The classifier reported quota exhaustion.
        """

        timestamp = timestamp or utc_timestamp()
        tag = f"[Detect:{request.request_id}]"
        trace = [RequestState.INIT]

        self._transition(tag, trace, RequestState.RATE_CHECK)
        if not self._rate_limiter.admit(request.caller_key):
            self._transition(tag, trace, RequestState.REJECTED)
            LOGGER.warning("%s rate limit exceeded for caller %s", tag, request.caller_key)
            raise RateLimitedError(
                "Too many requests. Please wait a moment and try again.",
                retry_after=self._rate_limiter.retry_after(request.caller_key),
            )

        last_reason = "Network error"
        for attempt in range(1, self._max_attempts + 1):
            if attempt > 1:
                delay = self._base_delay_s * (attempt - 1)
                LOGGER.info(
                    "%s retry %s/%s in %.1fs", tag, attempt - 1, self._max_attempts - 1, delay
                )
                await self._sleep(delay)

            self._transition(tag, trace, RequestState.CALLING)
            try:
                raw_text = await asyncio.wait_for(
                    self._classifier.classify(image, instructions),
                    timeout=self._timeout_s,
                )
            except asyncio.TimeoutError:
                last_reason = "Request timed out"
                LOGGER.error("%s attempt %s timed out after %.1fs", tag, attempt, self._timeout_s)
                self._transition(tag, trace, RequestState.RETRYABLE_FAILURE)
                continue
            except QuotaExhaustedError as exc:
                self._transition(tag, trace, RequestState.FATAL_FAILURE)
                LOGGER.error("%s classifier quota exhausted: %s", tag, exc)
                raise ServiceUnavailableError(
                    "AI service temporarily unavailable. Please try again later."
                ) from exc
            except TransientClassifierError as exc:
                last_reason = str(exc) or type(exc).__name__
                LOGGER.error("%s attempt %s failed: %s", tag, attempt, last_reason)
                self._transition(tag, trace, RequestState.RETRYABLE_FAILURE)
                continue

            self._transition(tag, trace, RequestState.SUCCESS)
            LOGGER.info("%s classifier answered on attempt %s", tag, attempt)
            LOGGER.debug("%s trace: %s", tag, " > ".join(s.value for s in trace))
            if not raw_text or not raw_text.strip():
                reason = "Empty response from classifier"
                outcome = DetectionOutcome.degraded_with(fallback_result(reason, timestamp), reason)
            else:
                outcome = self._validator.parse(raw_text, timestamp)
            return dataclasses.replace(outcome, attempts=attempt)

        LOGGER.error("%s all %s attempts failed", tag, self._max_attempts)
        LOGGER.debug("%s trace: %s", tag, " > ".join(s.value for s in trace))
        return DetectionOutcome.degraded_with(
            fallback_result(last_reason, timestamp),
            last_reason,
            attempts=self._max_attempts,
        )

    def _transition(self, tag: str, trace: list[RequestState], new: RequestState) -> None:
        LOGGER.debug("%s %s -> %s", tag, trace[-1].value, new.value)
        trace.append(new)
