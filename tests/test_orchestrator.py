"""Tests for retry, timeout and admission handling around classifier calls."""

from __future__ import annotations

import asyncio
import json

import pytest

from core.rate_limiting import FixedWindowRateLimiter, UnlimitedRateLimiter
from services.detection import classifier as classifier_module
from services.detection.classifier import (
    ClassificationInstructions,
    Classifier,
    OpenAIVisionClassifier,
)
from services.detection.errors import (
    QuotaExhaustedError,
    RateLimitedError,
    ServiceUnavailableError,
    TransientClassifierError,
    UpstreamThrottledError,
)
from services.detection.models import DetectionRequest, OutcomeKind
from services.detection.orchestrator import RequestOrchestrator


INSTRUCTIONS = ClassificationInstructions(system="test", user="look")
TIMESTAMP = "2024-01-01T00:00:00+00:00"
VALID_ANSWER = json.dumps({"crop": "Tomato", "issue": "Early Blight", "confidence": 88})


class _ScriptedClassifier(Classifier):
    """Plays back a list of answers; exceptions are raised, strings returned."""

    def __init__(self, *steps) -> None:
        self._steps = list(steps)
        self.calls = 0

    async def classify(self, image: bytes, instructions: ClassificationInstructions) -> str:
        self.calls += 1
        step = self._steps[min(self.calls, len(self._steps)) - 1]
        if isinstance(step, BaseException):
            raise step
        return step


class _HangingClassifier(Classifier):
    def __init__(self) -> None:
        self.calls = 0

    async def classify(self, image: bytes, instructions: ClassificationInstructions) -> str:
        self.calls += 1
        await asyncio.sleep(5)
        return VALID_ANSWER


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _orchestrator(classifier: Classifier, **kwargs) -> tuple[RequestOrchestrator, _RecordingSleep]:
    sleep = _RecordingSleep()
    kwargs.setdefault("rate_limiter", UnlimitedRateLimiter())
    orchestrator = RequestOrchestrator(
        classifier,
        kwargs.pop("rate_limiter"),
        sleep=sleep,
        **kwargs,
    )
    return orchestrator, sleep


def _run(orchestrator: RequestOrchestrator, caller_key: str = "10.0.0.1"):
    request = DetectionRequest(image=b"jpeg", caller_key=caller_key)
    return asyncio.run(orchestrator.run(request, b"jpeg", INSTRUCTIONS, timestamp=TIMESTAMP))


def test_always_timing_out_classifier_yields_fallback_after_three_attempts() -> None:
    classifier = _HangingClassifier()
    orchestrator, sleep = _orchestrator(classifier, timeout_s=0.01)

    outcome = _run(orchestrator)

    assert classifier.calls == 3
    assert sleep.delays == [1.5, 3.0]
    assert outcome.kind is OutcomeKind.DEGRADED
    assert outcome.attempts == 3
    assert outcome.result.confidence == 0
    assert outcome.result.expert_consultation_recommended is True
    assert outcome.result.timestamp == TIMESTAMP
    assert "timed out" in outcome.result.description["en"]


def test_transient_failure_then_success() -> None:
    classifier = _ScriptedClassifier(UpstreamThrottledError("slow down"), VALID_ANSWER)
    orchestrator, sleep = _orchestrator(classifier)

    outcome = _run(orchestrator)

    assert classifier.calls == 2
    assert sleep.delays == [1.5]
    assert outcome.kind is OutcomeKind.SUCCESS
    assert outcome.attempts == 2
    assert outcome.result.crop == "Tomato"
    assert outcome.result.confidence == 88


def test_quota_exhaustion_fails_fast() -> None:
    classifier = _ScriptedClassifier(QuotaExhaustedError("no credit"), VALID_ANSWER)
    orchestrator, sleep = _orchestrator(classifier)

    with pytest.raises(ServiceUnavailableError):
        _run(orchestrator)

    assert classifier.calls == 1
    assert sleep.delays == []


def test_exhausted_transient_errors_degrade_with_last_reason() -> None:
    classifier = _ScriptedClassifier(TransientClassifierError("classifier error: 502"))
    orchestrator, _ = _orchestrator(classifier, max_attempts=2)

    outcome = _run(orchestrator)

    assert classifier.calls == 2
    assert outcome.degraded
    assert outcome.reason == "classifier error: 502"


def test_empty_answer_degrades_without_retry() -> None:
    classifier = _ScriptedClassifier("   ")
    orchestrator, _ = _orchestrator(classifier)

    outcome = _run(orchestrator)

    assert classifier.calls == 1
    assert outcome.degraded
    assert outcome.reason == "Empty response from classifier"


def _serve_envelope(monkeypatch, body: bytes) -> list:
    calls: list = []

    class _Response:
        def read(self) -> bytes:
            return body

        def __enter__(self):
            return self

        def __exit__(self, *exc_info) -> None:
            return None

    def fake_urlopen(http_request, timeout=None):
        calls.append(http_request)
        return _Response()

    monkeypatch.setattr(classifier_module.request, "urlopen", fake_urlopen)
    return calls


def test_non_object_envelope_is_retried_then_degrades(monkeypatch) -> None:
    calls = _serve_envelope(monkeypatch, b"[]")
    orchestrator, sleep = _orchestrator(OpenAIVisionClassifier(api_key="k"))

    outcome = _run(orchestrator)

    assert len(calls) == 3
    assert sleep.delays == [1.5, 3.0]
    assert outcome.kind is OutcomeKind.DEGRADED
    assert outcome.attempts == 3
    assert outcome.result.confidence == 0


def test_malformed_choices_degrade_as_empty_answer(monkeypatch) -> None:
    calls = _serve_envelope(monkeypatch, b"{\"choices\": \"x\"}")
    orchestrator, _ = _orchestrator(OpenAIVisionClassifier(api_key="k"))

    outcome = _run(orchestrator)

    assert len(calls) == 1
    assert outcome.degraded
    assert outcome.reason == "Empty response from classifier"


def test_errors_outside_the_classifier_taxonomy_propagate() -> None:
    classifier = _ScriptedClassifier(RuntimeError("bug in classifier"))
    orchestrator, sleep = _orchestrator(classifier)

    with pytest.raises(RuntimeError, match="bug in classifier"):
        _run(orchestrator)
    assert classifier.calls == 1
    assert sleep.delays == []


def test_rejected_caller_never_reaches_classifier() -> None:
    classifier = _ScriptedClassifier(VALID_ANSWER)
    limiter = FixedWindowRateLimiter(1, 60.0)
    orchestrator, _ = _orchestrator(classifier, rate_limiter=limiter)

    _run(orchestrator)
    with pytest.raises(RateLimitedError) as excinfo:
        _run(orchestrator)

    assert classifier.calls == 1
    assert excinfo.value.status == 429
    assert 0 < excinfo.value.retry_after <= 60


def test_from_config_reads_orchestrator_section() -> None:
    orchestrator = RequestOrchestrator.from_config(
        {"orchestrator": {"max_attempts": 5}},
        _ScriptedClassifier(VALID_ANSWER),
        UnlimitedRateLimiter(),
    )

    assert orchestrator.max_attempts == 5
