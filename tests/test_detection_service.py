"""Tests for the detection service boundary and its response mapping."""

from __future__ import annotations

import asyncio
import base64
import io
import json

import numpy as np
from PIL import Image

from core.rate_limiting import FixedWindowRateLimiter, UnlimitedRateLimiter
from services.detection.classifier import ClassificationInstructions, Classifier
from services.detection.errors import QuotaExhaustedError
from services.detection.models import DetectionRequest
from services.detection.orchestrator import RequestOrchestrator
from services.detection.service import DetectionService, caller_key_from_headers


ANSWER = json.dumps(
    {
        "crop": "Tomato",
        "issue": "Late Blight",
        "category": "disease",
        "severity": "Medium",
        "confidence": 82,
        "action_urgency": "immediate",
    }
)


class _FakeClassifier(Classifier):
    def __init__(self, answer: str | BaseException = ANSWER) -> None:
        self._answer = answer
        self.images: list[bytes] = []
        self.instructions: list[ClassificationInstructions] = []

    async def classify(self, image: bytes, instructions: ClassificationInstructions) -> str:
        self.images.append(image)
        self.instructions.append(instructions)
        if isinstance(self._answer, BaseException):
            raise self._answer
        return self._answer


async def _no_sleep(delay: float) -> None:
    return None


def _png_bytes(pixels: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


def _leaf_photo() -> bytes:
    rng = np.random.default_rng(21)
    return _png_bytes(rng.integers(0, 256, size=(480, 520, 3), dtype=np.uint8))


def _service(classifier: Classifier, *, rate_limiter=None, **kwargs) -> DetectionService:
    orchestrator = RequestOrchestrator(
        classifier,
        rate_limiter if rate_limiter is not None else UnlimitedRateLimiter(),
        sleep=_no_sleep,
    )
    kwargs.setdefault("system_instructions", "test system")
    return DetectionService(orchestrator, **kwargs)


def _detect(service: DetectionService, image, **kwargs):
    return asyncio.run(service.detect(DetectionRequest(image=image, **kwargs)))


def test_good_photo_is_classified() -> None:
    classifier = _FakeClassifier()
    service = _service(classifier)

    response = _detect(service, _leaf_photo(), language_hint="kn")

    assert response.status == 200
    assert response.ok
    assert response.body["crop"] == "Tomato"
    assert response.body["actionUrgency"] == "immediate"
    assert "degraded" not in response.body
    assert classifier.images[0][:2] == b"\xff\xd8"
    assert "Kannada" in classifier.instructions[0].user


def test_base64_payload_is_accepted() -> None:
    classifier = _FakeClassifier()
    encoded = base64.b64encode(_leaf_photo()).decode("ascii")

    response = _detect(_service(classifier), "data:image/png;base64," + encoded)

    assert response.status == 200
    assert len(classifier.images) == 1


def test_poor_photo_short_circuits_with_quality_report() -> None:
    classifier = _FakeClassifier()
    service = _service(classifier, min_image_bytes=0)

    response = _detect(service, _png_bytes(np.zeros((50, 50, 3), dtype=np.uint8)))

    assert response.status == 200
    assert response.body["degraded"] is True
    assert response.body["confidence"] == 0
    assert response.body["quality"]["isValid"] is False
    assert "too dark" in response.body["quality"]["issues"]
    assert classifier.images == []


def test_missing_and_undersized_images_are_rejected() -> None:
    service = _service(_FakeClassifier())

    missing = _detect(service, None)
    tiny = _detect(service, _png_bytes(np.zeros((8, 8, 3), dtype=np.uint8)))

    assert missing.status == 400
    assert missing.body["errorCode"] == "INVALID_INPUT"
    assert tiny.status == 400
    assert tiny.body["errorCode"] == "INVALID_IMAGE"


def test_oversized_image_is_rejected_before_decode() -> None:
    service = _service(_FakeClassifier(), max_image_bytes=10_000)

    response = _detect(service, b"\x00" * 20_000)

    assert response.status == 400
    assert response.body["errorCode"] == "IMAGE_TOO_LARGE"


def test_undecodable_image_is_invalid() -> None:
    response = _detect(_service(_FakeClassifier()), b"\x00" * 6000)

    assert response.status == 400
    assert response.body["errorCode"] == "INVALID_IMAGE"


def test_extreme_aspect_ratio_is_invalid_not_internal_error() -> None:
    rng = np.random.default_rng(3)
    sliver = _png_bytes(rng.integers(0, 256, size=(5, 2000, 3), dtype=np.uint8))
    classifier = _FakeClassifier()

    response = _detect(_service(classifier, quality_gate=False), sliver)

    assert response.status == 400
    assert response.body["errorCode"] == "INVALID_IMAGE"
    assert classifier.images == []


def test_rate_limited_caller_gets_429_with_retry_after() -> None:
    limiter = FixedWindowRateLimiter(1, 60.0)
    service = _service(_FakeClassifier(), rate_limiter=limiter)
    photo = _leaf_photo()

    first = _detect(service, photo, caller_key="9.9.9.9")
    second = _detect(service, photo, caller_key="9.9.9.9")

    assert first.status == 200
    assert second.status == 429
    assert second.body["errorCode"] == "RATE_LIMITED"
    assert second.headers["Retry-After"] == str(second.body["retryAfter"])


def test_quota_exhaustion_maps_to_503() -> None:
    response = _detect(_service(_FakeClassifier(QuotaExhaustedError("402"))), _leaf_photo())

    assert response.status == 503
    assert response.body["errorCode"] == "SERVICE_UNAVAILABLE"


def test_unexpected_failure_maps_to_500_with_fallback() -> None:
    response = _detect(_service(_FakeClassifier(RuntimeError("boom"))), _leaf_photo())

    assert response.status == 500
    assert response.body["errorCode"] == "INTERNAL_ERROR"
    assert response.body["confidence"] == 0


def test_from_config_wires_surface_bounds() -> None:
    config = {
        "rate_limit": {"surfaces": {"vision_detect": {"limit": 12, "min_image_bytes": 10240}}},
        "quality_gate": {"enabled": False},
        "classifier": {"provider": "none"},
    }
    service = DetectionService.from_config(config, "vision_detect", classifier=_FakeClassifier())

    response = _detect(service, b"\x00" * 9000)

    assert service.surface == "vision_detect"
    assert response.status == 400
    assert response.body["errorCode"] == "INVALID_IMAGE"


def test_from_config_applies_byte_budget_to_preprocessing() -> None:
    config = {"compression": {"max_size_kb": 50}, "classifier": {"provider": "none"}}
    overridden = {**config, "preprocess": {"enabled": True, "max_size_kb": 20}}

    service = DetectionService.from_config(config, classifier=_FakeClassifier())
    override = DetectionService.from_config(overridden, classifier=_FakeClassifier())

    assert service._compression.max_size_kb == 50
    assert service._compression.max_width == 1024
    assert override._compression.max_size_kb == 20


def test_caller_key_from_forwarded_header() -> None:
    assert caller_key_from_headers({"X-Forwarded-For": "1.1.1.1, 2.2.2.2"}) == "1.1.1.1"
    assert caller_key_from_headers({}) == "unknown"
