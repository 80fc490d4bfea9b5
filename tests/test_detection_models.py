"""Tests for detection request and result models."""

from __future__ import annotations

from services.detection.models import DetectionRequest, normalize_language
from services.detection.validation import fallback_result


def test_language_hint_is_normalized() -> None:
    assert normalize_language("HI") == "hi"
    assert normalize_language("kannada") == "kn"
    assert normalize_language("fr") == "en"
    assert normalize_language(None) == "en"
    assert DetectionRequest(image=b"", language_hint="Hindi").language == "hi"


def test_request_ids_are_unique() -> None:
    assert DetectionRequest(image=b"").request_id != DetectionRequest(image=b"").request_id


def test_result_payload_uses_wire_keys() -> None:
    payload = fallback_result("Network error", "ts").to_payload()

    assert payload["tts"]["en"]
    assert payload["actionUrgency"] == "routine"
    assert payload["expertConsultationRecommended"] is True
    assert payload["timestamp"] == "ts"
