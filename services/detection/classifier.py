"""Classifier capability and its OpenAI-compatible implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import base64
from dataclasses import dataclass
import http.client
import json
import os
from pathlib import Path
import socket
from typing import Any, Mapping
from urllib import error, request

from core.logging import clip_for_log, logger as LOGGER
from services.detection.errors import (
    ClassifierTimeoutError,
    QuotaExhaustedError,
    TransientClassifierError,
    UpstreamThrottledError,
)
from services.detection.localization import LANGUAGE_NAMES


DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TEMPERATURE = 0.2
QUOTA_ERROR_CODES = frozenset({"insufficient_quota", "billing_hard_limit_reached"})


def load_system_instructions() -> str:
    with open(Path(__file__).with_name("plant_pathologist.txt"), "r", encoding="utf-8") as fh:
        return fh.read()


@dataclass(frozen=True)
class ClassificationInstructions:
    """System contract plus per-request user text sent with the image."""

    system: str
    user: str
    temperature: float = DEFAULT_TEMPERATURE


def build_instructions(
    language: str,
    *,
    system: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
) -> ClassificationInstructions:
    language_name = LANGUAGE_NAMES.get(language, LANGUAGE_NAMES["en"])
    user = (
        "Analyze this crop photo. Identify the crop, detect any disease, pest or deficiency, "
        "assess severity and give the full diagnosis with treatments in English, Hindi and "
        f"Kannada. The farmer reads {language_name} first."
    )
    return ClassificationInstructions(
        system=system if system is not None else load_system_instructions(),
        user=user,
        temperature=temperature,
    )


class Classifier(ABC):
    """Opaque image classifier returning free-form text."""

    @abstractmethod
    async def classify(self, image: bytes, instructions: ClassificationInstructions) -> str:
        """Return the classifier's raw text answer for ``image``.

        Raises:
            TransientClassifierError: The call failed in a way worth retrying.
            QuotaExhaustedError: The upstream account cannot serve requests.
        """


class NullClassifier(Classifier):
    """Safe default that performs no network activity and returns no answer."""

    async def classify(self, image: bytes, instructions: ClassificationInstructions) -> str:
        LOGGER.info("[Classifier] disabled; returning empty answer")
        return ""


class OpenAIVisionClassifier(Classifier):
    """Chat-completions vision call over urllib, run on a worker thread."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 45.0,
        max_tokens: int = 1500,
    ) -> None:
        self._api_key = (api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")).strip()
        self._model = model
        self._endpoint = f"{base_url.rstrip('/')}/chat/completions"
        self._timeout_s = max(1.0, float(timeout_s))
        self._max_tokens = max(200, int(max_tokens))

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def classify(self, image: bytes, instructions: ClassificationInstructions) -> str:
        return await asyncio.to_thread(self._chat_completions_call, image, instructions)

    def build_payload(self, image: bytes, instructions: ClassificationInstructions) -> dict[str, Any]:
        image_url = "data:image/jpeg;base64," + base64.b64encode(image).decode("ascii")
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": instructions.system},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instructions.user},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
            "temperature": instructions.temperature,
            "max_tokens": self._max_tokens,
        }

    def _chat_completions_call(self, image: bytes, instructions: ClassificationInstructions) -> str:
        data = json.dumps(self.build_payload(image, instructions)).encode("utf-8")
        http_request = request.Request(
            self._endpoint,
            data=data,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with request.urlopen(http_request, timeout=self._timeout_s) as response:
                raw_body = response.read()
        except error.HTTPError as exc:
            raise self._classify_http_error(exc) from exc
        except (socket.timeout, TimeoutError) as exc:
            raise ClassifierTimeoutError("classifier request timed out") from exc
        except error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise ClassifierTimeoutError("classifier request timed out") from exc
            raise TransientClassifierError(f"classifier transport error: {exc.reason}") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise TransientClassifierError(f"classifier transport error: {exc}") from exc

        try:
            response_payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError) as exc:
            raise TransientClassifierError("classifier returned an unreadable envelope") from exc
        if not isinstance(response_payload, Mapping):
            raise TransientClassifierError("classifier returned a malformed envelope")
        return self.extract_text(response_payload)

    @staticmethod
    def extract_text(response_payload: Mapping[str, Any]) -> str:
        choices = response_payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
            return ""
        message = choices[0].get("message")
        if not isinstance(message, Mapping):
            return ""
        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            parts = [
                str(part.get("text", "")).strip()
                for part in content
                if isinstance(part, Mapping) and part.get("text")
            ]
            return "\n".join(parts).strip()
        return ""

    def _classify_http_error(self, exc: error.HTTPError) -> Exception:
        try:
            detail = exc.read().decode("utf-8", errors="replace")
        except (OSError, http.client.HTTPException):
            detail = ""
        code = self._error_code(detail)
        LOGGER.warning(
            "[Classifier] upstream HTTP %s code=%s body=%s",
            exc.code,
            code or "-",
            clip_for_log(detail, 200),
        )
        if exc.code == 402 or code in QUOTA_ERROR_CODES:
            return QuotaExhaustedError(f"classifier quota exhausted ({exc.code})")
        if exc.code == 429:
            return UpstreamThrottledError("classifier is throttling requests")
        return TransientClassifierError(f"classifier error: {exc.code}")

    @staticmethod
    def _error_code(detail: str) -> str:
        try:
            payload = json.loads(detail)
        except (ValueError, RecursionError):
            return ""
        if not isinstance(payload, dict):
            return ""
        err = payload.get("error")
        if isinstance(err, dict):
            return str(err.get("code") or err.get("type") or "")
        return ""


def build_classifier_or_null(config: Mapping[str, Any]) -> Classifier:
    """Construct the OpenAI classifier when configured and keyed; otherwise null."""

    classifier_cfg = config.get("classifier") or {}
    provider = str(classifier_cfg.get("provider", "openai")).strip().lower()
    if provider != "openai":
        return NullClassifier()

    classifier = OpenAIVisionClassifier(
        model=str(classifier_cfg.get("model", DEFAULT_MODEL)),
        base_url=str(classifier_cfg.get("base_url", DEFAULT_BASE_URL)),
        timeout_s=float(classifier_cfg.get("timeout_s", 45.0)),
        max_tokens=int(classifier_cfg.get("max_tokens", 1500)),
    )
    if not classifier.enabled:
        LOGGER.warning("[Classifier] OPENAI_API_KEY missing; using null classifier.")
        return NullClassifier()
    return classifier
