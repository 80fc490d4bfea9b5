"""Diagnostics routines for the classifier connection."""

from __future__ import annotations

import os

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe(api_key: str | None = None) -> DiagnosticResult:
    """Report whether the classifier can be reached with credentials.

    No network call is made. A missing key is a warning because the service
    still answers with fallback results.
    """

    name = "classifier"
    from services.detection.classifier import load_system_instructions

    try:
        system = load_system_instructions()
    except OSError as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"System instructions unreadable: {exc}",
        )
    if not system.strip():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="System instructions are empty",
        )

    key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")
    if not key.strip():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details="OPENAI_API_KEY not set; detections will degrade to fallback results",
        )
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details="Classifier credentials present",
    )
