"""Diagnostics routines for the core subsystem."""

from __future__ import annotations

import importlib.util

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe() -> DiagnosticResult:
    """Check logger setup and exercise a throwaway rate limiter.

    Returns:
        Diagnostic result indicating core readiness.
    """

    name = "core"
    from core import logging as core_logging
    from core.rate_limiting import FixedWindowRateLimiter

    if core_logging.logger is None:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="Core logger failed to initialize",
        )

    limiter = FixedWindowRateLimiter(1, 60.0, name="diagnostics")
    if not limiter.admit("probe", now=0.0) or limiter.admit("probe", now=1.0):
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="Rate limiter admitted an unexpected request count",
        )

    rich_available = importlib.util.find_spec("rich") is not None
    handler = "rich" if rich_available else "stream (rich not installed)"
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Logging via {handler}; rate limiter ok",
    )
