"""Diagnostics helpers for agri-detect."""

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from diagnostics.runner import default_probes, format_results, has_failures, run_diagnostics

__all__ = [
    "DiagnosticResult",
    "DiagnosticStatus",
    "default_probes",
    "format_results",
    "has_failures",
    "run_diagnostics",
]
