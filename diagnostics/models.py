"""Result types shared by every subsystem probe.

Probes never raise for an unhealthy subsystem. They return a
``DiagnosticResult`` whose status the runner and the CLI aggregate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DiagnosticStatus(str, Enum):
    """Health verdict of a probe.

    ``WARN`` marks a subsystem that runs in a reduced mode, such as the
    classifier without an API key. Only ``FAIL`` makes a diagnostics run fail.
    """

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


@dataclass(frozen=True)
class DiagnosticResult:
    """Outcome of one subsystem probe.

    Attributes:
        name: Short subsystem label, e.g. ``config`` or ``imaging``.
        status: Verdict for the subsystem.
        details: Human-readable explanation shown in reports.
    """

    name: str
    status: DiagnosticStatus
    details: str

    @property
    def failed(self) -> bool:
        """True when this result should fail the whole diagnostics run."""

        return self.status is DiagnosticStatus.FAIL

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-ready mapping with the status as its string value."""

        return {"name": self.name, "status": self.status.value, "details": self.details}
