"""Per-caller fixed-window admission control.

The in-memory limiter keeps one record per caller key in process-local state.
A lock serializes the read-modify-write of a record, which is enough for a
single process (event loop or thread pool). Several worker processes or hosts
each get their own map, so a horizontally scaled deployment needs a
``RateLimiter`` backed by a shared, atomically incremented store instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import threading
import time
from typing import Any, Callable, Mapping

from core.logging import logger


DEFAULT_WINDOW_S = 60.0


@dataclass(frozen=True)
class RateLimitRecord:
    """Counter state for a single caller key within one window."""

    caller_key: str
    count: int
    window_reset_at: float


class RateLimiter(ABC):
    """Admission interface consumed by the request orchestrator."""

    @abstractmethod
    def admit(self, caller_key: str, now: float | None = None) -> bool:
        """Return whether the caller may issue another request now."""

    @abstractmethod
    def retry_after(self, caller_key: str, now: float | None = None) -> float:
        """Return the seconds until the caller's current window resets."""


class UnlimitedRateLimiter(RateLimiter):
    """Admit everything; used when a surface has no configured limit."""

    def admit(self, caller_key: str, now: float | None = None) -> bool:
        return True

    def retry_after(self, caller_key: str, now: float | None = None) -> float:
        return 0.0


class FixedWindowRateLimiter(RateLimiter):
    """Fixed-window counter keyed by caller.

    A burst straddling a window boundary can be admitted up to twice the
    nominal limit. That approximation is accepted; this is not a sliding log.
    """

    def __init__(
        self,
        limit: int,
        window_s: float = DEFAULT_WINDOW_S,
        *,
        name: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = int(limit)
        self._window_s = float(window_s)
        self._name = name
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._next_purge_at = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Mapping[str, Any], surface: str) -> RateLimiter:
        rate_cfg = config.get("rate_limit") or {}
        surfaces = rate_cfg.get("surfaces") or {}
        surface_cfg = surfaces.get(surface) or {}
        limit = int(surface_cfg.get("limit", 0))
        if limit <= 0:
            return UnlimitedRateLimiter()
        window_s = float(rate_cfg.get("window_s", DEFAULT_WINDOW_S))
        return cls(limit, window_s, name=surface)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_s(self) -> float:
        return self._window_s

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def admit(self, caller_key: str, now: float | None = None) -> bool:
        if now is None:
            now = self._clock()
        with self._lock:
            # Expired records are swept at most once per window.
            if now >= self._next_purge_at:
                self._purge_locked(now)
                self._next_purge_at = now + self._window_s
            record = self._records.get(caller_key)
            if record is None or now > record.window_reset_at:
                self._records[caller_key] = RateLimitRecord(
                    caller_key=caller_key,
                    count=1,
                    window_reset_at=now + self._window_s,
                )
                return True
            if record.count >= self._limit:
                logger.warning(
                    "[RateLimit] %s rejected caller=%s count=%s",
                    self._name or "limiter",
                    caller_key,
                    record.count,
                )
                return False
            self._records[caller_key] = RateLimitRecord(
                caller_key=caller_key,
                count=record.count + 1,
                window_reset_at=record.window_reset_at,
            )
            return True

    def retry_after(self, caller_key: str, now: float | None = None) -> float:
        if now is None:
            now = self._clock()
        with self._lock:
            record = self._records.get(caller_key)
        if record is None:
            return 0.0
        return max(record.window_reset_at - now, 0.0)

    def get_record(self, caller_key: str) -> RateLimitRecord | None:
        with self._lock:
            return self._records.get(caller_key)

    def purge_expired(self, now: float | None = None) -> int:
        """Drop records whose window has passed and return how many were removed."""

        if now is None:
            now = self._clock()
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, record in self._records.items() if now > record.window_reset_at]
        for key in expired:
            del self._records[key]
        return len(expired)
