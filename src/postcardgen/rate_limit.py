"""Best-effort throttle between consecutive image-generation calls.

One limiter instance is shared by every request served by the process.
Reads and writes are not locked: under real concurrency two calls may slip
through together, which only affects pacing, never results.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

__all__ = ["RateLimiter", "NullRateLimiter", "MinIntervalRateLimiter"]


class RateLimiter(ABC):
    """Decides how long to wait before the next outbound call."""

    @abstractmethod
    def should_delay(self, now: float) -> float:
        """Return the number of seconds to wait before calling at ``now``."""

    def record(self, now: float) -> None:
        """Note that a call is being made at ``now``."""
        return None


class NullRateLimiter(RateLimiter):
    def should_delay(self, now: float) -> float:
        return 0.0


class MinIntervalRateLimiter(RateLimiter):
    """Keep at least ``min_interval`` seconds between calls."""

    def __init__(self, min_interval: float) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._last_call: float | None = None

    @property
    def last_call(self) -> float | None:
        return self._last_call

    def should_delay(self, now: float) -> float:
        if self._last_call is None:
            return 0.0
        elapsed = now - self._last_call
        return max(0.0, self.min_interval - elapsed)

    def record(self, now: float) -> None:
        self._last_call = now
