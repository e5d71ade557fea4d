from __future__ import annotations

import time
from collections.abc import Callable

"""Minimum-spacing rate limiter for outbound API calls.

One instance per run, owned by the API client. Single threaded: the last call
timestamp is effectively a monotonic counter, no locking needed.
"""

__all__ = [
    "RateLimiter",
    "DEFAULT_MIN_INTERVAL_SEC",
]

DEFAULT_MIN_INTERVAL_SEC = 0.2  # 5 calls / sec


class RateLimiter:
    """Delays each call so consecutive calls are at least ``min_interval`` apart."""

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL_SEC,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self.last_call: float | None = None

    def wait(self) -> float:
        """Block until the next call is allowed; returns the seconds slept."""
        waited = 0.0
        if self.last_call is not None:
            shortfall = self.min_interval - (self._clock() - self.last_call)
            if shortfall > 0:
                self._sleep(shortfall)
                waited = shortfall
        self.last_call = self._clock()
        return waited
