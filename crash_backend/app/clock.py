# crash_backend/app/clock.py

import time


class MonotonicClock:
    """Milliseconds from time.monotonic(); unaffected by wall-clock changes."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000


class ManualClock:
    """A clock that only moves when told to. Used to drive rounds deterministically."""

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms

    def now_ms(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        if ms < 0:
            raise ValueError("a monotonic clock cannot go backwards")
        self._now += ms
        return self._now

    def set(self, now_ms: float) -> None:
        if now_ms < self._now:
            raise ValueError("a monotonic clock cannot go backwards")
        self._now = now_ms
