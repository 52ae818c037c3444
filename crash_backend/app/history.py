# crash_backend/app/history.py

from collections import deque

DEFAULT_HISTORY_SIZE = 20


class HistoryLog:
    """Crash points of settled rounds, most recent first, bounded to `size` entries."""

    def __init__(self, size: int = DEFAULT_HISTORY_SIZE):
        if size <= 0:
            raise ValueError("history size must be positive")
        self._entries: deque[float] = deque(maxlen=size)

    def record(self, crash_point: float) -> None:
        # appendleft on a full deque drops the oldest entry from the right end
        self._entries.appendleft(crash_point)

    def entries(self) -> tuple[float, ...]:
        return tuple(self._entries)

    @property
    def latest(self) -> float | None:
        return self._entries[0] if self._entries else None

    @property
    def size(self) -> int:
        return self._entries.maxlen

    def __len__(self) -> int:
        return len(self._entries)
