"""Activity log of detections and kills."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable

from procwarden.aggregator import match_key
from procwarden.models import ActivityLogEntry


class ActivityLog:
    """
    Append-only record of engine decisions, oldest first.

    When ``capacity`` is set the oldest entries are dropped once it is
    exceeded; ``None`` keeps everything.
    """

    def __init__(
        self,
        lock: threading.RLock | None = None,
        capacity: int | None = None,
    ) -> None:
        if capacity is not None and capacity < 1:
            raise ValueError("capacity must be positive")
        self._lock = lock or threading.RLock()
        self._entries: deque[ActivityLogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int | None:
        return self._entries.maxlen

    def append(self, entry: ActivityLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def extend(self, entries: Iterable[ActivityLogEntry]) -> None:
        with self._lock:
            self._entries.extend(entries)

    def newest_first(self, limit: int | None = None) -> list[ActivityLogEntry]:
        with self._lock:
            entries = list(reversed(self._entries))
        return entries if limit is None else entries[:limit]

    def filter(
        self, name: str | None = None, killed_only: bool = False
    ) -> list[ActivityLogEntry]:
        """Entries for one process name and/or only the kills, newest first."""
        key = None if name is None else match_key(name)
        return [
            entry
            for entry in self.newest_first()
            if (key is None or match_key(entry.name) == key)
            and (not killed_only or entry.was_killed)
        ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Defined last: inside the class body this name shadows the builtin.
    def list(self) -> list[ActivityLogEntry]:
        with self._lock:
            return list(self._entries)
