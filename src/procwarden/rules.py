"""Blacklist rule store."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import replace

from procwarden.aggregator import resolve_process_name, rule_key
from procwarden.errors import DuplicateEntry, NotFound
from procwarden.models import BlacklistEntry, Threshold

log = logging.getLogger(__name__)


class RuleStore:
    """
    Blacklist entries keyed by process name, in insertion order.

    Every method takes ``lock``, which is shared with the activity log so a
    tick sees one consistent view of both. Readers get copies; the stored
    entries are never handed out.
    """

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock or threading.RLock()
        self._entries: dict[str, BlacklistEntry] = {}

    def _require(self, name: str) -> BlacklistEntry:
        try:
            return self._entries[rule_key(name)]
        except KeyError:
            raise NotFound(name) from None

    def add(self, name: str, auto_kill: bool, cpu_threshold: float) -> BlacklistEntry:
        """Create an entry; GPU trigger starts disabled, kill count at zero."""
        resolved = resolve_process_name(name)
        key = rule_key(resolved)
        if not key:
            raise ValueError("Name cannot be empty")

        with self._lock:
            if key in self._entries:
                raise DuplicateEntry(resolved)
            entry = BlacklistEntry(
                name=resolved,
                auto_kill=auto_kill,
                cpu_threshold=Threshold.from_wire(cpu_threshold),
            )
            self._entries[key] = entry
            log.info(
                "Added %s (auto_kill=%s, cpu=%d)",
                resolved,
                auto_kill,
                entry.cpu_threshold.to_wire(),
            )
            return replace(entry)

    def remove(self, name: str) -> None:
        with self._lock:
            entry = self._require(name)
            del self._entries[rule_key(name)]
            log.info("Removed %s", entry.name)

    def get(self, name: str) -> BlacklistEntry:
        with self._lock:
            return replace(self._require(name))

    def set_cpu_threshold(self, name: str, value: float) -> int:
        with self._lock:
            entry = self._require(name)
            entry.cpu_threshold = Threshold.from_wire(value)
            return entry.cpu_threshold.to_wire()

    def set_gpu_threshold(self, name: str, value: float) -> int:
        with self._lock:
            entry = self._require(name)
            entry.gpu_threshold = Threshold.from_wire(value)
            return entry.gpu_threshold.to_wire()

    def toggle_auto_kill(self, name: str) -> bool:
        with self._lock:
            entry = self._require(name)
            entry.auto_kill = not entry.auto_kill
            return entry.auto_kill

    def toggle_log(self, name: str) -> bool:
        with self._lock:
            entry = self._require(name)
            entry.log_enabled = not entry.log_enabled
            return entry.log_enabled

    def toggle_log_kills_only(self, name: str) -> bool:
        with self._lock:
            entry = self._require(name)
            entry.log_kills_only = not entry.log_kills_only
            return entry.log_kills_only

    def increment_kill_count(self, name: str, by: int = 1) -> None:
        """
        Add confirmed kills to an entry's counter.

        An entry removed while its tick was running is silently skipped.
        """
        if by < 0:
            raise ValueError("kill count cannot decrease")
        with self._lock:
            entry = self._entries.get(rule_key(name))
            if entry is not None:
                entry.kill_count += by

    def names(self) -> list[str]:
        with self._lock:
            return [entry.name for entry in self._entries.values()]

    def list(self) -> list[BlacklistEntry]:
        with self._lock:
            return [replace(entry) for entry in self._entries.values()]

    def load(self, entries: Iterable[BlacklistEntry]) -> None:
        """Replace all entries, e.g. when restoring saved state."""
        with self._lock:
            self._entries = {rule_key(e.name): replace(e) for e in entries}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        with self._lock:
            return rule_key(name) in self._entries
