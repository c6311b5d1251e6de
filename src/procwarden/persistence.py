"""Saving and restoring the blacklist and activity log as JSON."""

import contextlib
import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from procwarden.models import ActivityLogEntry, BlacklistEntry, Threshold
from procwarden.state import WardenState

log = logging.getLogger(__name__)


class BlacklistRecord(BaseModel):
    """Wire form of a blacklist entry; thresholds use 101 for disabled."""

    name: str
    auto_kill: bool
    cpu_threshold: int = Field(ge=0, le=101)
    gpu_threshold: int = Field(default=101, ge=0, le=101)
    log_enabled: bool = True
    log_kills_only: bool = False
    created_at: datetime
    kill_count: int = Field(default=0, ge=0)

    @classmethod
    def from_entry(cls, entry: BlacklistEntry) -> "BlacklistRecord":
        return cls(
            name=entry.name,
            auto_kill=entry.auto_kill,
            cpu_threshold=entry.cpu_threshold.to_wire(),
            gpu_threshold=entry.gpu_threshold.to_wire(),
            log_enabled=entry.log_enabled,
            log_kills_only=entry.log_kills_only,
            created_at=entry.created_at,
            kill_count=entry.kill_count,
        )

    def to_entry(self) -> BlacklistEntry:
        return BlacklistEntry(
            name=self.name,
            auto_kill=self.auto_kill,
            cpu_threshold=Threshold.from_wire(self.cpu_threshold),
            gpu_threshold=Threshold.from_wire(self.gpu_threshold),
            log_enabled=self.log_enabled,
            log_kills_only=self.log_kills_only,
            created_at=self.created_at,
            kill_count=self.kill_count,
        )


class ActivityRecord(BaseModel):
    name: str
    pid: int
    cpu_usage: float
    gpu_usage: float = 0.0
    detected_at: datetime
    was_killed: bool
    reason: str

    @classmethod
    def from_entry(cls, entry: ActivityLogEntry) -> "ActivityRecord":
        return cls(
            name=entry.name,
            pid=entry.pid,
            cpu_usage=entry.cpu_usage,
            gpu_usage=entry.gpu_usage,
            detected_at=entry.detected_at,
            was_killed=entry.was_killed,
            reason=entry.reason,
        )

    def to_entry(self) -> ActivityLogEntry:
        return ActivityLogEntry(**self.model_dump())


class SavedState(BaseModel):
    blacklist: list[BlacklistRecord] = Field(default_factory=list)
    activity_logs: list[ActivityRecord] = Field(default_factory=list)


class StateFile:
    """JSON file holding a :class:`SavedState`."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._save_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load_into(self, state: WardenState) -> bool:
        """
        Restore ``state`` from disk.

        Returns False, leaving ``state`` untouched, when the file is missing
        or unreadable.
        """
        if not self._path.exists():
            return False
        try:
            saved = SavedState.model_validate(
                json.loads(self._path.read_text(encoding="utf-8"))
            )
        except (OSError, ValueError, ValidationError) as exc:
            log.warning("Ignoring unreadable state file %s: %s", self._path, exc)
            return False

        with state.lock:
            state.rules.load(record.to_entry() for record in saved.blacklist)
            state.log.clear()
            state.log.extend(record.to_entry() for record in saved.activity_logs)
        log.info("Restored %d blacklist entries from %s", len(saved.blacklist), self._path)
        return True

    def save(self, state: WardenState) -> None:
        """
        Write ``state`` atomically.

        Saves are serialized so a stale snapshot never overwrites a newer
        one, and the file is replaced in one step so a crash mid-write
        leaves the previous version intact.
        """
        with self._save_lock:
            with state.lock:
                saved = SavedState(
                    blacklist=[BlacklistRecord.from_entry(e) for e in state.rules.list()],
                    activity_logs=[ActivityRecord.from_entry(e) for e in state.log.list()],
                )
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(saved.model_dump_json(indent=2))
                os.replace(tmp_name, self._path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
