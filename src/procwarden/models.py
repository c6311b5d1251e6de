"""Data models for procwarden."""

import math
from dataclasses import dataclass, field
from datetime import datetime

DISABLED_THRESHOLD = 101  # Wire sentinel: the trigger never fires
MAX_ARMED_THRESHOLD = 100


def _clamp(value: float, upper: int) -> int:
    """Clamp a percentage into [0, upper]; infinities land on a bound."""
    value = float(value)
    if math.isnan(value):
        raise ValueError("threshold must be a number, not NaN")
    return int(max(0.0, min(float(upper), value)))


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Immutable sample of one process, taken fresh every tick."""

    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0, normalized by logical CPU count
    memory_kb: int
    gpu_percent: float = 0.0


@dataclass(slots=True, frozen=True)
class ProcessGroup:
    """All live processes sharing one name, with summed resource usage."""

    name: str
    pids: frozenset[int]
    total_cpu: float
    total_memory_kb: int
    total_gpu: float

    @property
    def process_count(self) -> int:
        return len(self.pids)


@dataclass(slots=True, frozen=True)
class Threshold:
    """
    A CPU or GPU trigger.

    ``limit`` is None when the trigger is disabled, otherwise a percentage in
    [0, 100]. On the wire a disabled trigger is the integer 101.
    """

    limit: int | None = None

    @classmethod
    def armed(cls, limit: float) -> "Threshold":
        return cls(_clamp(limit, MAX_ARMED_THRESHOLD))

    @classmethod
    def disabled(cls) -> "Threshold":
        return cls(None)

    @classmethod
    def from_wire(cls, value: float) -> "Threshold":
        """
        Clamp ``value`` into [0, 101] and decode it.

        Infinities clamp to the nearest bound; NaN raises ValueError.
        """
        clamped = _clamp(value, DISABLED_THRESHOLD)
        if clamped == DISABLED_THRESHOLD:
            return cls.disabled()
        return cls(clamped)

    @property
    def is_armed(self) -> bool:
        return self.limit is not None

    def to_wire(self) -> int:
        return DISABLED_THRESHOLD if self.limit is None else self.limit

    def fires(self, load: float) -> bool:
        """Whether ``load`` reaches this trigger. A limit of 0 always fires."""
        return self.limit is not None and load >= self.limit


@dataclass(slots=True)
class BlacklistEntry:
    """A rule for one process name, plus its kill counter."""

    name: str
    auto_kill: bool
    cpu_threshold: Threshold
    gpu_threshold: Threshold = field(default_factory=Threshold.disabled)
    log_enabled: bool = True
    log_kills_only: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    kill_count: int = 0

    @property
    def is_observe_only(self) -> bool:
        """True when no trigger is armed or auto-kill is off."""
        return not self.auto_kill or not (
            self.cpu_threshold.is_armed or self.gpu_threshold.is_armed
        )


@dataclass(slots=True, frozen=True)
class ActivityLogEntry:
    """Immutable record of a detection or kill."""

    name: str
    pid: int
    cpu_usage: float
    gpu_usage: float
    detected_at: datetime
    was_killed: bool
    reason: str


@dataclass(slots=True, frozen=True)
class DiskUsage:
    """Usage of one mounted disk, in gigabytes."""

    device: str
    mount_point: str
    total_gb: float
    used_gb: float
    free_gb: float
    usage_percent: float


@dataclass(slots=True)
class SystemStats:
    """Snapshot of overall system state."""

    cpu_percent: float
    memory_total_gb: float
    memory_used_gb: float
    memory_percent: float
    disks: list[DiskUsage]
