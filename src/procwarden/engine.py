"""The auto-kill decision engine."""

import logging
from datetime import datetime
from typing import Callable, Protocol

from procwarden.aggregator import SnapshotProvider, group_samples, match_key, rule_key
from procwarden.errors import TerminationFailed
from procwarden.models import ActivityLogEntry, BlacklistEntry, ProcessGroup, ProcessSample
from procwarden.state import WardenState

log = logging.getLogger(__name__)

WATCHING = "Watching"


class Terminator(Protocol):
    def terminate(self, pid: int) -> None: ...


def trigger_reasons(entry: BlacklistEntry, group: ProcessGroup) -> list[str]:
    """
    Describe each armed trigger that ``group`` reaches.

    An empty list means the entry does not fire. A disabled trigger never
    fires; an armed threshold of 0 always does.
    """
    reasons = []
    if entry.cpu_threshold.fires(group.total_cpu):
        reasons.append(f"CPU ≥ {entry.cpu_threshold.limit}%")
    if entry.gpu_threshold.fires(group.total_gpu):
        reasons.append(f"GPU ≥ {entry.gpu_threshold.limit}%")
    return reasons


class DecisionEngine:
    """
    Joins live process groups against blacklist entries and acts on them.

    A tick reads the rules under the state lock, then samples and terminates
    without holding it, and finally takes the lock again to record log
    entries and kill counts. Rules added mid-tick apply from the next tick.
    """

    def __init__(
        self,
        state: WardenState,
        provider: SnapshotProvider,
        terminator: Terminator,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._state = state
        self._provider = provider
        self._terminator = terminator
        self._clock = clock
        # Confirmed kills per entry name during the most recent tick
        self.last_kills: dict[str, int] = {}

    def tick(self) -> list[ActivityLogEntry]:
        """
        Run one sample, evaluate, act and log cycle.

        Returns the log entries written during this tick.

        Raises:
            ProviderUnavailable: the process table could not be read; nothing
                was changed.
        """
        self.last_kills = {}
        entries = self._state.rules.list()
        if not entries:
            return []

        samples = self._provider.sample()
        by_pid = {s.pid: s for s in samples}
        groups = {
            match_key(g.name): g
            for g in group_samples(samples, [e.name for e in entries])
        }

        new_logs: list[ActivityLogEntry] = []
        kills: dict[str, int] = {}

        for entry in entries:
            group = groups.get(rule_key(entry.name))
            if group is None:
                continue

            reasons = [] if entry.is_observe_only else trigger_reasons(entry, group)
            if not reasons:
                if entry.log_enabled and not entry.log_kills_only:
                    new_logs.extend(
                        self._record(group, pid, by_pid, False, WATCHING)
                        for pid in sorted(group.pids)
                    )
                continue

            reason = ", ".join(reasons)
            killed = 0
            for pid in sorted(group.pids):
                try:
                    self._terminator.terminate(pid)
                except TerminationFailed as exc:
                    log.warning("Could not kill %s (PID %d): %s", group.name, pid, exc.reason)
                    if entry.log_enabled:
                        new_logs.append(
                            self._record(group, pid, by_pid, False, f"Kill failed: {exc.reason}")
                        )
                    continue
                killed += 1
                if entry.log_enabled:
                    new_logs.append(self._record(group, pid, by_pid, True, reason))

            if killed:
                log.info("Killed %d %s process(es): %s", killed, group.name, reason)
                kills[entry.name] = killed

        with self._state.lock:
            for name, count in kills.items():
                self._state.rules.increment_kill_count(name, count)
            self._state.log.extend(new_logs)

        self.last_kills = kills
        return new_logs

    def _record(
        self,
        group: ProcessGroup,
        pid: int,
        by_pid: dict[int, ProcessSample],
        was_killed: bool,
        reason: str,
    ) -> ActivityLogEntry:
        sample = by_pid.get(pid)
        return ActivityLogEntry(
            name=sample.name if sample else group.name,
            pid=pid,
            cpu_usage=sample.cpu_percent if sample else 0.0,
            gpu_usage=sample.gpu_percent if sample else 0.0,
            detected_at=self._clock(),
            was_killed=was_killed,
            reason=reason,
        )
