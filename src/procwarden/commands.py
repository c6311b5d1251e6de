"""Command surface consumed by the presentation layer."""

import logging
from queue import Queue

from procwarden.aggregator import Aggregator, SnapshotProvider
from procwarden.config import WardenConfig
from procwarden.engine import DecisionEngine, Terminator
from procwarden.errors import NotFound, TerminationFailed
from procwarden.gpu import NvidiaSmiGpuSampler
from procwarden.models import (
    ActivityLogEntry,
    BlacklistEntry,
    ProcessGroup,
    ProcessSample,
    SystemStats,
)
from procwarden.persistence import StateFile
from procwarden.scheduler import Enforcer
from procwarden.state import WardenState
from procwarden.system import (
    PsutilSnapshotProvider,
    PsutilTerminator,
    collect_system_stats,
    is_elevated,
)

log = logging.getLogger(__name__)


class WardenService:
    """
    Every user-facing operation, backed by one owned :class:`WardenState`.

    Store errors (``DuplicateEntry``, ``NotFound``) propagate to the caller.
    Mutations are written to ``state_file`` when one is configured.
    """

    def __init__(
        self,
        config: WardenConfig | None = None,
        state: WardenState | None = None,
        provider: SnapshotProvider | None = None,
        terminator: Terminator | None = None,
        state_file: StateFile | None = None,
        update_queue: Queue[list[ActivityLogEntry]] | None = None,
    ) -> None:
        self.config = config or WardenConfig()
        self.state = state or WardenState(log_capacity=self.config.log_capacity)
        if provider is None:
            gpu = NvidiaSmiGpuSampler() if self.config.gpu_sampling else None
            provider = PsutilSnapshotProvider(gpu)
        self._provider = provider
        self._terminator = terminator or PsutilTerminator(self.config.kill_timeout)
        self._aggregator = Aggregator(provider)
        self._engine = DecisionEngine(self.state, provider, self._terminator)
        self._state_file = state_file
        if state_file is not None:
            state_file.load_into(self.state)
        self.enforcer = Enforcer(
            self._tick, poll_rate=self.config.poll_interval, update_queue=update_queue
        )

    # -- lifecycle --

    def start(self) -> None:
        if not is_elevated():
            log.warning("Not running as administrator; some kills may fail")
        self.enforcer.start()

    def stop(self) -> None:
        # Kills can escalate per PID, so wait for the running tick to finish
        self.enforcer.stop(timeout=None)
        self._save()

    def _tick(self) -> list[ActivityLogEntry]:
        new_logs = self._engine.tick()
        # Kills with logging off still change kill_count
        if new_logs or self._engine.last_kills:
            self._save()
        return new_logs

    def _save(self) -> None:
        if self._state_file is None:
            return
        try:
            self._state_file.save(self.state)
        except OSError as exc:
            log.error("Could not save state to %s: %s", self._state_file.path, exc)

    # -- system and processes --

    def get_system_stats(self) -> SystemStats:
        return collect_system_stats()

    def watched_processes(self, names: list[str]) -> list[ProcessSample]:
        return self._aggregator.watched(names)

    def grouped_processes(self, names: list[str]) -> list[ProcessGroup]:
        return self._aggregator.grouped(names)

    def get_all_process_list(self) -> list[ProcessGroup]:
        return self._aggregator.all_groups()

    def kill_pid(self, pid: int) -> str:
        self._terminator.terminate(pid)
        return f"PID {pid} terminated"

    def kill_process_group(self, name: str) -> str:
        """Kill every live process named ``name``."""
        groups = self._aggregator.grouped([name])
        if not groups:
            raise NotFound(name, "running process")

        killed = 0
        failures: list[TerminationFailed] = []
        for pid in sorted(pid for group in groups for pid in group.pids):
            try:
                self._terminator.terminate(pid)
                killed += 1
            except TerminationFailed as exc:
                failures.append(exc)

        if killed:
            noun = "process" if killed == 1 else "processes"
            return f"Killed {killed} {noun}, {len(failures)} failed"
        first = failures[0]
        raise TerminationFailed(
            first.pid, f"{len(failures)} processes could not be killed ({first.reason})"
        )

    def is_running_as_admin(self) -> bool:
        return is_elevated()

    # -- blacklist --

    def get_blacklist(self) -> list[BlacklistEntry]:
        return self.state.rules.list()

    def add_to_blacklist(self, name: str, auto_kill: bool, cpu_threshold: float) -> str:
        entry = self.state.rules.add(name, auto_kill, cpu_threshold)
        self._save()
        return f"{entry.name} added to blacklist"

    def remove_from_blacklist(self, name: str) -> str:
        self.state.rules.remove(name)
        self._save()
        return f"{name} removed from blacklist"

    def toggle_auto_kill(self, name: str) -> bool:
        value = self.state.rules.toggle_auto_kill(name)
        self._save()
        return value

    def toggle_blacklist_log(self, name: str) -> bool:
        value = self.state.rules.toggle_log(name)
        self._save()
        return value

    def toggle_log_kills_only(self, name: str) -> bool:
        value = self.state.rules.toggle_log_kills_only(name)
        self._save()
        return value

    def set_cpu_threshold(self, name: str, threshold: float) -> int:
        value = self.state.rules.set_cpu_threshold(name, threshold)
        self._save()
        return value

    def set_gpu_threshold(self, name: str, threshold: float) -> int:
        value = self.state.rules.set_gpu_threshold(name, threshold)
        self._save()
        return value

    # -- engine and activity log --

    def check_and_kill_blacklist(self) -> list[ActivityLogEntry]:
        """Run one tick now; returns [] if a scheduled tick is in progress."""
        return self.enforcer.run_once() or []

    def get_activity_logs(self, limit: int | None = None) -> list[ActivityLogEntry]:
        return self.state.log.newest_first(limit)

    def clear_activity_logs(self) -> str:
        self.state.log.clear()
        self._save()
        return "Logs cleared"
