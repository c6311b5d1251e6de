"""psutil-backed process snapshots, termination and privilege checks."""

import ctypes
import logging
import os

import psutil

from procwarden.errors import ProviderUnavailable, TerminationFailed
from procwarden.gpu import NvidiaSmiGpuSampler
from procwarden.models import DiskUsage, ProcessSample, SystemStats

log = logging.getLogger(__name__)

_GB = 1024**3


class PsutilSnapshotProvider:
    """
    Reads the process table with psutil.

    psutil caches Process objects between ``process_iter`` calls, so CPU
    readings are meaningful from the second sample onward (the first call for
    a new process returns 0.0). Processes that vanish or deny access mid-read
    are skipped.
    """

    _ATTRS = ["pid", "name", "cpu_percent", "memory_info"]

    def __init__(self, gpu_sampler: NvidiaSmiGpuSampler | None = None) -> None:
        self._gpu = gpu_sampler
        self._cpu_count = psutil.cpu_count() or 1

    def sample(self) -> list[ProcessSample]:
        gpu_usage = self._gpu.sample() if self._gpu is not None else {}
        samples: list[ProcessSample] = []

        try:
            procs = psutil.process_iter(attrs=self._ATTRS)
            for proc in procs:
                try:
                    info = proc.info
                    mem_info = info.get("memory_info")
                    pid = info.get("pid", 0)
                    samples.append(
                        ProcessSample(
                            pid=pid,
                            name=info.get("name") or "",
                            cpu_percent=(info.get("cpu_percent") or 0.0) / self._cpu_count,
                            memory_kb=mem_info.rss // 1024 if mem_info else 0,
                            gpu_percent=gpu_usage.get(pid, 0.0),
                        )
                    )
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError) as exc:
            raise ProviderUnavailable(f"Cannot read process table: {exc}") from exc

        return samples


class PsutilTerminator:
    """Ends a process with SIGTERM, escalating to SIGKILL after ``timeout``."""

    def __init__(self, timeout: float = 3.0) -> None:
        self.timeout = timeout

    def terminate(self, pid: int) -> None:
        """
        Terminate ``pid``.

        Raises:
            TerminationFailed: the process does not exist or access was denied.
        """
        try:
            proc = psutil.Process(pid)
            proc.terminate()
            try:
                proc.wait(timeout=self.timeout)
            except psutil.TimeoutExpired:
                proc.kill()
                proc.wait(timeout=self.timeout)
        except psutil.NoSuchProcess:
            raise TerminationFailed(pid, "process not found") from None
        except psutil.AccessDenied:
            raise TerminationFailed(pid, "access denied") from None
        except (psutil.TimeoutExpired, OSError) as exc:
            raise TerminationFailed(pid, str(exc) or type(exc).__name__) from exc
        log.info("Terminated PID %d", pid)


def is_elevated() -> bool:
    """Whether the current process has administrative rights."""
    try:
        if os.name == "nt":
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        return os.geteuid() == 0
    except (AttributeError, OSError):
        return False


def collect_system_stats() -> SystemStats:
    """Aggregate CPU, memory and per-disk usage."""
    mem = psutil.virtual_memory()
    disks: list[DiskUsage] = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except (PermissionError, OSError):
            # Unmounted drives and locked mount points
            continue
        disks.append(
            DiskUsage(
                device=part.device,
                mount_point=part.mountpoint,
                total_gb=usage.total / _GB,
                used_gb=usage.used / _GB,
                free_gb=usage.free / _GB,
                usage_percent=usage.percent,
            )
        )

    return SystemStats(
        cpu_percent=psutil.cpu_percent(interval=None),
        memory_total_gb=mem.total / _GB,
        memory_used_gb=mem.used / _GB,
        memory_percent=mem.percent,
        disks=disks,
    )
