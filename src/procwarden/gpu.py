"""
Per-process GPU utilization via ``nvidia-smi pmon``.

Runs ``nvidia-smi pmon -c 1 -s u`` and sums the SM utilization column per
PID across GPUs. Any failure (no NVIDIA driver, timeout, unparsable output)
yields an empty mapping so GPU usage reads as 0.0.
"""

import logging
import shutil
import subprocess
import time

log = logging.getLogger(__name__)


def parse_pmon(output: str) -> dict[int, float]:
    """Parse ``nvidia-smi pmon`` output into ``{pid: sm_percent}``."""
    usage: dict[int, float] = {}
    for line in output.splitlines():
        fields = line.split()
        if not fields or fields[0].startswith("#") or len(fields) < 4:
            continue
        try:
            pid = int(fields[1])
        except ValueError:
            continue
        sm = fields[3]
        if sm == "-":
            continue
        try:
            usage[pid] = usage.get(pid, 0.0) + float(sm)
        except ValueError:
            continue
    return usage


class NvidiaSmiGpuSampler:
    """Samples per-PID GPU usage, at most once per ``min_interval`` seconds."""

    def __init__(self, timeout: float = 2.0, min_interval: float = 1.0) -> None:
        self._timeout = timeout
        self._min_interval = min_interval
        self._path = shutil.which("nvidia-smi")
        self._last_sample_time = 0.0
        self._last_usage: dict[int, float] = {}
        if self._path:
            log.debug("Detected nvidia-smi at: %s", self._path)

    @property
    def available(self) -> bool:
        return self._path is not None

    def sample(self) -> dict[int, float]:
        if self._path is None:
            return {}

        now = time.monotonic()
        if now - self._last_sample_time < self._min_interval:
            return self._last_usage
        self._last_sample_time = now

        try:
            result = subprocess.run(
                [self._path, "pmon", "-c", "1", "-s", "u"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            log.debug("nvidia-smi pmon failed: %s", exc)
            self._last_usage = {}
            return self._last_usage

        if result.returncode != 0:
            log.debug("nvidia-smi pmon exited with %d", result.returncode)
            self._last_usage = {}
        else:
            self._last_usage = parse_pmon(result.stdout)
        return self._last_usage
