"""Tests for the psutil-backed provider, terminator and probes."""

import multiprocessing
import os
import time

import psutil
import pytest

from procwarden.errors import TerminationFailed
from procwarden.gpu import NvidiaSmiGpuSampler, parse_pmon
from procwarden.models import ProcessSample, SystemStats
from procwarden.system import (
    PsutilSnapshotProvider,
    PsutilTerminator,
    collect_system_stats,
    is_elevated,
)


def dummy_worker(duration: float = 30.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


@pytest.fixture
def dummy_process():
    """Spawn a sleeping child process and make sure it is gone afterwards."""
    p = multiprocessing.Process(target=dummy_worker, args=(30.0,))
    p.start()
    try:
        yield p
    finally:
        if p.is_alive():
            p.kill()
        p.join(timeout=5.0)


class TestSnapshotProvider:
    """Tests for PsutilSnapshotProvider."""

    def test_returns_samples(self):
        """Test the provider returns ProcessSamples for running processes."""
        samples = PsutilSnapshotProvider().sample()

        assert len(samples) > 0
        for sample in samples[:5]:
            assert isinstance(sample, ProcessSample)
            assert isinstance(sample.name, str)
            assert isinstance(sample.cpu_percent, float)
            assert isinstance(sample.memory_kb, int)
            assert sample.gpu_percent == 0.0

    def test_includes_current_process(self):
        """Test our own PID appears with non-zero memory."""
        samples = {s.pid: s for s in PsutilSnapshotProvider().sample()}

        assert os.getpid() in samples
        assert samples[os.getpid()].memory_kb > 0

    def test_gpu_usage_is_joined_by_pid(self):
        """Test GPU readings from the sampler are attached to matching PIDs."""

        class StubGpu:
            def sample(self):
                return {os.getpid(): 12.5}

        samples = {s.pid: s for s in PsutilSnapshotProvider(StubGpu()).sample()}

        assert samples[os.getpid()].gpu_percent == 12.5

    def test_survives_processes_exiting(self):
        """Test sampling while children exit never raises."""
        processes = [
            multiprocessing.Process(target=dummy_worker, args=(0.05 * i,)) for i in range(10)
        ]
        for p in processes:
            p.start()
        try:
            provider = PsutilSnapshotProvider()
            for _ in range(5):
                assert isinstance(provider.sample(), list)
                time.sleep(0.05)
        finally:
            for p in processes:
                p.join(timeout=5.0)


class TestTerminator:
    """Tests for PsutilTerminator."""

    def test_terminates_process(self, dummy_process):
        """Test a child process is ended."""
        pid = dummy_process.pid
        PsutilTerminator(timeout=5.0).terminate(pid)

        # terminate() waits on (and so reaps) our own child
        assert not psutil.pid_exists(pid)

    def test_missing_pid(self, dummy_process):
        """Test terminating a PID that no longer exists fails cleanly."""
        pid = dummy_process.pid
        dummy_process.kill()
        dummy_process.join(timeout=5.0)

        with pytest.raises(TerminationFailed) as excinfo:
            PsutilTerminator().terminate(pid)
        assert excinfo.value.pid == pid

    @pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs an unprivileged user")
    def test_access_denied(self):
        """Test terminating PID 1 as a normal user reports access denied."""
        with pytest.raises(TerminationFailed) as excinfo:
            PsutilTerminator().terminate(1)
        assert excinfo.value.reason == "access denied"


def test_is_elevated_returns_bool():
    """Test the privilege probe always answers with a bool."""
    assert isinstance(is_elevated(), bool)


def test_collect_system_stats():
    """Test system stats report memory and disks."""
    stats = collect_system_stats()

    assert isinstance(stats, SystemStats)
    assert stats.memory_total_gb > 0
    assert 0.0 <= stats.memory_percent <= 100.0
    for disk in stats.disks:
        assert disk.total_gb >= disk.used_gb


class TestGpuSampler:
    """Tests for nvidia-smi pmon parsing."""

    PMON_OUTPUT = """\
# gpu        pid  type    sm   mem   enc   dec   command
# Idx          #   C/G     %     %     %     %   name
    0       1234     C    45     10     -     -   miner
    0       5678     G     -      -     -     -   Xorg
    1       1234     C    20      5     -     -   miner
    0          -     -     -      -     -     -   -
"""

    def test_parse_pmon_sums_per_pid(self):
        """Test SM usage is summed across GPUs and idle rows are skipped."""
        assert parse_pmon(self.PMON_OUTPUT) == {1234: 65.0}

    def test_parse_pmon_empty(self):
        """Test empty output yields no readings."""
        assert parse_pmon("") == {}

    def test_sampler_without_nvidia_smi(self, monkeypatch):
        """Test a missing nvidia-smi yields an empty mapping."""
        monkeypatch.setattr("procwarden.gpu.shutil.which", lambda name: None)
        sampler = NvidiaSmiGpuSampler()

        assert not sampler.available
        assert sampler.sample() == {}

