"""Shared fixtures: in-memory stand-ins for the OS-facing collaborators."""

from datetime import datetime

import pytest

from procwarden.errors import ProviderUnavailable, TerminationFailed
from procwarden.models import ProcessSample
from procwarden.state import WardenState


class FakeProvider:
    """Returns a fixed process table; removes killed PIDs when wired to a terminator."""

    def __init__(self, samples: list[ProcessSample] | None = None) -> None:
        self.samples = list(samples or [])
        self.calls = 0
        self.unavailable = False

    def sample(self) -> list[ProcessSample]:
        self.calls += 1
        if self.unavailable:
            raise ProviderUnavailable("process table locked")
        return list(self.samples)


class FakeTerminator:
    """Records terminated PIDs; ``failures`` maps PID to a failure reason."""

    def __init__(self, provider: FakeProvider | None = None) -> None:
        self.provider = provider
        self.killed: list[int] = []
        self.failures: dict[int, str] = {}

    def terminate(self, pid: int) -> None:
        if pid in self.failures:
            raise TerminationFailed(pid, self.failures[pid])
        self.killed.append(pid)
        if self.provider is not None:
            self.provider.samples = [s for s in self.provider.samples if s.pid != pid]


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def terminator(provider: FakeProvider) -> FakeTerminator:
    return FakeTerminator(provider)


@pytest.fixture
def state() -> WardenState:
    return WardenState()


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 5, 1, 12, 0, 0)
