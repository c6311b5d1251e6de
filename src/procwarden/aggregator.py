"""Grouping of raw process samples by name."""

from collections.abc import Iterable
from typing import Protocol

from procwarden.models import ProcessGroup, ProcessSample

# Friendly names users type, mapped to the process name they mean
_ALIASES = {
    "edge": "msedge",
    "microsoft edge": "msedge",
    "google chrome": "chrome",
    "vscode": "code",
    "vs code": "code",
    "calc": "calculator",
    "task manager": "taskmgr",
    "command prompt": "cmd",
}


class SnapshotProvider(Protocol):
    def sample(self) -> list[ProcessSample]: ...


def match_key(name: str) -> str:
    """
    Normalize a process or rule name for comparison.

    Matching is exact on the key: case-insensitive, surrounding whitespace
    ignored and a trailing ``.exe`` dropped, so "Chrome.exe" matches a rule
    named "chrome" but "chromedriver" does not.
    """
    key = name.strip().casefold()
    if key.endswith(".exe"):
        key = key[:-4]
    return key


def resolve_process_name(name: str) -> str:
    """Map a user-typed alias to the process name it refers to."""
    cleaned = name.strip()
    return _ALIASES.get(cleaned.casefold(), cleaned)


def rule_key(name: str) -> str:
    """Key a rule name by the process it refers to, aliases resolved."""
    return match_key(resolve_process_name(name))


def _wanted_keys(names: Iterable[str]) -> set[str]:
    return {key for key in map(rule_key, names) if key}


def filter_samples(
    samples: Iterable[ProcessSample], names: Iterable[str]
) -> list[ProcessSample]:
    """Return the samples whose name matches one of ``names``."""
    wanted = _wanted_keys(names)
    return [s for s in samples if match_key(s.name) in wanted]


def group_samples(
    samples: Iterable[ProcessSample], names: Iterable[str] | None = None
) -> list[ProcessGroup]:
    """
    Sum samples into one group per name, highest total CPU first.

    With ``names`` None every process is grouped; otherwise only names that
    match. Groups are keyed by match key but carry the first live name seen.
    """
    wanted = None if names is None else _wanted_keys(names)

    buckets: dict[str, list[ProcessSample]] = {}
    for sample in samples:
        key = match_key(sample.name)
        if wanted is not None and key not in wanted:
            continue
        buckets.setdefault(key, []).append(sample)

    groups = [
        ProcessGroup(
            name=members[0].name,
            pids=frozenset(s.pid for s in members),
            total_cpu=sum(s.cpu_percent for s in members),
            total_memory_kb=sum(s.memory_kb for s in members),
            total_gpu=sum(s.gpu_percent for s in members),
        )
        for members in buckets.values()
    ]
    groups.sort(key=lambda g: g.total_cpu, reverse=True)
    return groups


class Aggregator:
    """Queries a sample source only when there is something to look for."""

    def __init__(self, source: SnapshotProvider) -> None:
        self._source = source

    def watched(self, names: Iterable[str]) -> list[ProcessSample]:
        names = list(names)
        if not _wanted_keys(names):
            return []
        return filter_samples(self._source.sample(), names)

    def grouped(self, names: Iterable[str]) -> list[ProcessGroup]:
        names = list(names)
        if not _wanted_keys(names):
            return []
        return group_samples(self._source.sample(), names)

    def all_groups(self) -> list[ProcessGroup]:
        return group_samples(self._source.sample())
