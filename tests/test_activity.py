"""Tests for the ActivityLog."""

from datetime import datetime

import pytest

from procwarden.activity import ActivityLog
from procwarden.models import ActivityLogEntry


def make_entry(pid: int, name: str = "miner", killed: bool = False) -> ActivityLogEntry:
    return ActivityLogEntry(
        name=name,
        pid=pid,
        cpu_usage=1.0,
        gpu_usage=0.0,
        detected_at=datetime(2024, 1, 1),
        was_killed=killed,
        reason="CPU ≥ 30%" if killed else "Watching",
    )


def test_append_and_list():
    """Test entries are stored in insertion order."""
    log = ActivityLog()
    log.append(make_entry(1))
    log.append(make_entry(2))
    assert [e.pid for e in log.list()] == [1, 2]


def test_newest_first():
    """Test newest_first reverses order and honours the limit."""
    log = ActivityLog()
    log.extend(make_entry(pid) for pid in range(5))

    assert [e.pid for e in log.newest_first()] == [4, 3, 2, 1, 0]
    assert [e.pid for e in log.newest_first(2)] == [4, 3]


def test_clear_is_idempotent():
    """Test clearing twice leaves an empty log with no error."""
    log = ActivityLog()
    log.append(make_entry(1))

    log.clear()
    assert log.list() == []
    log.clear()
    assert log.list() == []


def test_capacity_drops_oldest():
    """Test a bounded log evicts its oldest entries."""
    log = ActivityLog(capacity=3)
    log.extend(make_entry(pid) for pid in range(5))
    assert [e.pid for e in log.list()] == [2, 3, 4]
    assert log.capacity == 3


def test_unbounded_by_default():
    """Test no capacity means nothing is evicted."""
    log = ActivityLog()
    log.extend(make_entry(pid) for pid in range(2000))
    assert len(log) == 2000


def test_invalid_capacity():
    """Test a non-positive capacity is rejected."""
    with pytest.raises(ValueError):
        ActivityLog(capacity=0)


def test_filter():
    """Test filtering by name and by kills."""
    log = ActivityLog()
    log.append(make_entry(1, "miner", killed=True))
    log.append(make_entry(2, "Miner.exe"))
    log.append(make_entry(3, "other", killed=True))

    assert [e.pid for e in log.filter(name="miner")] == [2, 1]
    assert [e.pid for e in log.filter(killed_only=True)] == [3, 1]
    assert [e.pid for e in log.filter(name="miner", killed_only=True)] == [1]


def test_list_is_snapshot():
    """Test a returned list is unaffected by later appends."""
    log = ActivityLog()
    snapshot = log.list()
    log.append(make_entry(1))
    assert snapshot == []
