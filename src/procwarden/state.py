"""Owned state shared by the decision engine and the command surface."""

import threading

from procwarden.activity import ActivityLog
from procwarden.rules import RuleStore


class WardenState:
    """The rule store and activity log, guarded by one re-entrant lock."""

    def __init__(self, log_capacity: int | None = None) -> None:
        self.lock = threading.RLock()
        self.rules = RuleStore(self.lock)
        self.log = ActivityLog(self.lock, capacity=log_capacity)
