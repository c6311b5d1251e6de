"""Exception types raised by procwarden."""


class WardenError(Exception):
    """Base class for all procwarden errors."""


class DuplicateEntry(WardenError):
    """A blacklist entry with this name already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is already in the blacklist")
        self.name = name


class NotFound(WardenError):
    """No blacklist entry (or no live process) matches the given name."""

    def __init__(self, name: str, what: str = "blacklist entry") -> None:
        super().__init__(f"No {what} named {name!r}")
        self.name = name


class TerminationFailed(WardenError):
    """The OS refused to end a process, or it was already gone."""

    def __init__(self, pid: int, reason: str) -> None:
        super().__init__(f"Failed to kill PID {pid}: {reason}")
        self.pid = pid
        self.reason = reason


class ProviderUnavailable(WardenError):
    """The process table could not be read; the current tick is abandoned."""
