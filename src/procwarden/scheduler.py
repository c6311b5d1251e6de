"""Periodic driver for decision engine ticks."""

import logging
import threading
from queue import Queue
from typing import Callable

from procwarden.errors import ProviderUnavailable
from procwarden.models import ActivityLogEntry

log = logging.getLogger(__name__)

TickFunction = Callable[[], list[ActivityLogEntry]]


class Enforcer:
    """
    Runs a tick function at a fixed interval in a daemon thread.

    Ticks never overlap: a single-flight guard makes ``run_once`` return None
    while another tick (scheduled or manual) is in progress. A failing tick is
    logged and the loop carries on. New log entries are pushed to
    ``update_queue`` when one is given.
    """

    def __init__(
        self,
        tick: TickFunction,
        poll_rate: float = 1.0,
        update_queue: Queue[list[ActivityLogEntry]] | None = None,
    ) -> None:
        """
        Initialize the Enforcer.

        Args:
            tick: Callable running one full engine tick.
            poll_rate: Seconds between ticks. Default 1.0s.
            update_queue: Optional queue receiving each tick's new log entries.
        """
        self._tick = tick
        self._poll_rate = max(0.1, poll_rate)
        self._queue = update_queue
        self._stop_event = threading.Event()
        self._in_flight = threading.Lock()
        self._thread: threading.Thread | None = None
        self.ticks_run = 0
        self.ticks_failed = 0

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the enforcer thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def busy(self) -> bool:
        """Whether a tick is executing right now."""
        return self._in_flight.locked()

    def start(self) -> None:
        """Start the enforcer thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="Enforcer",
        )
        self._thread.start()
        log.info("Enforcer started (every %.1fs)", self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop scheduling ticks.

        A tick already running is allowed to finish.

        Args:
            timeout: How long to wait for the thread to stop (seconds); None
                waits for the running tick however long it takes.
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                log.warning("Enforcer still finishing a tick after %ss", timeout)
                return
            self._thread = None
            log.info("Enforcer stopped")

    def run_once(self) -> list[ActivityLogEntry] | None:
        """
        Run one tick now unless one is already in progress.

        Exceptions from the tick propagate to the caller.
        """
        if not self._in_flight.acquire(blocking=False):
            log.debug("Tick skipped, previous tick still running")
            return None
        try:
            entries = self._tick()
        finally:
            self._in_flight.release()
        self.ticks_run += 1
        if entries and self._queue is not None:
            self._queue.put(entries)
        return entries

    def _poll_loop(self) -> None:
        """Main loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except ProviderUnavailable as exc:
                self.ticks_failed += 1
                log.warning("Tick abandoned: %s", exc)
            except Exception:
                self.ticks_failed += 1
                log.exception("Tick failed; retrying next interval")

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)
