"""procwarden - Main Textual application."""

import argparse
import logging
from pathlib import Path
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import DataTable, Footer, Input, Static

from procwarden.commands import WardenService
from procwarden.config import ConfigStore
from procwarden.errors import WardenError
from procwarden.logging_ import setup_logging
from procwarden.models import ActivityLogEntry, BlacklistEntry, SystemStats
from procwarden.paths import state_path
from procwarden.persistence import StateFile

log = logging.getLogger(__name__)


def format_threshold(wire_value: int) -> str:
    """Format a threshold for display; 101 means off."""
    return "off" if wire_value > 100 else f"{wire_value}%"


def parse_add_command(text: str) -> tuple[str, float]:
    """
    Parse ``"<name> [cpu]"`` from the add box.

    The CPU threshold defaults to 0, meaning kill on sight.
    """
    parts = text.strip().rsplit(maxsplit=1)
    if len(parts) == 2:
        try:
            return parts[0], float(parts[1].rstrip("%"))
        except ValueError:
            pass
    return text.strip(), 0.0


class HeaderStats(Static):
    """Header widget showing CPU, memory and privilege status."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def update_stats(self, stats: SystemStats, elevated: bool) -> None:
        """Update the statistics from a system snapshot."""
        bar_len = min(int(stats.cpu_percent / 5), 20)
        bar = "[green]█[/green]" * bar_len + "[dim]░[/dim]" * (20 - bar_len)
        disks = "  ".join(
            f"{d.mount_point} {d.usage_percent:.0f}%" for d in stats.disks[:4]
        )
        admin = "[green]admin[/green]" if elevated else "[yellow]not admin[/yellow]"
        # Escaped bracket for the bar container
        self.update(
            f"CPU \\[{bar}] {stats.cpu_percent:5.1f}%   "
            f"Mem {stats.memory_used_gb:.1f}G/{stats.memory_total_gb:.1f}G "
            f"({stats.memory_percent:.0f}%)   {admin}\n"
            f"Disks: {disks or '-'}"
        )


class BlacklistTable(DataTable):
    """Table of blacklist entries keyed by name."""

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.add_column("Name", key="name")
        self.add_column("Auto-kill", key="auto_kill", width=9)
        self.add_column("CPU", key="cpu", width=5)
        self.add_column("GPU", key="gpu", width=5)
        self.add_column("Log", key="log", width=10)
        self.add_column("Kills", key="kills", width=6)

    @property
    def selected_name(self) -> str | None:
        """Name of the entry under the cursor, if any."""
        if self.row_count == 0:
            return None
        row_key, _ = self.coordinate_to_cell_key(self.cursor_coordinate)
        return row_key.value

    def update_entries(self, entries: list[BlacklistEntry]) -> None:
        cursor = self.cursor_row
        self.clear()
        for entry in entries:
            if not entry.log_enabled:
                log_mode = "off"
            elif entry.log_kills_only:
                log_mode = "kills"
            else:
                log_mode = "all"
            self.add_row(
                entry.name,
                "on" if entry.auto_kill else "watch",
                format_threshold(entry.cpu_threshold.to_wire()),
                format_threshold(entry.gpu_threshold.to_wire()),
                log_mode,
                str(entry.kill_count),
                key=entry.name,
            )
        if entries:
            self.move_cursor(row=min(cursor, len(entries) - 1))


class ActivityTable(DataTable):
    """Most recent activity log entries, newest first."""

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.add_column("Time", key="time", width=19)
        self.add_column("Name", key="name")
        self.add_column("PID", key="pid", width=8)
        self.add_column("CPU%", key="cpu", width=6)
        self.add_column("GPU%", key="gpu", width=6)
        self.add_column("Action", key="action", width=8)
        self.add_column("Reason", key="reason")

    def update_entries(self, entries: list[ActivityLogEntry]) -> None:
        self.clear()
        for entry in entries:
            self.add_row(
                entry.detected_at.strftime("%Y-%m-%d %H:%M:%S"),
                entry.name,
                str(entry.pid),
                f"{entry.cpu_usage:5.1f}",
                f"{entry.gpu_usage:5.1f}",
                "[red]killed[/red]" if entry.was_killed else "seen",
                entry.reason,
            )


class ProcwardenApp(App):
    """Main procwarden application."""

    TITLE = "procwarden"
    SUB_TITLE = "Process Auto-Kill Agent"

    CSS = """
    Screen {
        layout: vertical;
    }

    #tables {
        height: 1fr;
    }

    #blacklist {
        width: 2fr;
        border: solid $primary;
    }

    #activity {
        width: 3fr;
        border: solid $secondary;
    }

    #add-input {
        dock: bottom;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("a", "focus_add", "Add"),
        ("d", "remove", "Remove"),
        ("k", "toggle_auto_kill", "Auto-kill"),
        ("l", "toggle_log", "Log"),
        ("o", "toggle_kills_only", "Kills only"),
        ("c", "clear_logs", "Clear log"),
    ]

    # Keys are bindings, not text, until the add box is focused
    AUTO_FOCUS = "#blacklist"

    LOG_ROWS = 100

    def __init__(
        self,
        service: WardenService | None = None,
        update_queue: Queue[list[ActivityLogEntry]] | None = None,
    ) -> None:
        """
        Initialize the ProcwardenApp.

        Args:
            service: Service to drive; a default psutil-backed one if None.
            update_queue: Queue the service's enforcer pushes new log entries to.
        """
        super().__init__()
        self._update_queue: Queue[list[ActivityLogEntry]] = update_queue or Queue()
        self._service = service or WardenService(update_queue=self._update_queue)

    @property
    def service(self) -> WardenService:
        return self._service

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        with Horizontal(id="tables"):
            yield BlacklistTable(id="blacklist")
            yield ActivityTable(id="activity")
        yield Input(placeholder="Add: <process name> [cpu %]", id="add-input")
        yield Footer()

    def on_mount(self) -> None:
        """Start enforcing when the app is mounted."""
        self._service.start()
        self.query_one(BlacklistTable).focus()
        # Tables add their columns in their own on_mount
        self.call_after_refresh(self.refresh_tables)
        self.call_after_refresh(self._refresh_stats)
        self.set_interval(0.5, self._check_for_updates)
        self.set_interval(2.0, self._refresh_stats)

    def on_unmount(self) -> None:
        self._service.stop()

    def _check_for_updates(self) -> None:
        """Refresh the tables when the enforcer reports new activity."""
        changed = False
        while True:
            try:
                self._update_queue.get_nowait()
                changed = True
            except Empty:
                break
        if changed:
            self.refresh_tables()

    def _refresh_stats(self) -> None:
        try:
            stats = self._service.get_system_stats()
        except OSError as exc:
            log.warning("System stats unavailable: %s", exc)
            return
        self.query_one(HeaderStats).update_stats(stats, self._service.is_running_as_admin())

    def refresh_tables(self) -> None:
        self.query_one(BlacklistTable).update_entries(self._service.get_blacklist())
        self.query_one(ActivityTable).update_entries(
            self._service.get_activity_logs(self.LOG_ROWS)
        )

    def _run_command(self, command, *args) -> None:
        """Run a service command, reporting store errors as notifications."""
        try:
            result = command(*args)
        except WardenError as exc:
            self.notify(str(exc), severity="error")
            return
        except ValueError as exc:
            self.notify(str(exc), severity="warning")
            return
        if isinstance(result, str):
            self.notify(result)
        self.refresh_tables()

    def _selected(self) -> str | None:
        name = self.query_one(BlacklistTable).selected_name
        if name is None:
            self.notify("Blacklist is empty", severity="warning")
        return name

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if not event.value.strip():
            return
        name, cpu = parse_add_command(event.value)
        self._run_command(self._service.add_to_blacklist, name, True, cpu)
        event.input.value = ""
        self.query_one(BlacklistTable).focus()

    def action_focus_add(self) -> None:
        self.query_one("#add-input", Input).focus()

    def action_remove(self) -> None:
        name = self._selected()
        if name is not None:
            self._run_command(self._service.remove_from_blacklist, name)

    def action_toggle_auto_kill(self) -> None:
        name = self._selected()
        if name is not None:
            self._run_command(self._service.toggle_auto_kill, name)

    def action_toggle_log(self) -> None:
        name = self._selected()
        if name is not None:
            self._run_command(self._service.toggle_blacklist_log, name)

    def action_toggle_kills_only(self) -> None:
        name = self._selected()
        if name is not None:
            self._run_command(self._service.toggle_log_kills_only, name)

    def action_clear_logs(self) -> None:
        self._run_command(self._service.clear_activity_logs)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._service.stop()
        self.exit()


def main() -> None:
    """Entry point for the procwarden application."""
    parser = argparse.ArgumentParser(
        prog="procwarden", description="Kill processes that break your CPU/GPU rules."
    )
    parser.add_argument("--config", type=Path, help="path to config.json")
    parser.add_argument("--interval", type=float, help="seconds between ticks")
    parser.add_argument("--verbose", action="store_true", help="log at DEBUG level")
    parser.add_argument(
        "--no-persist", action="store_true", help="keep the blacklist in memory only"
    )
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, console=False)
    config = ConfigStore(args.config).load()
    if args.interval is not None:
        config.poll_interval = max(0.1, args.interval)

    state_file = None
    if config.persist_state and not args.no_persist:
        state_file = StateFile(state_path())

    update_queue: Queue[list[ActivityLogEntry]] = Queue()
    service = WardenService(config, state_file=state_file, update_queue=update_queue)
    app = ProcwardenApp(service, update_queue)
    app.run()


if __name__ == "__main__":
    main()
