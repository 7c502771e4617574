"""
Display manager for Rich-based REPL output and live updates.

Acts as the event sink for a session: every session event updates the
displayed address, RSSI, connection status and last action.
"""

import logging
from typing import Any, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from .events import ActionReceived, DeviceFound, SessionActive, SessionFailed

logger = logging.getLogger(__name__)


class DisplayManager:
    """Manages console output with Rich library."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize display manager.

        Args:
            console: Rich Console instance (creates one if None)
        """
        self.console = console or Console()
        self.live_enabled = False
        self._live: Optional[Live] = None
        self._data: dict[str, Any] = self._empty_data()

    @staticmethod
    def _empty_data() -> dict[str, Any]:
        return {"address": "", "rssi": None, "status": "Scanning", "action": None}

    @property
    def data(self) -> dict[str, Any]:
        """Snapshot of what is currently displayed."""
        return dict(self._data)

    def emit(self, event: Any) -> None:
        """Receive a session event and update the display.

        Args:
            event: DeviceFound, SessionActive, SessionFailed or ActionReceived
        """
        if isinstance(event, DeviceFound):
            self._data.update(
                address=event.address, rssi=event.rssi, status="Connecting"
            )
            self._print(f"Found SPIN remote {event.address} ({self.format_rssi(event.rssi)})")
        elif isinstance(event, SessionActive):
            self._data["status"] = "Connected"
            self._print(f"[green]✓[/green] Connected to {event.address}")
        elif isinstance(event, SessionFailed):
            # Address and RSSI are only meaningful while a session exists
            self._data = self._empty_data()
            reason = f": {event.reason}" if event.reason else ""
            self._print(f"[yellow]⚠[/yellow] Connection lost{reason}, scanning again")
        elif isinstance(event, ActionReceived):
            self._data["action"] = (event.code, event.description)
            self._print(f"Action: {self.format_action(event.code, event.description)}")
        else:
            logger.debug(f"Unhandled display event: {event!r}")
            return

        self._refresh_live()

    def reset(self) -> None:
        """Clear the device section, e.g. after a manual restart."""
        self._data = self._empty_data()
        self._refresh_live()

    def print_banner(self) -> None:
        """Print startup banner."""
        panel = Panel(
            "[bold cyan]spinctl - SPIN remote SDC-1[/bold cyan]\n"
            "[dim]Type 'help' for commands, 'quit' to exit[/dim]",
            expand=False,
        )
        self.console.print(panel)

    def print_status(self) -> None:
        """Display one-time status table."""
        self.console.print(self.format_status_table(self._data))

    def print_devices(self, devices: list) -> None:
        """Display scan results.

        Args:
            devices: List of DeviceHandle objects
        """
        table = Table(title="SPIN remotes", show_header=True, header_style="bold cyan")
        table.add_column("Address", style="cyan")
        table.add_column("Name", style="white")
        table.add_column("RSSI", style="yellow")
        for device in devices:
            table.add_row(device.address, device.name or "-", self.format_rssi(device.rssi))
        self.console.print(table)

    def print_error(self, message: str) -> None:
        """Print red error message."""
        self.console.print(f"[red]Error:[/red] {message}", highlight=False)

    def print_info(self, message: str) -> None:
        """Print blue info message."""
        self.console.print(f"[cyan]Info:[/cyan] {message}", highlight=False)

    def print_help(self, commands: list) -> None:
        """Display command reference.

        Args:
            commands: List of Command objects
        """
        table = Table(title="Available Commands", show_header=True)
        table.add_column("Command", style="cyan")
        table.add_column("Aliases", style="magenta")
        table.add_column("Description", style="white")
        table.add_column("Usage", style="yellow")

        for cmd in commands:
            aliases = ", ".join(cmd.aliases) if cmd.aliases else "-"
            table.add_row(cmd.name, aliases, cmd.description, cmd.usage)

        self.console.print(table)
        self.console.print(
            "[dim]Keyboard shortcuts: Ctrl+C to interrupt, Ctrl+D to exit[/dim]"
        )

    def start_live(self) -> None:
        """Start live display refresh mode."""
        if self.live_enabled:
            return

        self.live_enabled = True
        self._live = Live(
            self.format_status_table(self._data),
            console=self.console,
            refresh_per_second=4,
        )
        self._live.start()
        self.console.print("[dim]Live display enabled ['live' to disable][/dim]")

    def stop_live(self) -> None:
        """Stop live display refresh mode."""
        if not self.live_enabled:
            return

        self.live_enabled = False
        if self._live is not None:
            self._live.stop()
            self._live = None

    def toggle_live(self) -> bool:
        """Toggle live display on/off.

        Returns:
            New live display state (True = on, False = off)
        """
        if self.live_enabled:
            self.stop_live()
        else:
            self.start_live()
        return self.live_enabled

    def format_status_table(self, data: dict) -> Table:
        """Create Rich Table for the device section.

        Args:
            data: Dictionary with address, rssi, status and action

        Returns:
            Rich Table object
        """
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="yellow")

        action = data.get("action")
        table.add_row("Status", data.get("status") or "-")
        table.add_row("Address", data.get("address") or "-")
        table.add_row("RSSI", self.format_rssi(data.get("rssi")))
        table.add_row("Action", self.format_action(*action) if action else "-")

        return table

    def _print(self, message: str) -> None:
        if self.live_enabled:
            return
        self.console.print(message, highlight=False)

    def _refresh_live(self) -> None:
        if not self.live_enabled or self._live is None:
            return
        try:
            self._live.update(self.format_status_table(self._data))
        except Exception as e:
            logger.error(f"Live update error: {e}")

    @staticmethod
    def format_rssi(rssi: Optional[int]) -> str:
        """Format signal strength, '-' when unknown."""
        if rssi is None:
            return "-"
        return f"{rssi} dBm"

    @staticmethod
    def format_action(code: int, description: str) -> str:
        """Format an action as '<code> - <description>'."""
        return f"{code} - {description}"
