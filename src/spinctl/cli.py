"""
Main REPL application for the SPIN remote SDC-1.

Scans for a remote, connects to the first one found and shows its actions,
with an interactive command loop, auto-completion and an optional live
status display.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import InMemoryHistory

from .commands import COMMANDS, CommandCompleter, get_command
from .config import Settings, parse_led_color, parse_timeout
from .controller import SessionController
from .display import DisplayManager
from .errors import SpinctlError
from .handshake import HandshakeMachine
from .transports.bleak_gatt import BleakTransport
from .transports.scanner import BleakDiscovery, find_remotes

logger = logging.getLogger(__name__)


class SpinApp:
    """Wires the bleak backends, session controller and display together."""

    def __init__(self, settings: Settings, display: Optional[DisplayManager] = None) -> None:
        self.settings = settings
        self.display = display or DisplayManager()
        self.transport = BleakTransport(connect_timeout=settings.connect_timeout)
        self.discovery = BleakDiscovery(filter_uuid=settings.scan_filter_uuid)
        self.controller = SessionController(
            self.transport,
            self.discovery,
            self.display,
            machine=HandshakeMachine(
                self.transport, self.display, led_color=settings.led_color
            ),
        )
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start consuming events (scanning begins immediately)."""
        if self._task is None:
            self._task = asyncio.create_task(self.controller.run())

    async def shutdown(self) -> None:
        """Stop the session and wait for the cleanup requests to finish."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.controller.stop()
        await self.transport.close()
        await self.discovery.close()


class SpinctlREPL:
    """Interactive REPL for the SPIN remote."""

    def __init__(self, settings: Settings) -> None:
        """Initialize REPL with app wiring and prompt session."""
        self.app = SpinApp(settings)
        self.display = self.app.display
        self.controller = self.app.controller
        self.running = False

        self.session: PromptSession = PromptSession(
            completer=CommandCompleter(),
            history=InMemoryHistory(),
            enable_history_search=True,
        )

    async def run(self) -> None:
        """Run the main REPL loop."""
        self.running = True
        self.display.print_banner()
        self.display.print_info("Scanning for SPIN remote...")
        self.app.start()

        try:
            while self.running:
                try:
                    text = await self.session.prompt_async(self._get_prompt())
                    if text.strip():
                        await self._handle_input(text.strip())
                except KeyboardInterrupt:
                    # Just show new prompt on Ctrl+C
                    self.display.console.print()
                    continue
        except EOFError:
            # End of input (Ctrl+D)
            await self.cmd_quit([])
        finally:
            self.running = False
            self.display.stop_live()
            await self.app.shutdown()

    def _get_prompt(self) -> FormattedText:
        """Get dynamic prompt based on session state."""
        session = self.controller.session
        if self.controller.is_active and session is not None:
            return FormattedText([("class:prompt", f"[{session.device.address}] > ")])
        if session is not None:
            return FormattedText([("class:prompt", f"[{session.state.value}] > ")])
        return FormattedText([("class:prompt", "[scanning] > ")])

    async def _handle_input(self, text: str) -> None:
        """Parse and dispatch command.

        Args:
            text: Raw user input text
        """
        parts = text.split(maxsplit=1)
        cmd_name = parts[0].lower()
        args = parts[1].split() if len(parts) > 1 else []

        cmd = get_command(cmd_name)
        if not cmd:
            self.display.print_error(
                f"Unknown command: {cmd_name}. Type 'help' for available commands."
            )
            return

        handler = getattr(self, cmd.handler, None)
        if handler is None:
            self.display.print_error(f"Handler not found: {cmd.handler}")
            return

        try:
            await handler(args)
        except Exception as e:
            self.display.print_error(f"Command failed: {e}")
            logger.exception("Command exception")

    # ========== Command Handlers ==========

    async def cmd_status(self, args: list) -> None:
        """Show remote address, RSSI, status and last action."""
        self.display.print_status()

    async def cmd_live(self, args: list) -> None:
        """Toggle live display mode."""
        if not self.display.toggle_live():
            self.display.print_info("Live display disabled")

    async def cmd_restart(self, args: list) -> None:
        """Drop the current remote and scan again."""
        self.controller.stop()
        self.display.reset()
        self.display.print_info("Scanning for SPIN remote...")
        self.controller.start()

    async def cmd_help(self, args: list) -> None:
        """Show all available commands."""
        self.display.print_help(COMMANDS)

    async def cmd_quit(self, args: list) -> None:
        """Exit the REPL."""
        self.display.stop_live()
        if self.controller.session is not None:
            self.display.print_info("Disconnecting...")
        self.display.console.print("[cyan]Goodbye![/cyan]")
        self.running = False


async def run_watch(settings: Settings) -> None:
    """Run headless, printing remote events until interrupted."""
    app = SpinApp(settings)
    app.display.print_info("Scanning for SPIN remote... (Ctrl+C to stop)")
    app.start()
    try:
        await asyncio.Event().wait()
    finally:
        await app.shutdown()


async def run_scan(settings: Settings, timeout: float) -> int:
    """Scan once, list the remotes found and return an exit code."""
    display = DisplayManager()
    display.print_info(f"Scanning for {timeout:.0f}s...")
    devices = await find_remotes(timeout=timeout, filter_uuid=settings.scan_filter_uuid)
    if not devices:
        display.print_error("No SPIN remote found. Make sure it's awake and in range.")
        return 1
    display.print_devices(devices)
    return 0


def build_settings(args: argparse.Namespace) -> Settings:
    """Environment settings overridden by command-line flags."""
    settings = Settings.from_env()
    if args.timeout is not None:
        settings = dataclasses.replace(settings, connect_timeout=args.timeout)
    if args.led is not None:
        settings = dataclasses.replace(settings, led_color=args.led)
    return settings


def _arg_type(parser_fn):  # type: ignore[no-untyped-def]
    def convert(value: str):  # type: ignore[no-untyped-def]
        try:
            return parser_fn(value)
        except SpinctlError as e:
            raise argparse.ArgumentTypeError(str(e)) from None

    return convert


def main(argv: Optional[list] = None) -> None:
    """Entry point for the REPL application."""
    parser = argparse.ArgumentParser(
        description="SPIN remote SDC-1 control",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  spinctl                    # Start interactive REPL
  spinctl --watch           # Print remote actions until Ctrl+C
  spinctl --scan            # List nearby SPIN remotes
  spinctl --led 00ff00      # Light the remote green while connected

Environment:
  SPINCTL_CONNECT_TIMEOUT   Connect timeout in seconds
  SPINCTL_LED_COLOR         LED color while connected (rrggbb)
        """,
    )

    parser.add_argument(
        "--watch", action="store_true", help="Run without the REPL, printing actions"
    )

    parser.add_argument(
        "--scan", action="store_true", help="List nearby SPIN remotes and exit"
    )

    parser.add_argument(
        "--scan-timeout",
        type=_arg_type(parse_timeout),
        default=5.0,
        help="Scan duration for --scan in seconds (default: 5)",
    )

    parser.add_argument(
        "--timeout",
        type=_arg_type(parse_timeout),
        default=None,
        help="Connect timeout in seconds",
    )

    parser.add_argument(
        "--led",
        type=_arg_type(parse_led_color),
        default=None,
        help="LED color while connected, as rrggbb (default: ff0000)",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    if args.watch and args.scan:
        print("Error: Only one of --watch and --scan can be specified", file=sys.stderr)
        sys.exit(1)

    try:
        settings = build_settings(args)
        if args.scan:
            sys.exit(asyncio.run(run_scan(settings, args.scan_timeout)))
        elif args.watch:
            asyncio.run(run_watch(settings))
        else:
            asyncio.run(SpinctlREPL(settings).run())
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(0)
    except SpinctlError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
