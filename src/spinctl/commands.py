"""
Command definitions and auto-completion for REPL.

Defines all available commands with metadata and provides a completer
for prompt_toolkit auto-completion.
"""

from dataclasses import dataclass
from typing import Any, List

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document


@dataclass
class Command:
    """Command definition with metadata."""

    name: str
    aliases: List[str]
    description: str
    usage: str
    handler: str


COMMANDS = [
    Command(
        name="status",
        aliases=["st"],
        description="Show remote address, RSSI, connection status and last action",
        usage="status",
        handler="cmd_status",
    ),
    Command(
        name="live",
        aliases=["l"],
        description="Toggle live display mode",
        usage="live",
        handler="cmd_live",
    ),
    Command(
        name="restart",
        aliases=["r"],
        description="Drop the current remote and scan again",
        usage="restart",
        handler="cmd_restart",
    ),
    Command(
        name="help",
        aliases=["h", "?"],
        description="Show all available commands",
        usage="help",
        handler="cmd_help",
    ),
    Command(
        name="quit",
        aliases=["q", "exit"],
        description="Exit the REPL",
        usage="quit",
        handler="cmd_quit",
    ),
]


def get_command(name: str) -> Command | None:
    """Get command by name or alias.

    Args:
        name: Command name or alias

    Returns:
        Command object if found, None otherwise
    """
    for cmd in COMMANDS:
        if cmd.name == name or name in cmd.aliases:
            return cmd
    return None


class CommandCompleter(Completer):
    """Auto-completion for command names and aliases."""

    def __init__(self) -> None:
        self._command_names = set()
        self._command_aliases = set()

        for cmd in COMMANDS:
            self._command_names.add(cmd.name)
            self._command_aliases.update(cmd.aliases)

    def get_completions(self, document: Document, complete_event) -> Any:  # type: ignore[no-untyped-def]
        """Get completion suggestions for current input.

        Yields:
            Completion objects for matching commands
        """
        text = document.text_before_cursor.lstrip()
        parts = text.split()

        # None of the commands take arguments
        if not text or len(parts) > 1:
            return

        partial_cmd = parts[0].lower()
        for name in sorted(self._command_names | self._command_aliases):
            if name.startswith(partial_cmd):
                yield Completion(
                    name[len(partial_cmd) :],
                    start_position=-len(partial_cmd),
                    display=f"({name})",
                )
