from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from .config import Settings
from .errors import DuplicateCommandError, MalformedCommandArgumentError, NoMatchingCommandError
from .messages import MessageLog

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .session import NotionSession

TRIGGER = "/"
DIRECTIONS = ("up", "down")


@dataclass
class CommandContext:
    """Everything a command action may touch."""

    raw_input: str
    command: "Command"
    session: "NotionSession"
    messages: MessageLog
    settings: Settings
    registry: Optional["CommandRegistry"] = None
    clock: Callable[[], datetime] = datetime.now
    set_theme: Callable[[str], None] = lambda _theme: None

    @property
    def argument(self) -> str:
        return command_argument(self.raw_input, self.command.name)


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    action: Callable[[CommandContext], Any]
    usage: Optional[str] = None
    error_label: str = "Error"


def command_argument(raw_input: str, command_name: str) -> str:
    """Trailing text after ``command_name``; empty when the input does not carry it."""

    text = (raw_input or "").strip()
    if not text.lower().startswith(command_name.lower()):
        return ""
    return text[len(command_name):].strip()


def require_argument(raw_input: str, command_name: str, usage: Optional[str] = None) -> str:
    """Match ``<name> <argument>``; the argument needs one non-whitespace character."""

    pattern = re.compile(rf"^{re.escape(command_name)}\s+(.+)$", re.IGNORECASE | re.DOTALL)
    match = pattern.match((raw_input or "").strip())
    if not match or not match.group(1).strip():
        hint = usage or f"{command_name} <argument>"
        raise MalformedCommandArgumentError(f"Invalid {command_name.lstrip(TRIGGER)} command. Use format: {hint}")
    return match.group(1).strip()


class CommandRegistry:
    """Ordered set of slash commands with substring filtering and prefix dispatch."""

    def __init__(self) -> None:
        self._commands: Dict[str, Command] = {}

    def register(self, command: Command) -> Command:
        if not command.name.startswith(TRIGGER):
            raise ValueError(f"Command name must start with '{TRIGGER}': {command.name!r}")
        if command.name in self._commands:
            raise DuplicateCommandError(f"Command already registered: {command.name}")
        self._commands[command.name] = command
        return command

    @property
    def commands(self) -> Tuple[Command, ...]:
        return tuple(self._commands.values())

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    def get(self, name: str) -> Command:
        if name not in self._commands:
            raise NoMatchingCommandError(f"Unknown command: {name}")
        return self._commands[name]

    def filter(self, prefix_text: str) -> List[Command]:
        """Commands whose name contains ``prefix_text`` (case-insensitive), in registration order."""

        if prefix_text == TRIGGER:
            return list(self._commands.values())
        needle = prefix_text.lower()
        return [command for command in self._commands.values() if needle in command.name.lower()]

    def resolve(self, raw_input: str) -> Optional[Command]:
        """First command whose name is a prefix of the trimmed input."""

        text = (raw_input or "").strip()
        if not text.startswith(TRIGGER):
            return None
        for command in self._commands.values():
            if text.startswith(command.name):
                return command
        raise NoMatchingCommandError(f"Unknown command: {text.split()[0]}")

    def execute(self, command: Command, context: CommandContext) -> Any:
        return command.action(context)


@dataclass
class DispatchState:
    input_text: str = ""
    is_palette_open: bool = False
    filtered_commands: List[Command] = field(default_factory=list)
    selected_index: int = 0

    @property
    def selected_command(self) -> Optional[Command]:
        if not self.is_palette_open or not self.filtered_commands:
            return None
        return self.filtered_commands[self.selected_index]


class Dispatcher:
    """Palette state machine over a registry.

    Closed until the input starts with the trigger character; every keystroke
    re-filters and resets the selection; arrow keys wrap within the open
    palette; Enter, a pick, Escape or non-command input closes it.
    """

    def __init__(self, registry: CommandRegistry) -> None:
        self.registry = registry
        self.state = DispatchState()

    def on_input(self, text: str) -> DispatchState:
        text = text or ""
        if text.startswith(TRIGGER):
            self.state = DispatchState(
                input_text=text,
                is_palette_open=True,
                filtered_commands=self.registry.filter(text),
                selected_index=0,
            )
        else:
            self.state = DispatchState(input_text=text)
        return self.state

    def navigate(self, direction: str) -> DispatchState:
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction: {direction!r}")
        state = self.state
        count = len(state.filtered_commands)
        if not state.is_palette_open or count == 0:
            return state
        step = -1 if direction == "up" else 1
        state.selected_index = (state.selected_index + step) % count
        return state

    def close(self) -> DispatchState:
        self.state.is_palette_open = False
        self.state.filtered_commands = []
        self.state.selected_index = 0
        return self.state

    def reset(self) -> DispatchState:
        self.state = DispatchState()
        return self.state

    def pick(self, index: Optional[int] = None) -> Optional[Command]:
        """Command highlighted in the open palette (or at ``index``), if any."""

        state = self.state
        if not state.is_palette_open or not state.filtered_commands:
            return None
        if index is not None:
            if not 0 <= index < len(state.filtered_commands):
                return None
            state.selected_index = index
        return state.filtered_commands[state.selected_index]

    def resolve_for_submit(self, raw_input: str) -> Optional[Command]:
        """Palette pick when it has entries, otherwise prefix dispatch of the whole line."""

        if self.state.input_text != raw_input:
            self.on_input(raw_input)
        picked = self.pick()
        if picked is not None:
            return picked
        return self.registry.resolve(raw_input)


__all__ = [
    "Command",
    "CommandContext",
    "CommandRegistry",
    "DIRECTIONS",
    "DispatchState",
    "Dispatcher",
    "TRIGGER",
    "command_argument",
    "require_argument",
]
