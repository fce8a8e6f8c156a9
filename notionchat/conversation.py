from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .actions import register_builtin_commands
from .commands import TRIGGER, Command, CommandContext, CommandRegistry, DispatchState, Dispatcher
from .config import Settings
from .errors import MalformedCommandArgumentError, NoMatchingCommandError, NotionChatError
from .messages import Message, MessageLog
from .properties import (
    Record,
    decode,
    editable_properties,
    encode_form,
    initial_record,
    plain_title,
    validate_for_submit,
    with_initial_status,
)
from .session import NotionSession

THEMES = ("light", "dark")

_LOG_MAX_ENTRIES = 200


@dataclass
class FormField:
    name: str
    type: str
    value: Any
    options: Tuple[str, ...] = ()


@dataclass
class EditorForm:
    """Editable view of one record bubble."""

    message_id: str
    is_new: bool
    fields: List[FormField] = field(default_factory=list)

    def values(self) -> Dict[str, Any]:
        return {item.name: item.value for item in self.fields}


class ConversationController:
    """Owns the message log, the palette and the session for one chat window.

    Every user event enters through a method here.  Command failures never
    escape: each one becomes a single received message and an event log
    entry, and the palette is reset afterwards.
    """

    def __init__(
        self,
        session: NotionSession,
        *,
        registry: Optional[CommandRegistry] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session
        self.settings = settings or session.settings
        self.registry = registry if registry is not None else register_builtin_commands()
        self.dispatcher = Dispatcher(self.registry)
        self.clock = clock or datetime.now
        self.messages = MessageLog(self.clock)
        self.theme = THEMES[0]
        self.event_log: List[str] = []
        self._logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Event log

    def log_event(self, message: str, *, level: int = logging.INFO, exc_info: bool = False) -> List[str]:
        self._logger.log(level, message, exc_info=exc_info)
        timestamp = self.clock().strftime("%H:%M:%S")
        self.event_log.append(f"[{timestamp}] {message}")
        if len(self.event_log) > _LOG_MAX_ENTRIES:
            self.event_log = self.event_log[-_LOG_MAX_ENTRIES:]
        return self.event_log

    def set_theme(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme!r}")
        self.theme = theme
        self.log_event(f"Theme set to {theme}.")
        return theme

    # ------------------------------------------------------------------
    # Palette

    @property
    def palette(self) -> DispatchState:
        return self.dispatcher.state

    def on_input(self, text: str) -> DispatchState:
        return self.dispatcher.on_input(text)

    def navigate(self, direction: str) -> DispatchState:
        return self.dispatcher.navigate(direction)

    def escape(self) -> DispatchState:
        return self.dispatcher.close()

    def pick(self, index: Optional[int] = None) -> Optional[Message]:
        """Run the palette entry at ``index`` (or the highlighted one)."""

        command = self.dispatcher.pick(index)
        if command is None:
            return None
        return self._execute(command, self.dispatcher.state.input_text)

    def submit(self, text: str) -> Optional[Message]:
        """Handle Enter: run a command, or echo plain text into the log."""

        raw = (text or "").strip()
        if not raw:
            self.dispatcher.reset()
            return None
        if not raw.startswith(TRIGGER):
            self.dispatcher.reset()
            self.log_event("User input received.")
            return self.messages.append_sent(raw)
        try:
            command = self.dispatcher.resolve_for_submit(raw)
        except NoMatchingCommandError as exc:
            self.messages.append_sent(raw)
            self.dispatcher.reset()
            self.log_event(str(exc), level=logging.WARNING)
            return self.messages.append_received(f"Error: {exc}")
        return self._execute(command, raw)

    def _context(self, command: Command, raw_input: str) -> CommandContext:
        return CommandContext(
            raw_input=raw_input,
            command=command,
            session=self.session,
            messages=self.messages,
            settings=self.settings,
            registry=self.registry,
            clock=self.clock,
            set_theme=self.set_theme,
        )

    def _execute(self, command: Command, raw_input: str) -> Optional[Message]:
        self.messages.append_sent(raw_input or command.name)
        self.log_event(f"Executing '{command.name}'.")
        before = len(self.messages)
        try:
            self.registry.execute(command, self._context(command, raw_input))
        except MalformedCommandArgumentError as exc:
            self.log_event(str(exc), level=logging.WARNING)
            return self.messages.append_received(str(exc))
        except NotionChatError as exc:
            self.log_event(f"'{command.name}' failed: {exc}", level=logging.WARNING)
            return self.messages.append_received(f"{command.error_label}: {exc}")
        except Exception as exc:
            self.log_event(f"'{command.name}' crashed: {exc}", level=logging.ERROR, exc_info=True)
            return self.messages.append_received(f"Error: {exc}")
        finally:
            self.dispatcher.reset()
        self.log_event(f"'{command.name}' completed.")
        if len(self.messages) > before:
            return self.messages.messages[-1]
        return None

    # ------------------------------------------------------------------
    # Record bubbles

    def _record_message(self, message_id: str) -> Message:
        message = self.messages.get(message_id)
        if message.record is None:
            raise KeyError(message_id)
        return message

    def editor_form(self, message_id: str) -> EditorForm:
        """Fields of the record behind ``message_id`` with their decoded values."""

        message = self._record_message(message_id)
        record = message.record
        schema = self.session.schema()
        properties = dict(record.properties)
        if record.is_new:
            seeded = initial_record(schema, self.settings.initial_status_label).properties
            properties = {**seeded, **properties}
        fields = []
        for descriptor in editable_properties(schema):
            fields.append(
                FormField(
                    name=descriptor.name,
                    type=descriptor.type,
                    value=decode(properties.get(descriptor.name), descriptor),
                    options=tuple(option.name for option in descriptor.options),
                )
            )
        return EditorForm(message_id=message_id, is_new=record.is_new, fields=fields)

    def begin_edit(self, message_id: str) -> Message:
        message = self._record_message(message_id)
        message.is_editing = True
        return message

    def cancel_edit(self, message_id: str) -> Message:
        message = self._record_message(message_id)
        message.is_editing = False
        return message

    def _submit_record(self, record: Record, values: Mapping[str, Any]) -> Record:
        schema = self.session.schema()
        properties = encode_form(values, schema)
        if record.is_new:
            properties = with_initial_status(properties, schema, self.settings.initial_status_label)
        outgoing = validate_for_submit(
            Record(properties=properties, id=record.id, is_new=record.is_new),
            schema,
            placeholder=self.settings.placeholder_title,
            fallback_title=self.settings.title_property,
        )
        if outgoing.is_new or not outgoing.id:
            return self.session.create_record(outgoing.properties)
        return self.session.update_record(outgoing.id, outgoing.properties)

    def save_record(self, message_id: str, values: Mapping[str, Any]) -> Message:
        """Create or update the record behind a bubble from submitted form values."""

        message = self._record_message(message_id)
        was_new = message.record.is_new
        try:
            saved = self._submit_record(message.record, values)
        except NotionChatError as exc:
            self.log_event(f"Saving entry failed: {exc}", level=logging.WARNING)
            return self.messages.append_received(f"Error: {exc}")
        message.record = saved
        message.text = plain_title(saved, self.settings.placeholder_title)
        message.is_editing = False
        verb = "created" if was_new else "updated"
        self.log_event(f"Entry {saved.id} {verb}.")
        return self.messages.append_received(f"Successfully {verb} entry")

    def delete_record(self, message_id: str) -> Message:
        """Archive the record behind a bubble (drafts are only dropped) and remove it."""

        message = self._record_message(message_id)
        record = message.record
        if not record.is_new and record.id:
            try:
                self.session.archive_record(record.id)
            except NotionChatError as exc:
                self.log_event(f"Deleting entry failed: {exc}", level=logging.WARNING)
                return self.messages.append_received(f"Error: {exc}")
            self.log_event(f"Entry {record.id} archived.")
        self.messages.remove(message_id)
        return self.messages.append_received("Entry deleted successfully")

    def close(self) -> None:
        self.session.close()


__all__ = ["ConversationController", "EditorForm", "FormField", "THEMES"]
