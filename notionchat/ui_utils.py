from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .commands import DispatchState
from .messages import Message

_LOG_DISPLAY_TAIL = 80

FORM_HEADERS = ["Property", "Type", "Value"]

_TRUTHY = {"1", "true", "yes", "on", "x", "✓"}


def safe_component(
    factory: Callable[..., Any],
    *args: Any,
    optional_keys: Tuple[str, ...] = ("live",),
    **kwargs: Any,
) -> Any:
    """Instantiate a Gradio component, ignoring unsupported optional kwargs."""

    attempt_kwargs = dict(kwargs)
    while True:
        try:
            return factory(*args, **attempt_kwargs)
        except TypeError as exc:
            message = str(exc)
            removed = False
            for key in optional_keys:
                if key in attempt_kwargs and f"'{key}'" in message:
                    attempt_kwargs.pop(key)
                    removed = True
                    break
            if not removed:
                raise


def message_to_chat(message: Message) -> Dict[str, str]:
    """Render one log entry in Gradio's ``messages`` chat format."""

    role = "user" if message.sent else "assistant"
    if not message.is_record:
        return {"role": role, "content": message.text}
    marker = "✏️" if message.is_editing else "📄"
    content = f"{marker} **{message.text}**"
    if message.record.url:
        content += f"  \n[Open in Notion]({message.record.url})"
    return {"role": role, "content": content}


def chat_history(messages: Iterable[Message]) -> List[Dict[str, str]]:
    return [message_to_chat(message) for message in messages]


def record_choices(messages: Iterable[Message]) -> List[Tuple[str, str]]:
    """Dropdown choices ``(label, message id)`` for every record bubble."""

    choices = []
    for message in messages:
        if not message.is_record:
            continue
        label = message.text
        if message.record.is_new:
            label = f"{label} (draft)"
        choices.append((label, message.id))
    return choices


def palette_choices(state: DispatchState) -> Tuple[List[Tuple[str, str]], Optional[str]]:
    """Radio choices for the open palette and the highlighted command name."""

    if not state.is_palette_open:
        return [], None
    choices = [(f"{command.name} · {command.description}", command.name) for command in state.filtered_commands]
    selected = state.selected_command
    return choices, selected.name if selected is not None else None


def _display_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def form_rows(form: Any) -> List[List[str]]:
    """Rows for the property table: name, type and the value as text."""

    return [[item.name, item.type, _display_value(item.value)] for item in form.fields]


def _coerce(prop_type: str, text: Any) -> Any:
    if isinstance(text, bool) and prop_type == "checkbox":
        return text
    raw = "" if text is None else str(text).strip()
    if prop_type == "checkbox":
        return raw.lower() in _TRUTHY
    if prop_type == "multi_select":
        return [part.strip() for part in raw.split(",") if part.strip()]
    if prop_type in {"select", "status", "date", "number"}:
        return raw or None
    return raw


def rows_to_values(rows: Optional[Sequence[Sequence[Any]]]) -> Dict[str, Any]:
    """Form values from edited property table rows; rows without a name are ignored."""

    values: Dict[str, Any] = {}
    for row in rows or []:
        if len(row) < 3 or not row[0]:
            continue
        name, prop_type, value = str(row[0]), str(row[1]), row[2]
        values[name] = _coerce(prop_type, value)
    return values


def event_log_messages(entries: Sequence[str]) -> List[Dict[str, Any]]:
    """Group the event log tail into assistant bubbles, one per user action."""

    bubbles: List[List[str]] = []
    current: List[str] = []
    for entry in entries[-_LOG_DISPLAY_TAIL:]:
        if ("Executing" in entry or "User input received" in entry) and current:
            bubbles.append(current)
            current = [entry]
        else:
            current.append(entry)
    if current:
        bubbles.append(current)
    return [{"role": "assistant", "content": "\n".join(group)} for group in bubbles]


__all__ = [
    "FORM_HEADERS",
    "chat_history",
    "event_log_messages",
    "form_rows",
    "message_to_chat",
    "palette_choices",
    "record_choices",
    "rows_to_values",
    "safe_component",
]
