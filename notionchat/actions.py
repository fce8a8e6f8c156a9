from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from .commands import Command, CommandContext, CommandRegistry, command_argument, require_argument
from .config import Settings
from .freetime import format_weekly_free_time, week_range, weekly_free_time
from .notion_store import parse_notion_datetime
from .properties import (
    PropertyDescriptor,
    PropertyKind,
    Record,
    Schema,
    encode,
    equality_filter,
    find_status_property,
    find_title_property,
    plain_title,
    with_initial_status,
)

log = logging.getLogger(__name__)

TASKS_USAGE = "/tasks <status>"


def newest_first(schema: Mapping[str, PropertyDescriptor], settings: Settings) -> List[Dict[str, str]]:
    """Sort on the configured created-time column, or Notion's own timestamp."""

    name = settings.created_time_property
    if name in schema:
        return [{"property": name, "direction": "descending"}]
    return [{"timestamp": "created_time", "direction": "descending"}]


def _due_date(record: Record, schema: Mapping[str, PropertyDescriptor]) -> str:
    for descriptor in schema.values():
        if descriptor.type != PropertyKind.DATE.value:
            continue
        payload = record.properties.get(descriptor.name)
        value = payload.get("date") if isinstance(payload, dict) else None
        if isinstance(value, dict) and value.get("start"):
            return parse_notion_datetime(value["start"]).date().isoformat()
        return ""
    return ""


def format_task_list(
    records: List[Record],
    schema: Mapping[str, PropertyDescriptor],
    placeholder: str = "Untitled",
) -> str:
    if not records:
        return "No tasks found with that status."
    lines = []
    for record in records:
        due = _due_date(record, schema)
        suffix = f" (Due: {due})" if due else ""
        lines.append(f"• {plain_title(record, placeholder)}{suffix}")
    return "\n".join(lines)


def _clear(ctx: CommandContext) -> None:
    ctx.messages.clear()


def _list(ctx: CommandContext) -> None:
    commands = ctx.registry.commands if ctx.registry is not None else (ctx.command,)
    listing = "\n\n".join(f"• {cmd.name}\n    {cmd.description}" for cmd in commands)
    ctx.messages.append_received(f"📋 Available Commands:\n\n{listing}")


def _dark(ctx: CommandContext) -> None:
    ctx.set_theme("dark")


def _light(ctx: CommandContext) -> None:
    ctx.set_theme("light")


def _freetime(ctx: CommandContext) -> None:
    today = ctx.clock()
    monday, friday = week_range(today)
    query = ctx.session.query_events_in_range(monday, friday)
    log.info("Analyzing %d event(s) from property '%s'", len(query.events), query.date_property)
    analysis = weekly_free_time(
        today,
        query.events,
        work_start=ctx.settings.work_start,
        work_end=ctx.settings.work_end,
    )
    ctx.messages.append_received(f"Free time for next week:\n{format_weekly_free_time(analysis)}")


def _tasks(ctx: CommandContext) -> None:
    status = require_argument(ctx.raw_input, ctx.command.name, TASKS_USAGE)
    schema = ctx.session.schema()
    descriptor = find_status_property(schema)
    records = ctx.session.query_records(
        filter=equality_filter(descriptor, status),
        sorts=newest_first(schema, ctx.settings),
    )
    log.info("Found %d task(s) with status %r", len(records), status)
    ctx.messages.append_received(
        f'Tasks with status "{status}":\n'
        f"{format_task_list(records, schema, ctx.settings.placeholder_title)}"
    )


def _title_descriptor(schema: Schema, settings: Settings) -> PropertyDescriptor:
    name = find_title_property(schema, fallback=settings.title_property)
    return schema.get(name) or PropertyDescriptor(name=name, type=PropertyKind.TITLE.value)


def _new(ctx: CommandContext) -> None:
    title = command_argument(ctx.raw_input, ctx.command.name)
    if not title:
        ctx.messages.append_record(Record.draft(), text="New Entry", is_editing=True)
        return
    schema = ctx.session.schema()
    descriptor = _title_descriptor(schema, ctx.settings)
    properties = with_initial_status(
        {descriptor.name: encode(title, descriptor)},
        schema,
        ctx.settings.initial_status_label,
    )
    created = ctx.session.create_record(properties)
    log.info("Created entry %s", created.id)
    ctx.messages.append_received(f"✓ Created: {title}")


def _view(ctx: CommandContext) -> None:
    schema = ctx.session.schema()
    records = ctx.session.query_records(
        sorts=newest_first(schema, ctx.settings),
        limit=ctx.settings.recent_limit,
    )
    if not records:
        ctx.messages.append_received("No entries found.")
        return
    for record in records:
        ctx.messages.append_record(record, text=plain_title(record, ctx.settings.placeholder_title))


def _test_notion(ctx: CommandContext) -> None:
    schema = ctx.session.schema()
    lines = [f"• {name} ({descriptor.type})" for name, descriptor in schema.items()]
    ctx.messages.append_received("Notion Database Schema:\n" + "\n".join(lines))


BUILTIN_COMMANDS = (
    Command("/clear", "Clear the message thread", _clear),
    Command("/list", "Show all available commands", _list),
    Command("/dark", "Switch to dark mode", _dark),
    Command("/light", "Switch to light mode", _light),
    Command(
        "/freetime",
        "Show free time analysis for next week",
        _freetime,
        error_label="Error analyzing free time",
    ),
    Command(
        "/tasks",
        "List tasks by status (e.g., /tasks today)",
        _tasks,
        usage=TASKS_USAGE,
        error_label="Error fetching tasks",
    ),
    Command(
        "/new",
        "Create a new entry with optional title (e.g., /new do the laundry)",
        _new,
        usage="/new [title]",
        error_label="Error creating entry",
    ),
    Command("/view", "View recent entries", _view, error_label="Error fetching entries"),
    Command(
        "/test-notion",
        "Test Notion API connection and show database schema",
        _test_notion,
        error_label="Error testing Notion connection",
    ),
)


def register_builtin_commands(registry: Optional[CommandRegistry] = None) -> CommandRegistry:
    registry = registry if registry is not None else CommandRegistry()
    for command in BUILTIN_COMMANDS:
        registry.register(command)
    return registry


__all__ = [
    "BUILTIN_COMMANDS",
    "TASKS_USAGE",
    "format_task_list",
    "newest_first",
    "register_builtin_commands",
]
