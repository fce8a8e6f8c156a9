"""Internal modules that back the NotionChat Gradio application."""

from . import config as _config
from .actions import register_builtin_commands
from .commands import Command, CommandContext, CommandRegistry, Dispatcher
from .conversation import ConversationController
from .errors import (
    DuplicateCommandError,
    MalformedCommandArgumentError,
    NoMatchingCommandError,
    NotionChatError,
    SchemaMismatchError,
    StoreOperationError,
    StoreUnavailableError,
    UnsupportedPropertyTypeError,
)
from .freetime import CalendarEvent, DailyAvailability, next_monday, weekly_free_time
from .messages import Message, MessageLog
from .notion_store import NotionRecordStore, SupportsRecordStore
from .properties import PropertyDescriptor, PropertyKind, Record
from .session import NotionSession
from .ui_utils import safe_component

Settings = _config.Settings
reload_from_environment = _config.reload_from_environment

__all__ = [
    "CalendarEvent",
    "Command",
    "CommandContext",
    "CommandRegistry",
    "ConversationController",
    "DailyAvailability",
    "Dispatcher",
    "DuplicateCommandError",
    "MalformedCommandArgumentError",
    "Message",
    "MessageLog",
    "NoMatchingCommandError",
    "NotionChatError",
    "NotionRecordStore",
    "NotionSession",
    "PropertyDescriptor",
    "PropertyKind",
    "Record",
    "SchemaMismatchError",
    "Settings",
    "StoreOperationError",
    "StoreUnavailableError",
    "SupportsRecordStore",
    "UnsupportedPropertyTypeError",
    "next_monday",
    "register_builtin_commands",
    "reload_from_environment",
    "safe_component",
    "weekly_free_time",
]


def __getattr__(name: str):
    if hasattr(_config, name):
        return getattr(_config, name)
    raise AttributeError(name)
