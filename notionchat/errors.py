from __future__ import annotations


class NotionChatError(RuntimeError):
    """Base class for errors that end up as a chat message."""


class StoreUnavailableError(NotionChatError, ConnectionError):
    """Raised when credentials are missing or the Notion API cannot be reached."""


class StoreOperationError(NotionChatError):
    """Raised when a query, create, update or archive call fails."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SchemaMismatchError(NotionChatError):
    """Raised when an expected property is absent or has an unexpected type."""


class UnsupportedPropertyTypeError(NotionChatError):
    """Raised when a property type has no codec or filter support."""

    def __init__(self, property_type: str, *, context: str = "property") -> None:
        super().__init__(f"Unsupported {context} type: {property_type}")
        self.property_type = property_type


class DuplicateCommandError(NotionChatError):
    """Raised when a command name is registered twice."""


class NoMatchingCommandError(NotionChatError):
    """Raised when a slash line does not start with any registered command."""


class MalformedCommandArgumentError(NotionChatError):
    """Raised when a command's required argument is missing."""


__all__ = [
    "DuplicateCommandError",
    "MalformedCommandArgumentError",
    "NoMatchingCommandError",
    "NotionChatError",
    "SchemaMismatchError",
    "StoreOperationError",
    "StoreUnavailableError",
    "UnsupportedPropertyTypeError",
]
