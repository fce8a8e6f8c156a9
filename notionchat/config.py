from __future__ import annotations

import os
from dataclasses import dataclass

NOTION_API_KEY: str
NOTION_DATABASE_ID: str
API_BASE: str
NOTION_VERSION: str
REQUEST_TIMEOUT: float
INITIAL_STATUS_LABEL: str
PLACEHOLDER_TITLE: str
TITLE_PROPERTY: str
CREATED_TIME_PROPERTY: str
RECENT_LIMIT: int
WORK_START: int
WORK_END: int
LEGACY_DATE_FILTER: bool
CHECK_DRY_RUN: bool


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def reload_from_environment() -> None:
    """Refresh configuration values from the current environment."""

    global NOTION_API_KEY, NOTION_DATABASE_ID, API_BASE, NOTION_VERSION, REQUEST_TIMEOUT
    global INITIAL_STATUS_LABEL, PLACEHOLDER_TITLE, TITLE_PROPERTY, CREATED_TIME_PROPERTY
    global RECENT_LIMIT, WORK_START, WORK_END, LEGACY_DATE_FILTER, CHECK_DRY_RUN

    NOTION_API_KEY = os.getenv("NOTION_API_KEY", "").strip()
    NOTION_DATABASE_ID = os.getenv("NOTION_DATABASE_ID", "").strip()
    API_BASE = os.getenv("NOTIONCHAT_API_BASE", "https://api.notion.com/v1").rstrip("/")
    NOTION_VERSION = os.getenv("NOTIONCHAT_NOTION_VERSION", "2022-06-28")
    try:
        REQUEST_TIMEOUT = float(os.getenv("NOTIONCHAT_REQUEST_TIMEOUT", "30"))
    except ValueError:
        REQUEST_TIMEOUT = 30.0
    if REQUEST_TIMEOUT <= 0:
        REQUEST_TIMEOUT = 30.0
    INITIAL_STATUS_LABEL = os.getenv("NOTIONCHAT_INITIAL_STATUS", "Inbox")
    PLACEHOLDER_TITLE = os.getenv("NOTIONCHAT_PLACEHOLDER_TITLE", "Untitled")
    TITLE_PROPERTY = os.getenv("NOTIONCHAT_TITLE_PROPERTY", "Name")
    CREATED_TIME_PROPERTY = os.getenv("NOTIONCHAT_CREATED_TIME_PROPERTY", "Created time")
    RECENT_LIMIT = max(_env_int("NOTIONCHAT_RECENT_LIMIT", 10), 1)
    WORK_START = _env_int("NOTIONCHAT_WORK_START", 9)
    WORK_END = _env_int("NOTIONCHAT_WORK_END", 17)
    LEGACY_DATE_FILTER = _env_bool("NOTIONCHAT_LEGACY_DATE_FILTER", False)
    CHECK_DRY_RUN = _env_bool("NOTIONCHAT_CHECK_DRY_RUN", False)


reload_from_environment()


@dataclass(frozen=True)
class Settings:
    """Snapshot of the configuration handed to sessions and controllers."""

    api_key: str = ""
    database_id: str = ""
    api_base: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    request_timeout: float = 30.0
    initial_status_label: str = "Inbox"
    placeholder_title: str = "Untitled"
    title_property: str = "Name"
    created_time_property: str = "Created time"
    recent_limit: int = 10
    work_start: int = 9
    work_end: int = 17
    legacy_date_filter: bool = False

    @classmethod
    def from_config(cls) -> "Settings":
        return cls(
            api_key=NOTION_API_KEY,
            database_id=NOTION_DATABASE_ID,
            api_base=API_BASE,
            notion_version=NOTION_VERSION,
            request_timeout=REQUEST_TIMEOUT,
            initial_status_label=INITIAL_STATUS_LABEL,
            placeholder_title=PLACEHOLDER_TITLE,
            title_property=TITLE_PROPERTY,
            created_time_property=CREATED_TIME_PROPERTY,
            recent_limit=RECENT_LIMIT,
            work_start=WORK_START,
            work_end=WORK_END,
            legacy_date_filter=LEGACY_DATE_FILTER,
        )


__all__ = [
    "API_BASE",
    "CHECK_DRY_RUN",
    "CREATED_TIME_PROPERTY",
    "INITIAL_STATUS_LABEL",
    "LEGACY_DATE_FILTER",
    "NOTION_API_KEY",
    "NOTION_DATABASE_ID",
    "NOTION_VERSION",
    "PLACEHOLDER_TITLE",
    "RECENT_LIMIT",
    "REQUEST_TIMEOUT",
    "Settings",
    "TITLE_PROPERTY",
    "WORK_END",
    "WORK_START",
    "reload_from_environment",
]
