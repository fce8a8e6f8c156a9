from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from .config import Settings
from .errors import StoreOperationError, StoreUnavailableError
from .freetime import CalendarEvent
from .properties import (
    Record,
    Schema,
    date_range_filter,
    find_date_property,
    plain_text,
    plain_title,
    schema_from_api,
)

LEGACY_DATE_PROPERTY = "Date"
_MAX_PAGE_SIZE = 100


@dataclass
class EventQuery:
    """Events in a date range plus the schema property used to resolve them."""

    date_property: str
    events: List[CalendarEvent] = field(default_factory=list)


def parse_notion_datetime(text: str) -> datetime:
    """Parse a Notion date or datetime string into a naive local datetime."""

    value = datetime.fromisoformat(str(text).strip().replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def _rich_text_property(record: Record, name: str) -> str:
    payload = record.properties.get(name)
    if not isinstance(payload, dict):
        return ""
    return plain_text(payload.get("rich_text"))


def event_from_record(record: Record, date_property: str) -> Optional[CalendarEvent]:
    """Build a calendar event from a page; pages without a start date are skipped."""

    payload = record.properties.get(date_property)
    value = payload.get("date") if isinstance(payload, dict) else None
    if not isinstance(value, dict) or not value.get("start"):
        return None
    start = parse_notion_datetime(value["start"])
    end = parse_notion_datetime(value["end"]) if value.get("end") else start
    attendees_payload = record.properties.get("Attendees")
    attendees = frozenset()
    if isinstance(attendees_payload, dict) and isinstance(attendees_payload.get("multi_select"), list):
        attendees = frozenset(
            str(item["name"])
            for item in attendees_payload["multi_select"]
            if isinstance(item, dict) and item.get("name")
        )
    return CalendarEvent(
        id=record.id or "",
        title=plain_title(record),
        start=start,
        end=end,
        description=_rich_text_property(record, "Description"),
        location=_rich_text_property(record, "Location"),
        attendees=attendees,
    )


class SupportsRecordStore:
    """Protocol-like helper for record store collaborators."""

    def retrieve_database(self) -> Dict[str, Any]:  # pragma: no cover - contract
        raise NotImplementedError

    def get_schema(self) -> Schema:  # pragma: no cover - contract
        raise NotImplementedError

    def query_records(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sorts: Optional[Sequence[Mapping[str, Any]]] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:  # pragma: no cover - contract
        raise NotImplementedError

    def create_record(self, properties: Mapping[str, Any]) -> Record:  # pragma: no cover - contract
        raise NotImplementedError

    def update_record(self, record_id: str, properties: Mapping[str, Any]) -> Record:  # pragma: no cover - contract
        raise NotImplementedError

    def archive_record(self, record_id: str) -> None:  # pragma: no cover - contract
        raise NotImplementedError

    def query_events_in_range(self, start: Any, end: Any) -> EventQuery:  # pragma: no cover - contract
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - contract
        return None


class NotionRecordStore(SupportsRecordStore):
    """HTTP client for the Notion database endpoints the chat commands use."""

    def __init__(
        self,
        api_key: str,
        database_id: str,
        *,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        legacy_date_filter: bool = False,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not api_key:
            raise StoreUnavailableError("NOTION_API_KEY not found in environment variables")
        if not database_id:
            raise StoreUnavailableError("NOTION_DATABASE_ID not found in environment variables")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.database_id = database_id
        self.base_url = base_url.rstrip("/")
        self.notion_version = notion_version
        self.timeout = timeout
        self.legacy_date_filter = legacy_date_filter
        self._api_key = api_key
        self._logger = logger or logging.getLogger(__name__)
        if session is None:
            self._session = requests.Session()
            self._close_session = self._session.close
        else:
            self._session = session
            self._close_session = getattr(session, "close", lambda: None)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "NotionRecordStore":
        return cls(
            settings.api_key,
            settings.database_id,
            base_url=settings.api_base,
            notion_version=settings.notion_version,
            timeout=settings.request_timeout,
            legacy_date_filter=settings.legacy_date_filter,
            **kwargs,
        )

    def __enter__(self) -> "NotionRecordStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._close_session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self._session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self._logger.error("Notion %s %s failed: %s", method, path, exc)
            raise StoreUnavailableError(f"Notion API unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        status = response.status_code
        if status >= 400:
            message = ""
            if isinstance(data, dict):
                message = str(data.get("message") or data.get("code") or "")
            if not message:
                message = (getattr(response, "text", "") or "")[:400] or f"HTTP {status}"
            self._logger.error("Notion %s %s returned HTTP %s: %s", method, path, status, message)
            if status in (401, 403):
                raise StoreUnavailableError(f"Notion rejected the credentials: {message}")
            raise StoreOperationError(message, status=status)

        if not isinstance(data, dict):
            preview = json.dumps(data)[:200] if data is not None else (getattr(response, "text", "") or "")[:200]
            raise StoreOperationError(f"Invalid Notion response payload: {preview}", status=status)
        return data

    def retrieve_database(self) -> Dict[str, Any]:
        self._logger.debug("Fetching database %s", self.database_id)
        return self._request("GET", f"databases/{self.database_id}")

    def get_schema(self) -> Schema:
        schema = schema_from_api(self.retrieve_database())
        self._logger.debug(
            "Database schema properties: %s",
            [(name, descriptor.type) for name, descriptor in schema.items()],
        )
        return schema

    def query_records(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sorts: Optional[Sequence[Mapping[str, Any]]] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        body: Dict[str, Any] = {}
        if filter:
            body["filter"] = dict(filter)
        if sorts:
            body["sorts"] = [dict(item) for item in sorts]

        records: List[Record] = []
        cursor: Optional[str] = None
        while True:
            page_body = dict(body)
            if limit is not None:
                page_body["page_size"] = max(1, min(_MAX_PAGE_SIZE, limit - len(records)))
            if cursor:
                page_body["start_cursor"] = cursor
            data = self._request("POST", f"databases/{self.database_id}/query", page_body)
            for page in data.get("results") or []:
                if isinstance(page, dict):
                    records.append(Record.from_page(page))
            if limit is not None and len(records) >= limit:
                records = records[:limit]
                break
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break

        self._logger.info("Retrieved %d record(s)", len(records))
        return records

    def create_record(self, properties: Mapping[str, Any]) -> Record:
        payload = {"parent": {"database_id": self.database_id}, "properties": dict(properties)}
        page = self._request("POST", "pages", payload)
        self._logger.info("Created entry %s", page.get("id"))
        return Record.from_page(page)

    def update_record(self, record_id: str, properties: Mapping[str, Any]) -> Record:
        if not record_id:
            raise StoreOperationError("Cannot update a record without an id")
        page = self._request("PATCH", f"pages/{record_id}", {"properties": dict(properties)})
        self._logger.info("Updated entry %s", page.get("id"))
        return Record.from_page(page)

    def archive_record(self, record_id: str) -> None:
        if not record_id:
            raise StoreOperationError("Cannot archive a record without an id")
        self._request("PATCH", f"pages/{record_id}", {"archived": True})
        self._logger.info("Archived entry %s", record_id)

    def query_events_in_range(self, start: Any, end: Any) -> EventQuery:
        schema = self.get_schema()
        date_descriptor = find_date_property(schema)
        filter_property = LEGACY_DATE_PROPERTY if self.legacy_date_filter else date_descriptor.name
        records = self.query_records(filter=date_range_filter(filter_property, start, end))
        events = []
        for record in records:
            event = event_from_record(record, date_descriptor.name)
            if event is not None:
                events.append(event)
        self._logger.info(
            "Resolved %d event(s) on property '%s' (filtered on '%s')",
            len(events),
            date_descriptor.name,
            filter_property,
        )
        return EventQuery(date_property=date_descriptor.name, events=events)


__all__ = [
    "EventQuery",
    "LEGACY_DATE_PROPERTY",
    "NotionRecordStore",
    "SupportsRecordStore",
    "event_from_record",
    "parse_notion_datetime",
]
