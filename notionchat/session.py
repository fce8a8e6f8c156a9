from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, TypeVar

from .config import Settings
from .errors import StoreUnavailableError
from .notion_store import EventQuery, NotionRecordStore, SupportsRecordStore
from .properties import Record, Schema

T = TypeVar("T")

StoreFactory = Callable[[Settings], SupportsRecordStore]


class NotionSession:
    """Lazily initialised store handle owned by a conversation controller.

    The store is built on first use and verified with a database lookup.  When
    an operation fails because the store is unavailable the session
    re-initialises once and retries the operation once; a second failure is
    raised to the caller unchanged.  The schema is fetched on every call.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        store_factory: Optional[StoreFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or Settings.from_config()
        self._store_factory: StoreFactory = store_factory or NotionRecordStore.from_settings
        self._store: Optional[SupportsRecordStore] = None
        self._logger = logger or logging.getLogger(__name__)

    @property
    def initialized(self) -> bool:
        return self._store is not None

    def initialize(self) -> SupportsRecordStore:
        self.close()
        self._logger.info(
            "Initializing Notion session (api key: %s, database id: %s)",
            bool(self.settings.api_key),
            bool(self.settings.database_id),
        )
        store = self._store_factory(self.settings)
        try:
            store.retrieve_database()
        except Exception:
            store.close()
            raise
        self._store = store
        self._logger.info("Connected to Notion database")
        return store

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None

    def __enter__(self) -> "NotionSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def run(self, operation: Callable[[SupportsRecordStore], T]) -> T:
        fresh = False
        if self._store is None:
            self.initialize()
            fresh = True
        try:
            return operation(self._store)
        except StoreUnavailableError as exc:
            if fresh:
                raise
            self._logger.warning("Store unavailable, re-initializing once: %s", exc)
            self.initialize()
            return operation(self._store)

    def schema(self) -> Schema:
        return self.run(lambda store: store.get_schema())

    def retrieve_database(self) -> Any:
        return self.run(lambda store: store.retrieve_database())

    def query_records(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sorts: Optional[Sequence[Mapping[str, Any]]] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        return self.run(lambda store: store.query_records(filter=filter, sorts=sorts, limit=limit))

    def create_record(self, properties: Mapping[str, Any]) -> Record:
        return self.run(lambda store: store.create_record(properties))

    def update_record(self, record_id: str, properties: Mapping[str, Any]) -> Record:
        return self.run(lambda store: store.update_record(record_id, properties))

    def archive_record(self, record_id: str) -> None:
        self.run(lambda store: store.archive_record(record_id))

    def query_events_in_range(self, start: Any, end: Any) -> EventQuery:
        return self.run(lambda store: store.query_events_in_range(start, end))


__all__ = ["NotionSession", "StoreFactory"]
