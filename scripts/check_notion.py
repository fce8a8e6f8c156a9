#!/usr/bin/env python3
"""Check that the configured Notion database is reachable and usable by NotionChat."""
from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Mapping, Optional

from notionchat import config as notionchat_config
from notionchat.errors import NotionChatError, SchemaMismatchError
from notionchat.notion_store import NotionRecordStore, SupportsRecordStore
from notionchat.properties import (
    PropertyKind,
    find_date_property,
    find_status_property,
    find_title_property,
    plain_text,
    schema_from_api,
)


@dataclass
class CheckConfig:
    settings: notionchat_config.Settings
    show_schema: bool
    dry_run: bool

    @classmethod
    def from_env(cls, args: argparse.Namespace) -> "CheckConfig":
        notionchat_config.reload_from_environment()
        settings = notionchat_config.Settings.from_config()
        if args.database_id:
            settings = replace(settings, database_id=args.database_id.strip())
        return cls(
            settings=settings,
            show_schema=args.show_schema,
            dry_run=args.dry_run or notionchat_config.CHECK_DRY_RUN,
        )


class CheckError(RuntimeError):
    """Raised when the database cannot back the chat."""


def _log(message: str) -> None:
    print(f"[notionchat-check] {message}")


def _log_error(message: str) -> None:
    print(f"[notionchat-check] ERROR: {message}", file=sys.stderr)


def _database_title(database: Mapping[str, Any]) -> str:
    return plain_text(database.get("title")) or "(untitled database)"


def _describe_optional(label: str, finder: Callable[[], str]) -> None:
    try:
        _log(f"{label}: {finder()}")
    except SchemaMismatchError as exc:
        _log(f"{label}: missing ({exc})")


def _check_database(store: SupportsRecordStore, config: CheckConfig) -> None:
    try:
        database = store.retrieve_database()
        schema = schema_from_api(database)
    except NotionChatError as exc:
        raise CheckError(str(exc)) from exc

    _log(f"Connected to database '{_database_title(database)}' ({len(schema)} properties).")

    if config.show_schema:
        for name, descriptor in schema.items():
            _log(f"  • {name} ({descriptor.type})")

    unsupported: List[str] = []
    for name, descriptor in schema.items():
        if descriptor.is_read_only:
            continue
        try:
            descriptor.kind
        except NotionChatError:
            unsupported.append(f"{name} ({descriptor.type})")
    if unsupported:
        _log("Properties the editor cannot handle: " + ", ".join(unsupported))

    title = find_title_property(schema, fallback="")
    if not title:
        raise CheckError("Database has no title property")
    _log(f"Title property: {title}")
    _describe_optional("Status property", lambda: find_status_property(schema).name)
    _describe_optional("Date property", lambda: find_date_property(schema).name)

    status = next(
        (d for d in schema.values() if d.type == PropertyKind.STATUS.value), None
    )
    label = config.settings.initial_status_label
    if status is not None and status.option_named(label) is None:
        _log(f"Initial status '{label}' is not an option of '{status.name}'; new entries keep Notion's default.")


def _dry_run(config: CheckConfig) -> None:
    settings = config.settings
    _log("DRY RUN: no requests will be sent.")
    _log(f"Would call {settings.api_base} with Notion-Version {settings.notion_version}.")
    _log(f"API key configured: {'yes' if settings.api_key else 'no'}")
    _log(f"Database id configured: {'yes' if settings.database_id else 'no'}")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the configuration without contacting Notion (can also be enabled via NOTIONCHAT_CHECK_DRY_RUN).",
    )
    parser.add_argument(
        "--database-id",
        type=str,
        help="Database to check (overrides NOTION_DATABASE_ID).",
    )
    parser.add_argument(
        "--show-schema",
        action="store_true",
        help="List every property with its type.",
    )
    return parser.parse_args(argv)


def main(
    argv: Optional[list[str]] = None,
    *,
    store_factory: Optional[Callable[[notionchat_config.Settings], SupportsRecordStore]] = None,
) -> int:
    args = parse_args(argv)
    config = CheckConfig.from_env(args)

    if config.dry_run:
        _dry_run(config)
        return 0

    factory = store_factory or NotionRecordStore.from_settings
    try:
        try:
            store = factory(config.settings)
        except NotionChatError as exc:
            raise CheckError(str(exc)) from exc
        try:
            _check_database(store, config)
        finally:
            store.close()
    except CheckError as exc:
        _log_error(str(exc))
        return 1

    _log("Notion database check complete.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via subprocess
    sys.exit(main())
