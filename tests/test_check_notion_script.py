from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

import pytest

from notionchat import config
from notionchat.errors import StoreUnavailableError
from notionchat.notion_store import SupportsRecordStore

SCRIPT_PATH = Path(__file__).resolve().parent.parent / "scripts" / "check_notion.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("check_notion", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


class _SchemaStore(SupportsRecordStore):
    def __init__(self, properties, *, error: Exception | None = None) -> None:
        self.properties = properties
        self.error = error
        self.closed = False

    def retrieve_database(self):
        if self.error is not None:
            raise self.error
        return {"object": "database", "title": [{"plain_text": "Tasks"}], "properties": self.properties}

    def close(self) -> None:
        self.closed = True


PROPERTIES = {
    "Name": {"type": "title", "title": {}},
    "Status": {"type": "status", "status": {"options": [{"id": "s1", "name": "Inbox"}]}},
    "Owner": {"type": "people", "people": {}},
    "Created": {"type": "created_time", "created_time": {}},
}


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("NOTION_API_KEY", "secret-token")
    monkeypatch.setenv("NOTION_DATABASE_ID", "db-1")
    monkeypatch.delenv("NOTIONCHAT_CHECK_DRY_RUN", raising=False)
    yield monkeypatch
    monkeypatch.undo()
    config.reload_from_environment()


def test_check_reports_schema(credentials, capsys) -> None:
    script = _load_script()
    store = _SchemaStore(PROPERTIES)
    seen = []

    def factory(settings):
        seen.append(settings)
        return store

    code = script.main(["--show-schema"], store_factory=factory)

    out = capsys.readouterr().out
    assert code == 0
    assert store.closed is True
    assert seen[0].database_id == "db-1"
    assert "[notionchat-check] Connected to database 'Tasks' (4 properties)." in out
    assert "[notionchat-check]   • Owner (people)" in out
    assert "Properties the editor cannot handle: Owner (people)" in out
    assert "Title property: Name" in out
    assert "Status property: Status" in out
    assert "Date property: missing (No date property found in database)" in out
    assert "Notion database check complete." in out


def test_check_database_id_argument_overrides_environment(credentials, capsys) -> None:
    script = _load_script()
    seen = []

    def factory(settings):
        seen.append(settings)
        return _SchemaStore(PROPERTIES)

    assert script.main(["--database-id", "db-override"], store_factory=factory) == 0
    assert seen[0].database_id == "db-override"


def test_check_fails_without_title_property(credentials, capsys) -> None:
    script = _load_script()

    code = script.main([], store_factory=lambda settings: _SchemaStore({"Status": PROPERTIES["Status"]}))

    assert code == 1
    assert "ERROR: Database has no title property" in capsys.readouterr().err


def test_check_reports_unreachable_store(credentials, capsys) -> None:
    script = _load_script()
    store = _SchemaStore(PROPERTIES, error=StoreUnavailableError("Notion API unreachable: offline"))

    code = script.main([], store_factory=lambda settings: store)

    assert code == 1
    assert store.closed is True
    assert "Notion API unreachable: offline" in capsys.readouterr().err


def test_check_requires_credentials(credentials, capsys) -> None:
    credentials.delenv("NOTION_API_KEY")
    script = _load_script()

    code = script.main([])

    assert code == 1
    assert "NOTION_API_KEY not found in environment variables" in capsys.readouterr().err


def test_check_dry_run_skips_requests(credentials, capsys) -> None:
    script = _load_script()

    def factory(settings):
        raise AssertionError("dry run must not connect")

    assert script.main(["--dry-run"], store_factory=factory) == 0
    out = capsys.readouterr().out
    assert "DRY RUN" in out
    assert "API key configured: yes" in out


def test_check_dry_run_from_environment(credentials, capsys) -> None:
    credentials.setenv("NOTIONCHAT_CHECK_DRY_RUN", "yes")
    script = _load_script()

    def factory(settings):
        raise AssertionError("dry run must not connect")

    assert script.main([], store_factory=factory) == 0
    assert "DRY RUN" in capsys.readouterr().out
