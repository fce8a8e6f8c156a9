from __future__ import annotations

import pytest

from notionchat import config


@pytest.fixture
def reloaded(monkeypatch):
    yield monkeypatch
    monkeypatch.undo()
    config.reload_from_environment()


def test_defaults_without_environment(reloaded) -> None:
    for name in (
        "NOTION_API_KEY",
        "NOTION_DATABASE_ID",
        "NOTIONCHAT_REQUEST_TIMEOUT",
        "NOTIONCHAT_RECENT_LIMIT",
        "NOTIONCHAT_LEGACY_DATE_FILTER",
        "NOTIONCHAT_CHECK_DRY_RUN",
    ):
        reloaded.delenv(name, raising=False)

    config.reload_from_environment()
    settings = config.Settings.from_config()

    assert settings.api_key == ""
    assert settings.api_base == "https://api.notion.com/v1"
    assert settings.notion_version == "2022-06-28"
    assert settings.request_timeout == 30.0
    assert settings.recent_limit == 10
    assert (settings.work_start, settings.work_end) == (9, 17)
    assert settings.legacy_date_filter is False
    assert config.CHECK_DRY_RUN is False


def test_environment_overrides(reloaded) -> None:
    reloaded.setenv("NOTION_API_KEY", " secret-token ")
    reloaded.setenv("NOTION_DATABASE_ID", "db-1")
    reloaded.setenv("NOTIONCHAT_API_BASE", "https://notion.test/v1/")
    reloaded.setenv("NOTIONCHAT_INITIAL_STATUS", "Backlog")
    reloaded.setenv("NOTIONCHAT_WORK_START", "8")
    reloaded.setenv("NOTIONCHAT_WORK_END", "16")
    reloaded.setenv("NOTIONCHAT_LEGACY_DATE_FILTER", "yes")
    reloaded.setenv("NOTIONCHAT_CHECK_DRY_RUN", "1")

    config.reload_from_environment()
    settings = config.Settings.from_config()

    assert settings.api_key == "secret-token"
    assert settings.database_id == "db-1"
    assert settings.api_base == "https://notion.test/v1"
    assert settings.initial_status_label == "Backlog"
    assert (settings.work_start, settings.work_end) == (8, 16)
    assert settings.legacy_date_filter is True
    assert config.CHECK_DRY_RUN is True


def test_invalid_numbers_fall_back(reloaded) -> None:
    reloaded.setenv("NOTIONCHAT_REQUEST_TIMEOUT", "soon")
    reloaded.setenv("NOTIONCHAT_RECENT_LIMIT", "many")

    config.reload_from_environment()

    assert config.REQUEST_TIMEOUT == 30.0
    assert config.RECENT_LIMIT == 10


def test_non_positive_values_are_clamped(reloaded) -> None:
    reloaded.setenv("NOTIONCHAT_REQUEST_TIMEOUT", "-5")
    reloaded.setenv("NOTIONCHAT_RECENT_LIMIT", "0")

    config.reload_from_environment()

    assert config.REQUEST_TIMEOUT == 30.0
    assert config.RECENT_LIMIT == 1
