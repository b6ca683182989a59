"""Tests for core/workspace.py — settings and workspace setup."""

from zoneinfo import ZoneInfo

from core.models import Settings
from core.workspace import (
    get_user_timezone,
    init_workspace,
    load_settings,
    store_path,
    workspace_root,
)


def test_workspace_root_from_env(workspace):
    assert workspace_root() == workspace.resolve()


def test_load_settings(workspace):
    settings = load_settings(workspace)
    assert settings.timezone == "Europe/Rome"
    assert settings.log_level == "DEBUG"
    assert settings.classifier.command == ""


def test_load_settings_broken_file_uses_defaults(tmp_path):
    (tmp_path / "settings.yaml").write_text("timezone: [oops", encoding="utf-8")
    assert load_settings(tmp_path) == Settings()


def test_load_settings_missing_file_uses_defaults(tmp_path):
    assert load_settings(tmp_path) == Settings()


def test_unknown_timezone_falls_back_to_utc():
    assert get_user_timezone(settings=Settings(timezone="Mars/Olympus")) == ZoneInfo("UTC")


def test_store_path(tmp_path):
    assert store_path(tmp_path) == tmp_path / "data" / "store.json"


def test_init_workspace_writes_default_settings(tmp_path):
    root = tmp_path / "fresh"
    assert init_workspace(root) is True
    assert (root / "data").is_dir()
    settings = load_settings(root)
    assert settings.week_start == "mon"
    assert settings.storage_key == "SavedHabits"
    assert init_workspace(root) is False


def test_init_workspace_keeps_existing_settings(workspace):
    assert init_workspace(workspace) is False
    assert load_settings(workspace).timezone == "Europe/Rome"
