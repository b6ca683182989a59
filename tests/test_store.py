"""Tests for core/store.py — whole-collection persistence."""

import json
from datetime import datetime
from zoneinfo import ZoneInfo

from core.models import Habit, Recurrence
from core.store import HabitStore

NOW = datetime(2026, 2, 11, 10, 0, tzinfo=ZoneInfo("Europe/Rome"))


def test_load_missing_file_is_absent(store):
    assert store.load() is None


def test_store_and_load(store):
    done = Habit.new("Tidy desk", "keyboard", Recurrence.WEEKLY, now=NOW)
    done.mark_completed(NOW)
    habits = [Habit.new("Read", "book", now=NOW), done]
    assert store.store(habits) is True

    loaded = store.load()
    assert [h.id for h in loaded] == [h.id for h in habits]
    assert loaded[0].completed_at is None
    assert loaded[1].completed_at == NOW
    assert loaded[1].recurrence is Recurrence.WEEKLY


def test_store_writes_under_fixed_key(tmp_path):
    path = tmp_path / "store.json"
    HabitStore(path, key="MyHabits").store([Habit.new("Read", "book", now=NOW)])
    data = json.loads(path.read_text(encoding="utf-8"))
    assert list(data) == ["MyHabits"]
    assert data["MyHabits"][0]["requiredLabel"] == "book"


def test_store_keeps_other_keys(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"Other": 1}), encoding="utf-8")
    HabitStore(path).store([])
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"Other": 1, "SavedHabits": []}


def test_empty_list_is_not_absent(store):
    store.store([])
    assert store.load() == []


def test_load_corrupt_file_is_absent(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    assert HabitStore(path).load() is None


def test_load_malformed_value_is_absent(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"SavedHabits": {"oops": True}}), encoding="utf-8")
    assert HabitStore(path).load() is None


def test_store_failure_returns_false(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    store = HabitStore(blocker / "store.json")
    assert store.store([Habit.new("Read", "book", now=NOW)]) is False


def test_load_repairs_missing_and_duplicate_ids(tmp_path):
    path = tmp_path / "store.json"
    records = [
        {"id": "a", "title": "First", "requiredLabel": "book"},
        {"id": "a", "title": "Copy", "requiredLabel": "book"},
        {"title": "No id", "requiredLabel": "mug"},
        {"id": None, "title": "Null id", "requiredLabel": "pen"},
    ]
    path.write_text(json.dumps({"SavedHabits": records}), encoding="utf-8")

    loaded = HabitStore(path).load()
    ids = [h.id for h in loaded]
    assert ids[0] == "a"
    assert len(set(ids)) == 4
    assert all(ids)
    assert "None" not in ids
