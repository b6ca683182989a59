"""Tests for core/models.py — typed dataclasses and serialization."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from core.models import ClassifierSettings, Habit, Recurrence, Settings

TZ = ZoneInfo("Europe/Rome")


# ── Recurrence ────────────────────────────────────────────────


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Daily", Recurrence.DAILY),
        ("weekly", Recurrence.WEEKLY),
        ("One-time", Recurrence.ONE_TIME),
        ("one_time", Recurrence.ONE_TIME),
        ("ONE_TIME", Recurrence.ONE_TIME),
        ("once", Recurrence.ONE_TIME),
        (Recurrence.WEEKLY, Recurrence.WEEKLY),
    ],
)
def test_recurrence_parse(raw, expected):
    assert Recurrence.parse(raw) is expected


def test_recurrence_parse_invalid():
    with pytest.raises(ValueError, match="Invalid frequency"):
        Recurrence.parse("monthly")


# ── Habit ─────────────────────────────────────────────────────


def test_habit_new_strips_and_assigns_id():
    now = datetime(2026, 2, 11, 10, 0, tzinfo=TZ)
    h = Habit.new("  Read a book ", " book ", Recurrence.WEEKLY, now=now)
    assert h.id
    assert h.title == "Read a book"
    assert h.required_label == "book"
    assert h.is_completed is False
    assert h.completed_at is None
    assert h.last_reset_at == now


def test_habit_new_ids_are_unique():
    assert Habit.new("A", "a").id != Habit.new("A", "a").id


def test_habit_to_dict_uses_camel_case():
    now = datetime(2026, 2, 11, 10, 0, tzinfo=TZ)
    h = Habit(id="h1", title="Drink water", required_label="water bottle",
              recurrence=Recurrence.ONE_TIME, last_reset_at=now)
    h.mark_completed(now)
    d = h.to_dict()
    assert d == {
        "id": "h1",
        "title": "Drink water",
        "requiredLabel": "water bottle",
        "isCompleted": True,
        "frequency": "One-time",
        "lastResetAt": "2026-02-11T10:00:00+01:00",
        "completedAt": "2026-02-11T10:00:00+01:00",
    }


def test_habit_from_dict_keeps_optional_timestamp():
    h = Habit.from_dict({
        "id": "h1", "title": "Read", "requiredLabel": "book", "isCompleted": False,
        "frequency": "Weekly", "lastResetAt": "2026-02-09T08:00:00+01:00", "completedAt": None,
    })
    assert h.recurrence is Recurrence.WEEKLY
    assert h.completed_at is None
    assert h.last_reset_at == datetime(2026, 2, 9, 8, 0, tzinfo=TZ)


def test_habit_from_dict_repairs_completion_invariant():
    completed = Habit.from_dict({
        "id": "a", "isCompleted": True, "lastResetAt": "2026-02-09T08:00:00+01:00",
    })
    assert completed.completed_at == completed.last_reset_at

    not_completed = Habit.from_dict({
        "id": "b", "isCompleted": False, "completedAt": "2026-02-09T08:00:00+01:00",
    })
    assert not_completed.completed_at is None


def test_habit_from_dict_defaults():
    h = Habit.from_dict({"id": "x", "frequency": "fortnightly", "lastResetAt": "garbage"})
    assert h.recurrence is Recurrence.DAILY
    assert h.last_reset_at is None
    assert h.title == ""


def test_habit_from_dict_accepts_legacy_label_key():
    h = Habit.from_dict({"id": "x", "requiredClassification": "keyboard"})
    assert h.required_label == "keyboard"


# ── Settings ──────────────────────────────────────────────────


def test_settings_defaults():
    s = Settings.from_dict({})
    assert s.timezone == "UTC"
    assert s.week_start == "mon"
    assert s.storage_key == "SavedHabits"
    assert s.seed_samples is True
    assert s.classifier.command == ""
    assert s.classifier.timeout is None


def test_settings_from_dict():
    s = Settings.from_dict({
        "timezone": "Europe/Rome",
        "week_start": "Sunday",
        "seed_samples": False,
        "log_level": "debug",
        "classifier": {"command": "predict", "timeout": 5},
    })
    assert s.week_start == "sun"
    assert s.seed_samples is False
    assert s.log_level == "DEBUG"
    assert s.classifier == ClassifierSettings(command="predict", timeout=5.0)


def test_settings_invalid_week_start_falls_back():
    assert Settings.from_dict({"week_start": "xyz"}).week_start == "mon"


def test_habit_from_dict_null_id_is_blank():
    assert Habit.from_dict({"id": None, "title": "x"}).id == ""
