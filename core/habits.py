"""Habit validation, CRUD and list helpers for ProofTracker."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core.lifecycle import find_habit
from core.models import Habit, Recurrence


# ── Validation ────────────────────────────────────────────────


VALID_FREQUENCIES = {r.value for r in Recurrence}

SAMPLE_HABITS: list[tuple[str, str, Recurrence]] = [
    ("Read a book", "book", Recurrence.DAILY),
    ("Drink water", "water bottle", Recurrence.DAILY),
    ("Tidy desk", "keyboard", Recurrence.WEEKLY),
]


def validate_habit(data: dict[str, Any]) -> list[str]:
    """Validate habit input and return list of errors (empty if valid)."""
    errors = []
    if not str(data.get("title", "") or "").strip():
        errors.append("Missing required field: title")
    if not str(data.get("requiredLabel", "") or "").strip():
        errors.append("Missing required field: requiredLabel")
    if "frequency" in data:
        try:
            Recurrence.parse(data["frequency"])
        except ValueError:
            errors.append(f"Invalid frequency: {data['frequency']}")
    return errors


# ── CRUD ──────────────────────────────────────────────────────


def add_habit(habits: list[Habit], habit: Habit) -> list[str]:
    """Append a habit, refusing duplicate ids. Returns errors."""
    if not habit.id:
        return ["Habit has no id"]
    if find_habit(habits, habit.id):
        return [f"Habit ID already exists: {habit.id}"]
    habits.append(habit)
    return []


def create_habit(
    habits: list[Habit], data: dict[str, Any], now: datetime
) -> tuple[Habit | None, list[str]]:
    """Build a new habit from form data and add it. Returns (habit, errors)."""
    errors = validate_habit(data)
    if errors:
        return None, errors

    habit = Habit.new(
        title=str(data["title"]),
        required_label=str(data["requiredLabel"]),
        recurrence=Recurrence.parse(data.get("frequency", Recurrence.DAILY)),
        now=now,
    )
    errors = add_habit(habits, habit)
    if errors:
        return None, errors
    return habit, []


def sample_habit(index: int, now: datetime) -> Habit:
    """A fresh copy of one of the built-in sample habits."""
    title, label, recurrence = SAMPLE_HABITS[index]
    return Habit.new(title, label, recurrence, now=now)


def update_habit(habits: list[Habit], habit: Habit) -> bool:
    """Replace the habit with the same id. Returns False if not found."""
    for i, h in enumerate(habits):
        if h.id == habit.id:
            habits[i] = habit
            return True
    return False


def edit_habit(
    habits: list[Habit], habit_id: str, updates: dict[str, Any]
) -> tuple[Habit | None, list[str]]:
    """Apply form edits to a habit by ID. Returns (updated_habit, errors).

    Identity, completion state and timestamps are kept; only title,
    required label and frequency change.
    """
    habit = find_habit(habits, habit_id)
    if not habit:
        return None, [f"Habit not found: {habit_id}"]

    merged = habit.to_dict()
    merged.update({k: v for k, v in updates.items() if k in {"title", "requiredLabel", "frequency"}})
    errors = validate_habit(merged)
    if errors:
        return None, errors

    updated = Habit(
        id=habit.id,
        title=str(merged["title"]).strip(),
        required_label=str(merged["requiredLabel"]).strip(),
        is_completed=habit.is_completed,
        recurrence=Recurrence.parse(merged["frequency"]),
        last_reset_at=habit.last_reset_at,
        completed_at=habit.completed_at,
    )
    update_habit(habits, updated)
    return updated, []


def delete_habit(habits: list[Habit], habit_id: str) -> bool:
    """Remove a habit by id. Returns True if one was removed."""
    for i, h in enumerate(habits):
        if h.id == habit_id:
            habits.pop(i)
            return True
    return False


def delete_at(habits: list[Habit], positions: list[int]) -> list[Habit]:
    """Remove habits at the given positions. Out-of-range positions are ignored."""
    wanted = {p for p in positions if 0 <= p < len(habits)}
    removed = [h for i, h in enumerate(habits) if i in wanted]
    habits[:] = [h for i, h in enumerate(habits) if i not in wanted]
    return removed


def move_habits(habits: list[Habit], positions: list[int], destination: int) -> bool:
    """Move the habits at *positions* so they land before *destination*.

    *destination* is an index into the list as it was before the move,
    so moving item 0 to the end of a 3-item list uses destination=3.
    Returns True if the order changed.
    """
    wanted = sorted({p for p in positions if 0 <= p < len(habits)})
    if not wanted:
        return False
    destination = max(0, min(destination, len(habits)))

    moving = [habits[i] for i in wanted]
    remaining = [h for i, h in enumerate(habits) if i not in wanted]
    insert_at = destination - sum(1 for i in wanted if i < destination)

    before = [h.id for h in habits]
    habits[:] = remaining[:insert_at] + moving + remaining[insert_at:]
    return [h.id for h in habits] != before


# ── Views ─────────────────────────────────────────────────────


def search_habits(habits: list[Habit], query: str) -> list[Habit]:
    """Filter by title or required label, case-insensitively."""
    q = (query or "").strip().casefold()
    if not q:
        return list(habits)
    return [h for h in habits if q in h.title.casefold() or q in h.required_label.casefold()]


def ordered_for_display(habits: list[Habit]) -> list[Habit]:
    """Incomplete habits first; the collection order is kept within each group."""
    return sorted(habits, key=lambda h: h.is_completed)
