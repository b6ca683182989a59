"""Habit lifecycle engine: due checks, resets, completion toggling.

Every function here works on a plain ``list[Habit]`` and mutates it in
place. Persistence and the celebration signal are handled by the caller
(see ``core.tracker.HabitTracker``).

Calendar rules:
- Daily habits are due once the local calendar day of ``now`` differs
  from the day of ``last_reset_at`` (day boundaries, not a 24h window).
- Weekly habits are due once ``now`` falls in a different calendar week,
  compared by the first day of each containing week.
- One-time habits are never due and never reset.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum

from core.models import Habit, Recurrence

logger = logging.getLogger(__name__)

DAY_MAP = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}


class Transition(str, Enum):
    COMPLETED = "completed"
    UNCOMPLETED = "uncompleted"


# ── Calendar helpers ──────────────────────────────────────────


def local_date(ts: datetime, tz: tzinfo | None) -> date:
    """Calendar date of *ts* as seen in *tz*.

    Naive timestamps are taken to already be local.
    """
    if tz is None or ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(tz).date()


def week_start_date(day: date, week_start: str = "mon") -> date:
    """First day of the calendar week containing *day*."""
    start = DAY_MAP.get(week_start.lower()[:3], 0)
    days_since = (day.weekday() - start) % 7
    return day - timedelta(days=days_since)


# ── Due / reset ───────────────────────────────────────────────


def is_due(habit: Habit, now: datetime, week_start: str = "mon") -> bool:
    """True when the habit's recurrence boundary has passed since its last reset."""
    if habit.recurrence is Recurrence.ONE_TIME:
        return False
    if habit.last_reset_at is None:
        return True

    tz = now.tzinfo
    today = local_date(now, tz)
    last = local_date(habit.last_reset_at, tz)

    if habit.recurrence is Recurrence.DAILY:
        return last != today
    if habit.recurrence is Recurrence.WEEKLY:
        return week_start_date(last, week_start) != week_start_date(today, week_start)
    return False


def _reset(habit: Habit, now: datetime) -> None:
    habit.mark_incomplete()
    habit.last_reset_at = now


def apply_due_resets(habits: list[Habit], now: datetime, week_start: str = "mon") -> bool:
    """Reset every due habit. Returns True if anything changed."""
    changed = False
    for habit in habits:
        if is_due(habit, now, week_start):
            _reset(habit, now)
            logger.debug("Reset %s habit %s (%s)", habit.recurrence.value, habit.id, habit.title)
            changed = True
    return changed


def reset_all(habits: list[Habit], now: datetime) -> None:
    """Force-reset every recurring habit regardless of due-ness."""
    for habit in habits:
        if habit.recurrence is not Recurrence.ONE_TIME:
            _reset(habit, now)


# ── Completion ────────────────────────────────────────────────


def find_habit(habits: list[Habit], habit_id: str) -> Habit | None:
    """Find a habit by id."""
    for h in habits:
        if h.id == habit_id:
            return h
    return None


def toggle_completion(habits: list[Habit], habit_id: str, now: datetime) -> Transition | None:
    """Flip a habit's completion state.

    Returns the transition taken, or None if no habit has that id.
    """
    habit = find_habit(habits, habit_id)
    if habit is None:
        return None
    if habit.is_completed:
        habit.mark_incomplete()
        return Transition.UNCOMPLETED
    habit.mark_completed(now)
    return Transition.COMPLETED


def aggregate_complete(habits: list[Habit]) -> bool:
    """True iff there is at least one habit and every habit is completed."""
    return bool(habits) and all(h.is_completed for h in habits)


def label_matches(detected: str, required: str) -> bool:
    """Case-insensitive containment of the required label in the detected one.

    'Water Bottle, pop bottle' matches 'water bottle'; an empty requirement
    never matches.
    """
    needle = (required or "").strip().casefold()
    if not needle:
        return False
    return needle in (detected or "").strip().casefold()
