"""Durable key-value storage of the habit collection.

The store file is a JSON object; the whole habit list lives under one
fixed key (``SavedHabits`` by default) and is read and written wholesale.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any

from core.fileio import read_json, write_json_atomic
from core.models import Habit

logger = logging.getLogger(__name__)

DEFAULT_KEY = "SavedHabits"


class HabitStore:
    """Load/store the full habit sequence under a single key."""

    def __init__(self, path: Path, key: str = DEFAULT_KEY) -> None:
        self.path = path
        self.key = key

    def _read_document(self) -> dict[str, Any]:
        return read_json(self.path)

    def load(self) -> list[Habit] | None:
        """Return the stored habits, or None when nothing usable is stored."""
        try:
            raw = self._read_document().get(self.key)
        except (OSError, ValueError) as e:
            logger.warning("Could not read habits from %s: %s", self.path, e)
            return None
        if raw is None:
            return None
        if not isinstance(raw, list):
            logger.warning("Ignoring malformed habit data under key %r", self.key)
            return None
        habits = [Habit.from_dict(d) for d in raw if isinstance(d, dict)]
        _ensure_unique_ids(habits)
        logger.debug("Loaded %d habits from %s", len(habits), self.path)
        return habits

    def store(self, habits: list[Habit]) -> bool:
        """Write the whole habit sequence. Returns False on failure.

        Failures are logged, not raised; the caller's in-memory list stays
        the source of truth.
        """
        try:
            try:
                document = self._read_document()
            except ValueError:
                document = {}
            document[self.key] = [h.to_dict() for h in habits]
            write_json_atomic(self.path, document)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to save %d habits to %s: %s", len(habits), self.path, e)
            return False
        return True



def _ensure_unique_ids(habits: list[Habit]) -> None:
    """Give blank or repeated ids a fresh uuid4; the first holder keeps its id."""
    seen: set[str] = set()
    for habit in habits:
        if not habit.id or habit.id in seen:
            old = habit.id
            habit.id = str(uuid.uuid4())
            logger.warning("Stored habit %r had id %r, assigned %s", habit.title, old, habit.id)
        seen.add(habit.id)
