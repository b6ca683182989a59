"""Typed dataclasses for the ProofTracker data model.

All models use from_dict/to_dict for JSON/YAML serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ── Recurrence ────────────────────────────────────────────────


class Recurrence(str, Enum):
    """How often a habit comes due again."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    ONE_TIME = "One-time"

    @classmethod
    def parse(cls, value: Any) -> Recurrence:
        """Accept the stored value, the member name, or loose spellings."""
        if isinstance(value, Recurrence):
            return value
        s = str(value or "").strip()
        for member in cls:
            if s == member.value or s.upper() == member.name:
                return member
        norm = s.lower().replace("-", "").replace("_", "").replace(" ", "")
        if norm in {"onetime", "once"}:
            return cls.ONE_TIME
        if norm == "weekly":
            return cls.WEEKLY
        if norm == "daily":
            return cls.DAILY
        raise ValueError(f"Invalid frequency: {value!r}")

    @property
    def display_name(self) -> str:
        return self.value


def _parse_ts(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat(timespec="seconds") if value else None


# ── Habit ─────────────────────────────────────────────────────


@dataclass
class Habit:
    """A trackable task that needs a photo as proof of completion."""

    id: str = ""
    title: str = ""
    required_label: str = ""
    is_completed: bool = False
    recurrence: Recurrence = Recurrence.DAILY
    last_reset_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def new(
        cls,
        title: str,
        required_label: str,
        recurrence: Recurrence = Recurrence.DAILY,
        now: datetime | None = None,
    ) -> Habit:
        """Create a fresh, incomplete habit with a new id."""
        return cls(
            id=str(uuid.uuid4()),
            title=title.strip(),
            required_label=required_label.strip(),
            is_completed=False,
            recurrence=recurrence,
            last_reset_at=now or datetime.now().astimezone(),
            completed_at=None,
        )

    def mark_completed(self, now: datetime) -> None:
        self.is_completed = True
        self.completed_at = now

    def mark_incomplete(self) -> None:
        self.is_completed = False
        self.completed_at = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Habit:
        try:
            recurrence = Recurrence.parse(d.get("frequency", Recurrence.DAILY.value))
        except ValueError:
            recurrence = Recurrence.DAILY
        last_reset = _parse_ts(d.get("lastResetAt"))
        completed = bool(d.get("isCompleted", False))
        completed_at = _parse_ts(d.get("completedAt"))
        # completedAt is present iff isCompleted
        if completed and completed_at is None:
            completed_at = last_reset
        if not completed:
            completed_at = None
        return cls(
            id=str(d.get("id") or "").strip(),
            title=str(d.get("title", "")),
            required_label=str(d.get("requiredLabel", d.get("requiredClassification", ""))),
            is_completed=completed,
            recurrence=recurrence,
            last_reset_at=last_reset,
            completed_at=completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "requiredLabel": self.required_label,
            "isCompleted": self.is_completed,
            "frequency": self.recurrence.value,
            "lastResetAt": _format_ts(self.last_reset_at),
            "completedAt": _format_ts(self.completed_at),
        }


# ── Settings ──────────────────────────────────────────────────


WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass
class ClassifierSettings:
    command: str = ""
    timeout: float | None = None

    @classmethod
    def from_dict(cls, d: Any) -> ClassifierSettings:
        if not d or not isinstance(d, dict):
            return cls()
        timeout = d.get("timeout")
        return cls(
            command=str(d.get("command", "") or ""),
            timeout=float(timeout) if timeout is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command, "timeout": self.timeout}


@dataclass
class Settings:
    timezone: str = "UTC"
    week_start: str = "mon"
    storage_key: str = "SavedHabits"
    seed_samples: bool = True
    log_level: str = "INFO"
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        week_start = str(d.get("week_start", "mon")).strip().lower()[:3]
        if week_start not in WEEKDAYS:
            week_start = "mon"
        return cls(
            timezone=str(d.get("timezone", "UTC")),
            week_start=week_start,
            storage_key=str(d.get("storage_key", "SavedHabits")) or "SavedHabits",
            seed_samples=bool(d.get("seed_samples", True)),
            log_level=str(d.get("log_level", "INFO")).upper(),
            classifier=ClassifierSettings.from_dict(d.get("classifier")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "week_start": self.week_start,
            "storage_key": self.storage_key,
            "seed_samples": self.seed_samples,
            "log_level": self.log_level,
            "classifier": self.classifier.to_dict(),
        }
