"""Shared test fixtures for ProofTracker tests."""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

from core.store import HabitStore

TZ = ZoneInfo("Europe/Rome")


class FakeClock:
    """A settable clock for HabitTracker."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeClassifier:
    """Returns a fixed label, or raises a fixed error."""

    def __init__(self, label: str = "", error: Exception | None = None) -> None:
        self.label = label
        self.error = error
        self.calls: list[Path] = []

    def classify(self, image: Path) -> str:
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        return self.label


@pytest.fixture
def clock() -> FakeClock:
    # Wednesday 2026-02-11, 10:00 in Rome
    return FakeClock(datetime(2026, 2, 11, 10, 0, tzinfo=TZ))


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def store(tmp_path: Path) -> HabitStore:
    return HabitStore(tmp_path / "data" / "store.json")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with a settings file."""
    root = tmp_path / "workspace"
    root.mkdir(parents=True)

    settings = {
        "timezone": "Europe/Rome",
        "week_start": "mon",
        "storage_key": "SavedHabits",
        "seed_samples": True,
        "log_level": "DEBUG",
        "classifier": {"command": "", "timeout": None},
    }
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    # Set env var
    os.environ["PROOFTRACKER_ROOT"] = str(root)
    yield root
    # Cleanup
    if "PROOFTRACKER_ROOT" in os.environ:
        del os.environ["PROOFTRACKER_ROOT"]


@pytest.fixture
def image(tmp_path: Path) -> Path:
    """A small non-empty file standing in for a photo."""
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0 not really a jpeg")
    return path
