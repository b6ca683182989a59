"""HabitTracker: the single owner of the habit collection.

The tracker sequences lifecycle operations, persists the collection after
every mutation and maintains the ``celebrating`` flag, which is raised when
every habit is complete and drives the celebration overlay.

A tracker is not thread-safe. Callers serialize access to it: the web app
holds a lock around every call, the TUI only touches it from the event
loop. Classification runs outside that discipline; its result comes back
through ``resolve_proof``/``fail_proof``, which drop results for habits
that were deleted, already completed, or re-photographed in the meantime.
Hooks run on a single background thread in the order they were fired, so
a slow hook never holds up the caller.
"""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from core import habits as habit_ops
from core.classifier import ClassificationError, Classifier
from core.hooks import run_hooks
from core.lifecycle import (
    Transition,
    aggregate_complete,
    apply_due_resets,
    find_habit,
    label_matches,
    reset_all,
    toggle_completion,
)
from core.models import Habit, Settings
from core.store import HabitStore
from core.workspace import get_user_timezone, load_settings, store_path, workspace_root

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _log_hook_crash(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error("Hook run crashed: %s", error)


class ProofOutcome(str, Enum):
    MATCHED = "matched"
    MISMATCH = "mismatch"
    STALE = "stale"
    FAILED = "failed"


@dataclass(frozen=True)
class ProofRequest:
    """A pending photo proof for one habit."""

    habit_id: str
    token: int


@dataclass
class ProofResult:
    outcome: ProofOutcome
    habit_id: str
    title: str
    message: str
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "habitId": self.habit_id,
            "title": self.title,
            "message": self.message,
            "label": self.label,
        }


class HabitTracker:
    def __init__(
        self,
        store: HabitStore,
        clock: Clock | None = None,
        week_start: str = "mon",
        seed_samples: bool = True,
        hooks_root: Path | None = None,
    ) -> None:
        self.store = store
        self.clock: Clock = clock or (lambda: datetime.now().astimezone())
        self.week_start = week_start
        self.hooks_root = hooks_root
        self.habits: list[Habit] = []
        self.celebrating = False
        self.save_failed = False
        self._hook_executor: ThreadPoolExecutor | None = None
        self._last_hook: Future | None = None
        self._pending: dict[str, int] = {}
        self._tokens = itertools.count(1)

        self.habits = self.store.load() or []
        if not self.habits and seed_samples:
            self._seed_samples()
        self.check_and_reset()
        # Never celebrate on startup, only when a habit actually gets completed
        self.celebrating = False

    @classmethod
    def open(cls, root: Path | None = None, settings: Settings | None = None) -> HabitTracker:
        """Build a tracker for a workspace from its settings.yaml."""
        if root is None:
            root = workspace_root()
        if settings is None:
            settings = load_settings(root)
        tz = get_user_timezone(settings=settings)
        return cls(
            HabitStore(store_path(root), settings.storage_key),
            clock=lambda: datetime.now(tz),
            week_start=settings.week_start,
            seed_samples=settings.seed_samples,
            hooks_root=root,
        )

    # ── Internals ─────────────────────────────────────────────

    def _seed_samples(self) -> None:
        now = self.clock()
        self.habits = [habit_ops.sample_habit(i, now) for i in range(len(habit_ops.SAMPLE_HABITS))]
        logger.info("Seeded %d sample habits", len(self.habits))
        self._save()

    def _save(self) -> bool:
        ok = self.store.store(self.habits)
        self.save_failed = not ok
        return ok

    def _hook(self, hook_point: str, context: dict[str, Any]) -> None:
        """Queue a hook run on the background worker; never blocks."""
        if self.hooks_root is None:
            return
        if self._hook_executor is None:
            self._hook_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="prooftracker-hooks")
        future = self._hook_executor.submit(run_hooks, hook_point, context, self.hooks_root)
        future.add_done_callback(_log_hook_crash)
        self._last_hook = future

    def flush_hooks(self, timeout: float | None = None) -> bool:
        """Wait for queued hook runs. Returns False if *timeout* expired first."""
        if self._last_hook is None:
            return True
        # One worker runs hooks in submission order
        done, _ = wait([self._last_hook], timeout=timeout)
        return bool(done)

    def close(self) -> None:
        if self._hook_executor is not None:
            self._hook_executor.shutdown(wait=True)
            self._hook_executor = None

    def _set_celebrating(self, value: bool) -> None:
        if value == self.celebrating:
            return
        self.celebrating = value
        if value:
            logger.info("All %d habits complete", len(self.habits))
            self._hook("on_all_complete", {"total": len(self.habits)})
        else:
            logger.debug("Celebration cleared")

    def _check_completion_celebration(self) -> None:
        self._set_celebrating(aggregate_complete(self.habits))

    def _clear_stale_celebration(self) -> None:
        if self.celebrating and not aggregate_complete(self.habits):
            self._set_celebrating(False)

    # ── CRUD ──────────────────────────────────────────────────

    def get(self, habit_id: str) -> Habit | None:
        return find_habit(self.habits, habit_id)

    def add_habit(self, habit: Habit) -> list[str]:
        errors = habit_ops.add_habit(self.habits, habit)
        if errors:
            return errors
        self._save()
        self._clear_stale_celebration()
        return []

    def create_habit(self, data: dict[str, Any]) -> tuple[Habit | None, list[str]]:
        habit, errors = habit_ops.create_habit(self.habits, data, self.clock())
        if errors:
            return None, errors
        logger.info("Added habit %s (%s)", habit.id, habit.title)
        self._save()
        self._clear_stale_celebration()
        return habit, []

    def duplicate_sample(self, index: int) -> Habit:
        """Add a fresh copy of a sample habit. Raises IndexError for bad indexes."""
        habit = habit_ops.sample_habit(index, self.clock())
        self.add_habit(habit)
        return habit

    def update_habit(self, habit: Habit) -> bool:
        if not habit_ops.update_habit(self.habits, habit):
            return False
        self._save()
        self._clear_stale_celebration()
        return True

    def edit_habit(self, habit_id: str, updates: dict[str, Any]) -> tuple[Habit | None, list[str]]:
        habit, errors = habit_ops.edit_habit(self.habits, habit_id, updates)
        if errors:
            return None, errors
        self._save()
        self._clear_stale_celebration()
        return habit, []

    def delete_habit(self, habit_id: str) -> bool:
        if not habit_ops.delete_habit(self.habits, habit_id):
            return False
        self.cancel_proof(habit_id)
        logger.info("Deleted habit %s", habit_id)
        self._save()
        self._check_completion_celebration()
        return True

    def delete_at(self, positions: list[int]) -> list[Habit]:
        removed = habit_ops.delete_at(self.habits, positions)
        for habit in removed:
            self.cancel_proof(habit.id)
        self._save()
        self._check_completion_celebration()
        return removed

    def move_habits(self, positions: list[int], destination: int) -> bool:
        moved = habit_ops.move_habits(self.habits, positions, destination)
        if moved:
            self._save()
        return moved

    # ── Lifecycle ─────────────────────────────────────────────

    def toggle_completion(self, habit_id: str) -> Transition | None:
        transition = toggle_completion(self.habits, habit_id, self.clock())
        if transition is None:
            return None
        self._save()
        habit = self.get(habit_id)
        context = {"id": habit_id, "title": habit.title if habit else ""}
        if transition is Transition.COMPLETED:
            logger.info("Completed habit %s", habit_id)
            self._hook("on_habit_complete", context)
            self._check_completion_celebration()
        else:
            logger.info("Marked habit %s incomplete", habit_id)
            self._hook("on_habit_uncomplete", context)
            self._set_celebrating(False)
        return transition

    def undo_completion(self, habit_id: str) -> bool:
        """Mark a completed habit incomplete again.

        This is the only manual completion change; completing a habit goes
        through a photo proof. Returns False for unknown or incomplete habits.
        """
        habit = self.get(habit_id)
        if habit is None or not habit.is_completed:
            return False
        self.toggle_completion(habit_id)
        return True

    def check_and_reset(self) -> bool:
        """Reset every habit whose day or week has rolled over."""
        now = self.clock()
        if not apply_due_resets(self.habits, now, self.week_start):
            return False
        logger.info("Reset due habits at %s", now.isoformat(timespec="seconds"))
        self._save()
        self._set_celebrating(False)
        self._hook("on_habits_reset", {"at": now.isoformat(timespec="seconds"), "forced": False})
        return True

    def reset_all(self) -> None:
        """Reset every recurring habit now, due or not."""
        now = self.clock()
        reset_all(self.habits, now)
        logger.info("Reset all recurring habits")
        self._save()
        self._set_celebrating(False)
        self._hook("on_habits_reset", {"at": now.isoformat(timespec="seconds"), "forced": True})

    def refresh_completion_state(self) -> None:
        self.check_and_reset()
        self._check_completion_celebration()

    def dismiss_celebration(self) -> None:
        self._set_celebrating(False)

    # ── Photo proofs ──────────────────────────────────────────

    def begin_proof(self, habit_id: str) -> ProofRequest | None:
        """Start a proof for a habit, superseding any earlier one for it."""
        if self.get(habit_id) is None:
            return None
        token = next(self._tokens)
        self._pending[habit_id] = token
        return ProofRequest(habit_id=habit_id, token=token)

    def cancel_proof(self, habit_id: str) -> None:
        self._pending.pop(habit_id, None)

    def _claim(self, request: ProofRequest) -> bool:
        if self._pending.get(request.habit_id) != request.token:
            return False
        del self._pending[request.habit_id]
        return True

    def resolve_proof(self, request: ProofRequest, label: str) -> ProofResult:
        """Apply a classifier label to the habit the request was made for."""
        habit = self.get(request.habit_id)
        if not self._claim(request) or habit is None or habit.is_completed:
            logger.info("Discarded stale proof for habit %s", request.habit_id)
            return ProofResult(
                ProofOutcome.STALE, request.habit_id, "Proof Discarded",
                "This photo arrived after the habit changed; nothing was updated.",
                label,
            )

        if not label_matches(label, habit.required_label):
            logger.info("Proof mismatch for %s: wanted %r, got %r",
                        habit.id, habit.required_label, label)
            return ProofResult(
                ProofOutcome.MISMATCH, habit.id, "Not Quite Right",
                f"Detected '{label}' but this doesn't match your habit requirement "
                f"of '{habit.required_label}'. Please try taking another photo.",
                label,
            )

        self.toggle_completion(habit.id)
        return ProofResult(
            ProofOutcome.MATCHED, habit.id, "Success!",
            f"Great job! Detected '{label}' which matches your habit requirement. "
            "Your habit is now marked as complete!",
            label,
        )

    def fail_proof(self, request: ProofRequest, error: ClassificationError) -> ProofResult:
        self._claim(request)
        logger.warning("Classification failed for habit %s: %s", request.habit_id, error)
        return ProofResult(
            ProofOutcome.FAILED, request.habit_id, "Classification Failed",
            f"Sorry, we couldn't analyze your photo: {str(error).rstrip('.')}. Please try again.",
        )

    def submit_proof(self, habit_id: str, image: Path, classifier: Classifier) -> ProofResult | None:
        """Classify *image* and apply the result in one step.

        Returns None when no habit has that id.
        """
        request = self.begin_proof(habit_id)
        if request is None:
            return None
        try:
            label = classifier.classify(image)
        except ClassificationError as e:
            return self.fail_proof(request, e)
        return self.resolve_proof(request, label)

    # ── Views ─────────────────────────────────────────────────

    def visible_habits(self, query: str = "") -> list[Habit]:
        return habit_ops.ordered_for_display(habit_ops.search_habits(self.habits, query))

    def summary(self) -> dict[str, Any]:
        done = sum(1 for h in self.habits if h.is_completed)
        return {
            "total": len(self.habits),
            "completed": done,
            "celebrating": self.celebrating,
            "saveFailed": self.save_failed,
        }
