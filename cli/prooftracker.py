#!/usr/bin/env python3
"""ProofTracker TUI — photo-proof habit tracker powered by Textual."""

from __future__ import annotations

from pathlib import Path

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, Input, Label, Static

from core import (
    ClassificationError,
    CommandClassifier,
    HabitTracker,
    ProofOutcome,
    ProofRequest,
    init_workspace,
    load_settings,
    setup_logging,
    workspace_root,
)
from core.habits import SAMPLE_HABITS
from core.models import Habit


CSS = """
Screen {
    layout: vertical;
}

.section-title {
    text-style: bold;
    color: $accent;
    padding: 0 1;
    margin: 1 0 0 0;
}

#habits-table {
    height: 1fr;
}

#prompt-label {
    color: $text-muted;
    padding: 0 1;
    display: none;
}

#prompt {
    display: none;
}

#celebration {
    display: none;
    height: auto;
    padding: 1 2;
    margin: 1 2;
    border: double $success;
    content-align: center middle;
    text-style: bold;
}
"""

CELEBRATION_TEXT = (
    "\U0001f389  Congratulations!\n"
    "You've completed all your tasks!\n"
    "(esc to dismiss)"
)

PROMPTS = {
    "add": "New habit: title | required label | Daily/Weekly/One-time",
    "edit": "Edit habit: title | required label | Daily/Weekly/One-time",
    "search": "Search habits...",
    "proof": "Path to the photo proving this habit",
}


def parse_habit_line(text: str) -> dict[str, str]:
    """Turn 'Read | book | Daily' into form data for create/edit."""
    parts = [p.strip() for p in text.split("|")]
    data = {"title": parts[0] if parts else "", "requiredLabel": parts[1] if len(parts) > 1 else ""}
    if len(parts) > 2 and parts[2]:
        data["frequency"] = parts[2]
    return data


def plan_move(habits: list[Habit], visible_ids: list[str], habit_id: str, offset: int) -> tuple[int, int] | None:
    """Stored-order (position, destination) that swaps a habit with its on-screen neighbour.

    Open habits are always listed above done ones, so a habit only moves
    within its own group; crossing that boundary raises ValueError. Returns
    None at either end of the list.
    """
    row = visible_ids.index(habit_id) + offset
    if row < 0 or row >= len(visible_ids):
        return None
    by_id = {h.id: h for h in habits}
    neighbour = by_id[visible_ids[row]]
    if by_id[habit_id].is_completed != neighbour.is_completed:
        raise ValueError("Open habits stay above done ones.")
    ids = [h.id for h in habits]
    pos = ids.index(habit_id)
    target = ids.index(neighbour.id)
    return pos, target + 1 if target > pos else target


# ── Main app ───────────────────────────────────────────────────


class ProofTrackerApp(App):
    """ProofTracker — habits that need a photo to count."""

    TITLE = "Proof Tracker"
    CSS = CSS

    BINDINGS = [
        Binding("a", "add_habit", "Add"),
        Binding("n", "add_sample", "Sample"),
        Binding("e", "edit_habit", "Edit"),
        Binding("x", "delete_habit", "Delete"),
        Binding("space", "undo_habit", "Undo"),
        Binding("p", "proof_habit", "Photo"),
        Binding("K", "move_up", "Up"),
        Binding("J", "move_down", "Down"),
        Binding("slash", "search", "Search"),
        Binding("r", "reset_all", "Reset all"),
        Binding("escape", "cancel", "Back"),
        Binding("q", "quit", "Quit"),
    ]

    prompt_mode: reactive[str] = reactive("")

    def __init__(self, root: Path | None = None) -> None:
        super().__init__()
        self.root = root or workspace_root()
        self.settings = load_settings(self.root)
        self.tracker = HabitTracker.open(self.root, self.settings)
        self.classifier = CommandClassifier.from_settings(self.settings.classifier, cwd=self.root)
        self._query = ""
        self._visible_ids: list[str] = []
        self._sample_index = 0

    def compose(self) -> ComposeResult:
        yield Header()
        yield Vertical(
            Label("Habits", classes="section-title"),
            DataTable(id="habits-table", cursor_type="row"),
            Static(CELEBRATION_TEXT, id="celebration"),
            Label("", id="prompt-label"),
            Input(id="prompt"),
        )
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#habits-table", DataTable)
        table.add_columns("", "Habit", "Requires", "Frequency")
        self._refresh()
        # Day/week rollovers while the app stays open
        self.set_interval(60, self._tick)

    def on_unmount(self) -> None:
        self.tracker.close()

    def _tick(self) -> None:
        if self.tracker.check_and_reset():
            self._refresh()

    # ── Rendering ──────────────────────────────────────────────

    def _refresh(self) -> None:
        table = self.query_one("#habits-table", DataTable)
        row = table.cursor_row
        table.clear()
        habits = self.tracker.visible_habits(self._query)
        self._visible_ids = [h.id for h in habits]
        for h in habits:
            table.add_row(
                "✅" if h.is_completed else "📷",
                h.title,
                h.required_label,
                h.recurrence.display_name,
                key=h.id,
            )
        if habits:
            table.move_cursor(row=min(row, len(habits) - 1))

        summary = self.tracker.summary()
        parts = [f"{summary['completed']}/{summary['total']} done"]
        if self._query:
            parts.append(f"filter: {self._query}")
        if summary["saveFailed"]:
            parts.append("⚠ not saved")
        self.sub_title = "  ".join(parts)
        self.query_one("#celebration", Static).display = self.tracker.celebrating

    def _selected_id(self) -> str | None:
        table = self.query_one("#habits-table", DataTable)
        if not self._visible_ids:
            return None
        return self._visible_ids[min(table.cursor_row, len(self._visible_ids) - 1)]

    # ── Prompt handling ────────────────────────────────────────

    def _open_prompt(self, mode: str, value: str = "") -> None:
        self.prompt_mode = mode
        label = self.query_one("#prompt-label", Label)
        prompt = self.query_one("#prompt", Input)
        label.update(PROMPTS[mode])
        label.display = True
        prompt.display = True
        prompt.value = value
        prompt.focus()

    def _close_prompt(self) -> None:
        self.prompt_mode = ""
        self.query_one("#prompt-label", Label).display = False
        prompt = self.query_one("#prompt", Input)
        prompt.display = False
        prompt.value = ""
        self.query_one("#habits-table", DataTable).focus()

    @on(Input.Submitted, "#prompt")
    def _on_prompt_submitted(self, event: Input.Submitted) -> None:
        mode = self.prompt_mode
        text = event.value.strip()
        habit_id = self._selected_id()
        self._close_prompt()

        if mode == "search":
            self._query = text
        elif mode == "add" and text:
            _, errors = self.tracker.create_habit(parse_habit_line(text))
            if errors:
                self.notify("; ".join(errors), title="Invalid habit", severity="warning")
        elif mode == "edit" and text and habit_id:
            _, errors = self.tracker.edit_habit(habit_id, parse_habit_line(text))
            if errors:
                self.notify("; ".join(errors), title="Invalid habit", severity="warning")
        elif mode == "proof" and text and habit_id:
            request = self.tracker.begin_proof(habit_id)
            if request is not None:
                self.notify("Analyzing photo…", title="Photo proof")
                self._classify(request, Path(text).expanduser())
        self._refresh()

    # ── Actions ────────────────────────────────────────────────

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Disable list shortcuts while the prompt is open."""
        if self.prompt_mode and action not in {"cancel", "quit"}:
            return False
        return True

    def action_add_habit(self) -> None:
        self._open_prompt("add")

    def action_add_sample(self) -> None:
        habit = self.tracker.duplicate_sample(self._sample_index % len(SAMPLE_HABITS))
        self._sample_index += 1
        self.notify(f"Added '{habit.title}'", title="Sample habit")
        self._refresh()

    def action_edit_habit(self) -> None:
        habit_id = self._selected_id()
        habit = self.tracker.get(habit_id) if habit_id else None
        if habit:
            self._open_prompt("edit", f"{habit.title} | {habit.required_label} | {habit.recurrence.value}")

    def action_delete_habit(self) -> None:
        habit_id = self._selected_id()
        if habit_id and self.tracker.delete_habit(habit_id):
            self._refresh()

    def action_undo_habit(self) -> None:
        habit_id = self._selected_id()
        habit = self.tracker.get(habit_id) if habit_id else None
        if habit is None:
            return
        if not habit.is_completed:
            self.notify("Press p and point to a photo to complete it.", title=habit.title)
            return
        self.tracker.undo_completion(habit_id)
        self._refresh()

    def action_proof_habit(self) -> None:
        habit_id = self._selected_id()
        habit = self.tracker.get(habit_id) if habit_id else None
        if habit is None:
            return
        if habit.is_completed:
            self.notify("Already done. Press space to undo.", title=habit.title)
            return
        self._open_prompt("proof")

    def _move(self, offset: int) -> None:
        habit_id = self._selected_id()
        if not habit_id:
            return
        try:
            plan = plan_move(self.tracker.habits, self._visible_ids, habit_id, offset)
        except ValueError as e:
            self.notify(str(e), title="Reorder")
            return
        if plan is None:
            return
        self.tracker.move_habits([plan[0]], plan[1])
        self._refresh()
        self.query_one("#habits-table", DataTable).move_cursor(row=self._visible_ids.index(habit_id))

    def action_move_up(self) -> None:
        self._move(-1)

    def action_move_down(self) -> None:
        self._move(1)

    def action_search(self) -> None:
        self._open_prompt("search", self._query)

    def action_reset_all(self) -> None:
        self.tracker.reset_all()
        self.notify("All recurring habits reset.", title="Reset")
        self._refresh()

    def action_cancel(self) -> None:
        if self.prompt_mode:
            self._close_prompt()
        elif self.tracker.celebrating:
            self.tracker.dismiss_celebration()
            self._refresh()
        elif self._query:
            self._query = ""
            self._refresh()

    # ── Classification worker ──────────────────────────────────

    @work(thread=True)
    def _classify(self, request: ProofRequest, image: Path) -> None:
        """Run the classifier off the event loop, then apply the result on it."""
        try:
            label = self.classifier.classify(image)
        except ClassificationError as e:
            self.call_from_thread(self._apply_failure, request, e)
            return
        self.call_from_thread(self._apply_label, request, label)

    def _apply_label(self, request: ProofRequest, label: str) -> None:
        result = self.tracker.resolve_proof(request, label)
        severity = "information" if result.outcome is ProofOutcome.MATCHED else "warning"
        self.notify(result.message, title=result.title, severity=severity)
        self._refresh()

    def _apply_failure(self, request: ProofRequest, error: ClassificationError) -> None:
        result = self.tracker.fail_proof(request, error)
        self.notify(result.message, title=result.title, severity="error")


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    root = workspace_root()
    init_workspace(root)
    settings = load_settings(root)
    setup_logging(settings.log_level, filename=root / "prooftracker.log")

    app = ProofTrackerApp(root)
    app.run()


if __name__ == "__main__":
    main()
