from __future__ import annotations

import os
import secrets
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from fastapi import Body, Depends, FastAPI, File, HTTPException, UploadFile, status
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from core import (
    ClassificationError,
    CommandClassifier,
    HabitTracker,
    load_settings,
    setup_logging,
    uploads_path,
    workspace_root,
)
from core.models import Habit


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


# ── Tracker ownership ─────────────────────────────────────────
#
# One tracker per app. FastAPI runs sync endpoints in a thread pool, so
# every tracker call happens under ``_lock``. Classification runs outside
# the lock and is resolved back under it.

class TrackerHolder:
    def __init__(self, root: Path | None = None) -> None:
        self.root = root
        self._lock = threading.Lock()
        self._tracker: HabitTracker | None = None

    @contextmanager
    def locked(self) -> Iterator[HabitTracker]:
        with self._lock:
            if self._tracker is None:
                root = self.root or workspace_root()
                settings = load_settings(root)
                setup_logging(settings.log_level)
                self._tracker = HabitTracker.open(root, settings)
            yield self._tracker

    def classifier(self) -> CommandClassifier:
        root = self.root or workspace_root()
        return CommandClassifier.from_settings(load_settings(root).classifier, cwd=root)


def create_app(root: Path | None = None) -> FastAPI:
    app = FastAPI(title="ProofTracker", version="0.1.0")
    app.state.holder = TrackerHolder(root)
    _register_routes(app)
    return app


# ── Auth ──────────────────────────────────────────────────────

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("PROOFTRACKER_USERNAME", "")
    expected_password = os.environ.get("PROOFTRACKER_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def _state(tracker: HabitTracker) -> dict[str, Any]:
    return {"summary": tracker.summary(), "celebrating": tracker.celebrating}


def _habit_or_404(tracker: HabitTracker, habit_id: str) -> Habit:
    habit = tracker.get(habit_id)
    if habit is None:
        raise HTTPException(status_code=404, detail=f"Habit not found: {habit_id}")
    return habit


def _positions(payload: dict[str, Any]) -> list[int]:
    raw = payload.get("positions")
    if not isinstance(raw, list):
        raise HTTPException(status_code=400, detail="Missing positions")
    try:
        return [int(p) for p in raw]
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="positions must be integers")


def _register_routes(app: FastAPI) -> None:
    holder: TrackerHolder = app.state.holder

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"ok": "true"}

    @app.get("/", response_class=HTMLResponse)
    def index(q: str = "", username: str = Depends(get_current_user)) -> HTMLResponse:
        with holder.locked() as tracker:
            tracker.check_and_reset()
            habits = tracker.visible_habits(q)
            celebrating = tracker.celebrating

        rows = []
        for h in habits:
            mark = "✅" if h.is_completed else "⬜"
            rows.append(
                f'<li class="habit{" done" if h.is_completed else ""}">{mark} '
                f"<b>{_escape(h.title)}</b> "
                f'<span class="muted">Requires: {_escape(h.required_label)}</span> '
                f'<span class="pill">{_escape(h.recurrence.display_name)}</span></li>'
            )
        banner = ""
        if celebrating:
            banner = "<div class=\"celebration\">\U0001f389 Congratulations! You've completed all your tasks!</div>"

        html = f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>ProofTracker</title>
</head>
<body>
  <h1>Proof Tracker</h1>
  {banner}
  <form method="get" action="/"><input name="q" value="{_escape(q)}" placeholder="Search habits..." /></form>
  <ul>{''.join(rows) if rows else '<li class="muted">No habits yet.</li>'}</ul>
</body>
</html>"""
        return HTMLResponse(html)

    @app.get("/api/habits")
    def api_list_habits(q: str = "", username: str = Depends(get_current_user)) -> dict[str, Any]:
        """List habits, incomplete first, optionally filtered by a search string.

        Each habit carries its stored `position`, the index that the
        delete and move endpoints take.
        """
        with holder.locked() as tracker:
            tracker.check_and_reset()
            positions = {h.id: i for i, h in enumerate(tracker.habits)}
            habits = [{**h.to_dict(), "position": positions[h.id]} for h in tracker.visible_habits(q)]
            return {"habits": habits, **_state(tracker)}

    @app.post("/api/habits")
    def api_create_habit(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            habit, errors = tracker.create_habit(payload)
            if errors:
                raise HTTPException(status_code=400, detail="; ".join(errors))
            return {"ok": True, "habit": habit.to_dict(), **_state(tracker)}

    @app.post("/api/habits/samples/{index}")
    def api_duplicate_sample(index: int, username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            if index < 0:
                raise HTTPException(status_code=404, detail=f"No sample habit {index}")
            try:
                habit = tracker.duplicate_sample(index)
            except IndexError:
                raise HTTPException(status_code=404, detail=f"No sample habit {index}")
            return {"ok": True, "habit": habit.to_dict(), **_state(tracker)}

    @app.post("/api/habits/delete")
    def api_delete_positions(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
        """Delete by position in the stored order."""
        positions = _positions(payload)
        with holder.locked() as tracker:
            removed = tracker.delete_at(positions)
            return {"ok": True, "removed": [h.id for h in removed], **_state(tracker)}

    @app.post("/api/habits/move")
    def api_move_habits(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
        positions = _positions(payload)
        try:
            destination = int(payload.get("destination"))
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="Missing destination")
        with holder.locked() as tracker:
            moved = tracker.move_habits(positions, destination)
            return {"ok": True, "moved": moved, "order": [h.id for h in tracker.habits]}

    @app.post("/api/habits/reset")
    def api_reset_all(username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            tracker.reset_all()
            return {"ok": True, **_state(tracker)}

    @app.post("/api/habits/refresh")
    def api_refresh(username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            tracker.refresh_completion_state()
            return {"ok": True, **_state(tracker)}

    @app.put("/api/habits/{habit_id}")
    def api_edit_habit(habit_id: str, payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            _habit_or_404(tracker, habit_id)
            habit, errors = tracker.edit_habit(habit_id, payload)
            if errors:
                raise HTTPException(status_code=400, detail="; ".join(errors))
            return {"ok": True, "habit": habit.to_dict(), **_state(tracker)}

    @app.delete("/api/habits/{habit_id}")
    def api_delete_habit(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            if not tracker.delete_habit(habit_id):
                raise HTTPException(status_code=404, detail=f"Habit not found: {habit_id}")
            return {"ok": True, "habit_id": habit_id, **_state(tracker)}

    @app.post("/api/habits/{habit_id}/undo")
    def api_undo(habit_id: str, username: str = Depends(get_current_user)) -> dict[str, Any]:
        """Mark a completed habit incomplete. Completing needs a photo proof."""
        with holder.locked() as tracker:
            habit = _habit_or_404(tracker, habit_id)
            if not tracker.undo_completion(habit_id):
                raise HTTPException(status_code=409, detail="Habit is not complete; submit a photo proof to complete it")
            return {"ok": True, "habit": habit.to_dict(), **_state(tracker)}

    @app.post("/api/habits/{habit_id}/proof")
    def api_proof(
        habit_id: str,
        image: UploadFile = File(...),
        username: str = Depends(get_current_user),
    ) -> dict[str, Any]:
        """Classify an uploaded photo and complete the habit on a match."""
        with holder.locked() as tracker:
            request = tracker.begin_proof(habit_id)
        if request is None:
            raise HTTPException(status_code=404, detail=f"Habit not found: {habit_id}")

        upload_dir = uploads_path(holder.root or workspace_root())
        upload_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(image.filename or "").suffix or ".jpg"
        fd, tmp = tempfile.mkstemp(dir=upload_dir, prefix="proof_", suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(image.file.read())
            try:
                label = holder.classifier().classify(Path(tmp))
                error = None
            except ClassificationError as e:
                label, error = None, e
        finally:
            os.unlink(tmp)

        with holder.locked() as tracker:
            if error is not None:
                result = tracker.fail_proof(request, error)
            else:
                result = tracker.resolve_proof(request, label)
            return {"ok": True, "result": result.to_dict(), **_state(tracker)}

    @app.get("/api/celebration")
    def api_celebration(username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            return {"celebrating": tracker.celebrating}

    @app.post("/api/celebration/dismiss")
    def api_dismiss_celebration(username: str = Depends(get_current_user)) -> dict[str, Any]:
        with holder.locked() as tracker:
            tracker.dismiss_celebration()
            return {"ok": True, "celebrating": tracker.celebrating}


app = create_app()
