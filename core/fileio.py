"""File I/O for the workspace: tolerant readers, atomic writers."""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml


def _document_text(path: Path) -> str | None:
    """File contents, or None for a missing or whitespace-only file."""
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8")
    return text if text.strip() else None


def read_json(path: Path) -> dict[str, Any]:
    """Read a JSON object, returning {} if the file is missing or blank.

    Raises ``json.JSONDecodeError`` (a ValueError) on malformed content and
    ``ValueError`` when the top-level value is not an object.
    """
    text = _document_text(path)
    if text is None:
        return {}
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data


def read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML mapping; anything else reads as {}."""
    text = _document_text(path)
    if text is None:
        return {}
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


def atomic_write_text(path: Path, content: str) -> None:
    """Replace *path* with *content* so readers never see a partial file.

    Writes a sibling temp file under an exclusive flock, fsyncs it and
    renames it over the target.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def write_yaml_atomic(path: Path, data: dict[str, Any]) -> None:
    atomic_write_text(path, yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False))
