"""Workspace root, settings, timezone and path helpers for ProofTracker."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from core.fileio import read_yaml, write_yaml_atomic
from core.models import Settings

logger = logging.getLogger(__name__)


def workspace_root() -> Path:
    """Get the workspace root directory (holds settings.yaml and data/)."""
    return Path(
        os.environ.get("PROOFTRACKER_ROOT", str(Path.home() / ".prooftracker"))
    ).expanduser().resolve()


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml, falling back to defaults when missing or broken."""
    if root is None:
        root = workspace_root()
    try:
        return Settings.from_dict(read_yaml(settings_path(root)))
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning("Could not read settings, using defaults: %s", e)
        return Settings()


def get_user_timezone(root: Path | None = None, settings: Settings | None = None) -> ZoneInfo:
    """Get the local-calendar timezone from settings, defaulting to UTC."""
    if settings is None:
        settings = load_settings(root)
    try:
        return ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", settings.timezone)
        return ZoneInfo("UTC")


# ── Path helpers ──────────────────────────────────────────────

def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def store_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "store.json"


def hooks_config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "hooks.yaml"


def uploads_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "uploads"


def init_workspace(root: Path | None = None) -> bool:
    """Create the workspace with a default settings.yaml if it has none.

    Returns True when a settings file was written.
    """
    if root is None:
        root = workspace_root()
    path = settings_path(root)
    if path.exists():
        return False
    (root / "data").mkdir(parents=True, exist_ok=True)
    settings = Settings(timezone=_local_zone_name())
    write_yaml_atomic(path, settings.to_dict())
    logger.info("Initialized workspace at %s", root)
    return True


def _local_zone_name() -> str:
    """Best-effort IANA name of the machine's zone, for first-run defaults."""
    tz = os.environ.get("TZ", "").strip()
    if tz:
        return tz
    try:
        target = os.readlink("/etc/localtime")
    except OSError:
        return "UTC"
    _, sep, name = target.partition("zoneinfo/")
    return name if sep and name else "UTC"
