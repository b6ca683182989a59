"""Shell hooks fired by the tracker at habit lifecycle events.

hooks.yaml in the workspace root maps a hook point to a list of commands,
either plain strings or ``{command, timeout}`` mappings::

    on_all_complete:
      - notify-send "All habits done"
      - command: ./scripts/log_streak.sh
        timeout: 5

Each command runs through the shell in the workspace root with the event
context as JSON on stdin and the hook point in ``PROOFTRACKER_HOOK``.
Hook failures are logged and reported, never raised: a broken hook must
not undo a completion that was already saved.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from core.fileio import read_yaml
from core.workspace import hooks_config_path, workspace_root

logger = logging.getLogger(__name__)

HOOK_POINTS = (
    "on_habit_complete",
    "on_habit_uncomplete",
    "on_habits_reset",
    "on_all_complete",
)

DEFAULT_TIMEOUT = 30
OUTPUT_CAP = 4096


@dataclass(frozen=True)
class HookSpec:
    command: str
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class HookResult:
    hook_point: str
    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def load_hooks_config(root: Path | None = None) -> dict[str, Any]:
    """Read hooks.yaml; a missing or unreadable file means no hooks."""
    path = hooks_config_path(root or workspace_root())
    try:
        return read_yaml(path)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read hooks config %s: %s", path, e)
        return {}


def parse_hook_specs(entries: Any) -> list[HookSpec]:
    """Turn the raw list under a hook point into HookSpecs, skipping junk."""
    if not isinstance(entries, list):
        return []
    specs = []
    for entry in entries:
        if isinstance(entry, str) and entry.strip():
            specs.append(HookSpec(entry))
        elif isinstance(entry, dict) and str(entry.get("command") or "").strip():
            timeout = entry.get("timeout", DEFAULT_TIMEOUT)
            if not isinstance(timeout, (int, float)) or timeout <= 0:
                timeout = DEFAULT_TIMEOUT
            specs.append(HookSpec(str(entry["command"]), timeout))
        else:
            logger.debug("Ignoring hook entry %r", entry)
    return specs


def _run_one(hook_point: str, spec: HookSpec, payload: str, root: Path) -> HookResult:
    env = dict(os.environ, PROOFTRACKER_HOOK=hook_point)
    try:
        proc = subprocess.run(
            spec.command,
            shell=True,
            input=payload,
            capture_output=True,
            text=True,
            timeout=spec.timeout,
            cwd=str(root),
            env=env,
        )
    except subprocess.TimeoutExpired:
        return HookResult(hook_point, spec.command, -1, error=f"Hook timed out after {spec.timeout}s")
    except OSError as e:
        return HookResult(hook_point, spec.command, -1, error=str(e))
    return HookResult(
        hook_point,
        spec.command,
        proc.returncode,
        stdout=proc.stdout[:OUTPUT_CAP],
        stderr=proc.stderr[:OUTPUT_CAP],
    )


def run_hooks(hook_point: str, context: dict[str, Any], root: Path | None = None) -> list[HookResult]:
    """Run every hook registered for *hook_point*, in order."""
    if hook_point not in HOOK_POINTS:
        logger.debug("Unknown hook point %s", hook_point)
        return []
    root = root or workspace_root()
    specs = parse_hook_specs(load_hooks_config(root).get(hook_point))
    if not specs:
        return []

    payload = json.dumps(context, ensure_ascii=False, default=str)
    results = []
    for spec in specs:
        result = _run_one(hook_point, spec, payload, root)
        if not result.ok:
            logger.warning("Hook %r (%s) failed: %s", spec.command, hook_point,
                           result.error or result.stderr.strip() or f"exit code {result.exit_code}")
        results.append(result)
    return results
