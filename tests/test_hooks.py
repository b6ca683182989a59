"""Tests for core/hooks.py — hook system."""

import json

import yaml
from core.hooks import DEFAULT_TIMEOUT, HookSpec, load_hooks_config, parse_hook_specs, run_hooks


def write_config(workspace, config):
    (workspace / "hooks.yaml").write_text(yaml.dump(config), encoding="utf-8")


def test_run_hooks_no_config(workspace):
    """No hooks.yaml -> no hooks run."""
    assert run_hooks("on_all_complete", {"total": 3}, workspace) == []


def test_load_hooks_config(workspace):
    write_config(workspace, {"on_habit_complete": ["true"]})
    assert load_hooks_config(workspace) == {"on_habit_complete": ["true"]}


def test_load_broken_config_is_empty(workspace):
    (workspace / "hooks.yaml").write_text("on_all_complete: [unclosed", encoding="utf-8")
    assert load_hooks_config(workspace) == {}


def test_parse_hook_specs():
    specs = parse_hook_specs([
        "echo hi",
        {"command": "notify", "timeout": 5},
        {"command": "slow", "timeout": -1},
        {"timeout": 3},
        "",
        42,
    ])
    assert specs == [
        HookSpec("echo hi"),
        HookSpec("notify", 5),
        HookSpec("slow", DEFAULT_TIMEOUT),
    ]
    assert parse_hook_specs("echo hi") == []


def test_run_hooks_with_echo(workspace):
    """Hook gets the context JSON on stdin."""
    write_config(workspace, {"on_habit_complete": ["cat"]})

    results = run_hooks("on_habit_complete", {"id": "h1", "title": "Read"}, workspace)
    assert len(results) == 1
    assert results[0].ok
    assert json.loads(results[0].stdout) == {"id": "h1", "title": "Read"}


def test_run_hooks_sets_hook_point_env(workspace):
    write_config(workspace, {"on_habits_reset": ['echo "$PROOFTRACKER_HOOK"']})
    results = run_hooks("on_habits_reset", {}, workspace)
    assert results[0].stdout.strip() == "on_habits_reset"


def test_run_hooks_invalid_hook_point(workspace):
    write_config(workspace, {"on_startup": ["cat"]})
    assert run_hooks("on_startup", {}, workspace) == []


def test_run_hooks_failure_is_reported(workspace):
    write_config(workspace, {"on_habits_reset": ["exit 2", "true"]})
    results = run_hooks("on_habits_reset", {"forced": True}, workspace)
    assert [r.exit_code for r in results] == [2, 0]


def test_run_hooks_timeout(workspace):
    """Test hook timeout protection."""
    write_config(workspace, {"on_all_complete": [{"command": "sleep 10", "timeout": 1}]})

    results = run_hooks("on_all_complete", {"total": 1}, workspace)
    assert len(results) == 1
    assert results[0].exit_code == -1
    assert "timed out" in results[0].error.lower()
