"""ProofTracker core library — habit data layer and lifecycle engine.

Public API re-exports for convenient imports:
    from core import HabitTracker, is_due, label_matches, ...
"""

# Workspace & paths
from core.workspace import (
    workspace_root,
    load_settings,
    get_user_timezone,
    settings_path,
    store_path,
    hooks_config_path,
    uploads_path,
    init_workspace,
)

# File I/O
from core.fileio import (
    read_json,
    read_yaml,
    write_json_atomic,
    write_yaml_atomic,
)

# Models
from core.models import (
    Recurrence,
    Habit,
    Settings,
    ClassifierSettings,
)

# Lifecycle engine
from core.lifecycle import (
    Transition,
    is_due,
    apply_due_resets,
    reset_all,
    toggle_completion,
    aggregate_complete,
    label_matches,
    find_habit,
    local_date,
    week_start_date,
)

# Habit CRUD
from core.habits import (
    SAMPLE_HABITS,
    validate_habit,
    create_habit,
    add_habit,
    update_habit,
    edit_habit,
    delete_habit,
    delete_at,
    move_habits,
    search_habits,
    ordered_for_display,
)

# Gateways
from core.store import HabitStore
from core.classifier import (
    Classifier,
    CommandClassifier,
    ClassificationError,
    InvalidImage,
    NoResult,
    UnderlyingError,
)
from core.hooks import HookResult, HookSpec, run_hooks

# Tracker
from core.tracker import (
    HabitTracker,
    ProofOutcome,
    ProofRequest,
    ProofResult,
)

from core.log import setup_logging
