from .errors import (
    E_STATE_CORRUPTED,
    E_STATE_ILLEGAL_COMMIT,
    E_STATE_ILLEGAL_TRANSITION,
    E_STATE_LOCK_TIMEOUT,
    IllegalCommitState,
    IllegalTransition,
    StateCorrupted,
    StateLockTimeout,
    WorkflowError,
)
from .lock import exclusive_lock
from .phases import (
    COMMIT_PHASES,
    TRANSITIONS,
    Phase,
    WorkflowState,
    abandon,
    can_transition,
    check_commit,
    initial_state,
    record_coverage_check,
    transition,
    utc_now,
)
from .store import DEFAULT_LOCK_TIMEOUT_SECONDS, STATE_SCHEMA, STATE_SCHEMA_VERSION, StateStore, task_file_stem
from .task import DEFAULT_TASK_ID, TASK_ENV_VAR, current_git_branch, resolve_task_id

__all__ = [
    "COMMIT_PHASES",
    "DEFAULT_LOCK_TIMEOUT_SECONDS",
    "DEFAULT_TASK_ID",
    "E_STATE_CORRUPTED",
    "E_STATE_ILLEGAL_COMMIT",
    "E_STATE_ILLEGAL_TRANSITION",
    "E_STATE_LOCK_TIMEOUT",
    "STATE_SCHEMA",
    "STATE_SCHEMA_VERSION",
    "TASK_ENV_VAR",
    "TRANSITIONS",
    "IllegalCommitState",
    "IllegalTransition",
    "Phase",
    "StateCorrupted",
    "StateLockTimeout",
    "StateStore",
    "WorkflowError",
    "WorkflowState",
    "abandon",
    "can_transition",
    "check_commit",
    "current_git_branch",
    "exclusive_lock",
    "initial_state",
    "record_coverage_check",
    "resolve_task_id",
    "task_file_stem",
    "transition",
    "utc_now",
]
