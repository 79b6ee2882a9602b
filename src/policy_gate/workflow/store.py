from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Final

from pydantic import ValidationError

from policy_gate.fs_atomic import atomic_write_text

from .errors import StateCorrupted
from .lock import exclusive_lock
from .phases import Phase, WorkflowState, abandon, check_commit, initial_state, record_coverage_check, transition

logger = logging.getLogger(__name__)

STATE_SCHEMA: Final[str] = "policy_gate.workflow_state"
STATE_SCHEMA_VERSION: Final[int] = 1
DEFAULT_LOCK_TIMEOUT_SECONDS: Final[float] = 5.0

_UNSAFE_CHARS: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")


def task_file_stem(task_id: str) -> str:
    stem = _UNSAFE_CHARS.sub("_", task_id).strip("._")
    if stem == task_id:
        return stem
    # distinct ids that sanitise alike ("feat/x", "feat_x") keep distinct files
    digest = hashlib.sha256(task_id.encode("utf-8")).hexdigest()[:8]
    return f"{stem or 'task'}-{digest}"


class StateStore:
    def __init__(self, state_dir: Path, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS) -> None:
        if lock_timeout <= 0:
            raise ValueError("lock_timeout must be > 0")
        self.state_dir = state_dir
        self.lock_timeout = lock_timeout

    def state_path(self, task_id: str) -> Path:
        return self.state_dir / f"{task_file_stem(task_id)}.json"

    def lock_path(self, task_id: str) -> Path:
        return self.state_dir / f"{task_file_stem(task_id)}.lock"

    def load(self, task_id: str) -> WorkflowState:
        return self._read(task_id)

    def check_commit(self, task_id: str) -> WorkflowState:
        state = self._read(task_id)
        check_commit(state)
        return state

    def advance(self, task_id: str, target: Phase) -> WorkflowState:
        return self._mutate(task_id, lambda state: transition(state, target))

    def abandon(self, task_id: str) -> WorkflowState:
        return self._mutate(task_id, abandon)

    def record_coverage_check(self, task_id: str, passed: bool) -> WorkflowState:
        return self._mutate(task_id, lambda state: record_coverage_check(state, passed))

    def _mutate(self, task_id: str, change: Callable[[WorkflowState], WorkflowState]) -> WorkflowState:
        with exclusive_lock(self.lock_path(task_id), timeout=self.lock_timeout):
            current = self._read(task_id)
            updated = change(current)
            self._write(updated)
        logger.info(
            "task %s: %s -> %s (revision %d)",
            task_id,
            current.phase.value,
            updated.phase.value,
            updated.revision,
        )
        return updated

    def _read(self, task_id: str) -> WorkflowState:
        path = self.state_path(task_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("no state file for task %s; starting in stopped", task_id)
            return initial_state(task_id)
        except OSError as exc:
            raise StateCorrupted(f"state file '{path.as_posix()}' is unreadable: {exc}") from exc

        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StateCorrupted(f"state file '{path.as_posix()}' is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise StateCorrupted(f"state file '{path.as_posix()}' must contain a JSON object")
        if document.get("schema") != STATE_SCHEMA or document.get("schema_version") != STATE_SCHEMA_VERSION:
            raise StateCorrupted(f"state file '{path.as_posix()}' has an unsupported schema")
        try:
            state = WorkflowState.model_validate(document.get("state"))
        except ValidationError as exc:
            raise StateCorrupted(f"state file '{path.as_posix()}' is invalid: {exc}") from exc
        if state.task_id != task_id:
            raise StateCorrupted(
                f"state file '{path.as_posix()}' belongs to task '{state.task_id}', not '{task_id}'"
            )
        return state

    def _write(self, state: WorkflowState) -> None:
        document = {
            "schema": STATE_SCHEMA,
            "schema_version": STATE_SCHEMA_VERSION,
            "state": state.model_dump(mode="json"),
        }
        atomic_write_text(self.state_path(state.task_id), json.dumps(document, indent=2, sort_keys=True) + "\n")
