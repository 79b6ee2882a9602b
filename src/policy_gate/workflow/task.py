from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Final

logger = logging.getLogger(__name__)

TASK_ENV_VAR: Final[str] = "POLICY_GATE_TASK"
DEFAULT_TASK_ID: Final[str] = "default"
GIT_TIMEOUT_SECONDS: Final[float] = 2.0


def current_git_branch(*, cwd: Path | None = None, timeout: float = GIT_TIMEOUT_SECONDS) -> str | None:
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("git branch lookup failed: %s", exc)
        return None
    if completed.returncode != 0:
        return None
    branch = completed.stdout.strip()
    # detached HEAD has no branch to scope a task to
    if not branch or branch == "HEAD":
        return None
    return branch


def resolve_task_id(
    explicit: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> str:
    if explicit is not None and explicit.strip():
        return explicit.strip()
    environ = os.environ if env is None else env
    from_env = environ.get(TASK_ENV_VAR, "").strip()
    if from_env:
        return from_env
    branch = current_git_branch(cwd=cwd)
    if branch is not None:
        return branch
    return DEFAULT_TASK_ID
