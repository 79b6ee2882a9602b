from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Final

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from .errors import IllegalCommitState, IllegalTransition


class Phase(StrEnum):
    STOPPED = "stopped"
    RED = "red"
    GREEN = "green"
    REFACTORING = "refactoring"


TRANSITIONS: Final[Mapping[Phase, frozenset[Phase]]] = MappingProxyType(
    {
        Phase.STOPPED: frozenset({Phase.RED}),
        Phase.RED: frozenset({Phase.GREEN}),
        Phase.GREEN: frozenset({Phase.REFACTORING, Phase.STOPPED}),
        Phase.REFACTORING: frozenset({Phase.GREEN, Phase.STOPPED}),
    }
)
COMMIT_PHASES: Final[frozenset[Phase]] = frozenset({Phase.GREEN, Phase.REFACTORING})


def utc_now() -> datetime:
    return datetime.now(UTC)


class WorkflowState(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    task_id: str = Field(min_length=1)
    phase: Phase = Phase.STOPPED
    entered_at: AwareDatetime
    coverage_checked: bool = False
    coverage_checked_at: AwareDatetime | None = None
    revision: int = Field(default=0, ge=0)


def initial_state(task_id: str, *, now: datetime | None = None) -> WorkflowState:
    return WorkflowState(task_id=task_id, entered_at=now or utc_now())


def can_transition(current: Phase, target: Phase) -> bool:
    return target in TRANSITIONS[current]


def _enter(state: WorkflowState, target: Phase, now: datetime | None) -> WorkflowState:
    update: dict[str, object] = {
        "phase": target,
        "entered_at": now or utc_now(),
        "revision": state.revision + 1,
    }
    if target is Phase.STOPPED:
        update["coverage_checked"] = False
        update["coverage_checked_at"] = None
    return state.model_copy(update=update)


def transition(state: WorkflowState, target: Phase, *, now: datetime | None = None) -> WorkflowState:
    if not can_transition(state.phase, target):
        raise IllegalTransition(state.phase, target)
    if state.phase is Phase.STOPPED and target is Phase.RED and not state.coverage_checked:
        if state.coverage_checked_at is None:
            reason = "no passing coverage check recorded; run 'policy-gate phase check-coverage' first"
        else:
            reason = "last coverage check failed; fix coverage and re-run 'policy-gate phase check-coverage'"
        raise IllegalTransition(state.phase, target, reason=reason)
    return _enter(state, target, now)


def abandon(state: WorkflowState, *, now: datetime | None = None) -> WorkflowState:
    return _enter(state, Phase.STOPPED, now)


def record_coverage_check(
    state: WorkflowState,
    passed: bool,
    *,
    now: datetime | None = None,
) -> WorkflowState:
    if state.phase is not Phase.STOPPED:
        raise IllegalTransition(
            state.phase,
            state.phase,
            reason="coverage checks can only be recorded while stopped",
        )
    return state.model_copy(
        update={
            "coverage_checked": passed,
            "coverage_checked_at": now or utc_now(),
            "revision": state.revision + 1,
        }
    )


def check_commit(state: WorkflowState) -> None:
    if state.phase in COMMIT_PHASES:
        return
    if state.phase is Phase.RED:
        raise IllegalCommitState(
            state.phase,
            f"never commit failing tests: task '{state.task_id}' is in phase red",
        )
    raise IllegalCommitState(
        state.phase,
        f"no active TDD cycle: task '{state.task_id}' is in phase {state.phase.value}",
    )
