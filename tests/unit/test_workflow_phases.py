from __future__ import annotations

from datetime import UTC, datetime

import pytest

from policy_gate.workflow import (
    E_STATE_ILLEGAL_COMMIT,
    E_STATE_ILLEGAL_TRANSITION,
    IllegalCommitState,
    IllegalTransition,
    Phase,
    WorkflowState,
    abandon,
    check_commit,
    initial_state,
    record_coverage_check,
    transition,
)

pytestmark = pytest.mark.unit

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _state(phase: Phase, **overrides: object) -> WorkflowState:
    payload: dict[str, object] = {"task_id": "feature/pay", "phase": phase, "entered_at": _NOW}
    payload.update(overrides)
    return WorkflowState(**payload)


def test_initial_state_is_stopped_without_coverage_check() -> None:
    state = initial_state("t", now=_NOW)

    assert state.phase is Phase.STOPPED
    assert not state.coverage_checked
    assert state.revision == 0


def test_full_tdd_cycle() -> None:
    state = record_coverage_check(initial_state("t", now=_NOW), True, now=_NOW)
    assert state.coverage_checked
    assert state.coverage_checked_at == _NOW

    for target in (Phase.RED, Phase.GREEN, Phase.REFACTORING, Phase.GREEN, Phase.STOPPED):
        state = transition(state, target, now=_NOW)

    assert state.phase is Phase.STOPPED
    assert state.revision == 6
    assert not state.coverage_checked
    assert state.coverage_checked_at is None


def test_stopped_to_red_requires_the_latest_coverage_check_to_pass() -> None:
    with pytest.raises(IllegalTransition, match="no passing coverage check recorded") as excinfo:
        transition(_state(Phase.STOPPED), Phase.RED)
    assert excinfo.value.code == E_STATE_ILLEGAL_TRANSITION

    failed_check = record_coverage_check(_state(Phase.STOPPED), False, now=_NOW)
    with pytest.raises(IllegalTransition, match="last coverage check failed"):
        transition(failed_check, Phase.RED)

    passed_again = record_coverage_check(failed_check, True, now=_NOW)
    assert transition(passed_again, Phase.RED, now=_NOW).phase is Phase.RED


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (Phase.STOPPED, Phase.GREEN),
        (Phase.RED, Phase.REFACTORING),
        (Phase.RED, Phase.STOPPED),
        (Phase.GREEN, Phase.RED),
        (Phase.REFACTORING, Phase.RED),
        (Phase.GREEN, Phase.GREEN),
    ],
)
def test_illegal_transitions_are_rejected(current: Phase, target: Phase) -> None:
    with pytest.raises(IllegalTransition) as excinfo:
        transition(_state(current), target)
    assert excinfo.value.current is current
    assert excinfo.value.target is target
    assert str(excinfo.value) == (
        f"E_STATE_ILLEGAL_TRANSITION: transition {current.value} -> {target.value} is not allowed"
    )


def test_abandon_leaves_red_without_passing_green() -> None:
    state = abandon(_state(Phase.RED, coverage_checked=True, revision=4), now=_NOW)

    assert state.phase is Phase.STOPPED
    assert not state.coverage_checked
    assert state.revision == 5


def test_coverage_check_only_recorded_while_stopped() -> None:
    with pytest.raises(IllegalTransition, match="only be recorded while stopped"):
        record_coverage_check(_state(Phase.GREEN), True)


def test_check_commit_allows_green_and_refactoring() -> None:
    check_commit(_state(Phase.GREEN))
    check_commit(_state(Phase.REFACTORING))


def test_check_commit_rejects_red_and_stopped() -> None:
    with pytest.raises(IllegalCommitState, match="never commit failing tests") as red:
        check_commit(_state(Phase.RED))
    assert red.value.code == E_STATE_ILLEGAL_COMMIT
    assert red.value.phase is Phase.RED

    with pytest.raises(IllegalCommitState, match="no active TDD cycle") as stopped:
        check_commit(_state(Phase.STOPPED))
    assert stopped.value.phase is Phase.STOPPED


def test_workflow_state_requires_timezone_aware_timestamps() -> None:
    with pytest.raises(ValueError):
        WorkflowState(task_id="t", entered_at=datetime(2026, 1, 1))
