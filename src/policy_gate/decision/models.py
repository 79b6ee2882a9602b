from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from policy_gate.findings import ToolKind
from policy_gate.gates import GateVerdict
from policy_gate.ingest import FailedSource, IngestErrorKind
from policy_gate.workflow import Phase, WorkflowError, WorkflowState


class HookPhase(StrEnum):
    PRE_COMMIT = "pre-commit"
    PRE_PUSH = "pre-push"


class StateCheck(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    passed: bool
    phase: Phase | None = None
    task_id: str | None = None
    reason: str | None = None
    code: str | None = None

    @model_validator(mode="after")
    def _validate_failure(self) -> StateCheck:
        if not self.passed and not (self.reason and self.code):
            raise ValueError("failed state check requires a reason and an error code")
        return self

    @classmethod
    def allowed(cls, state: WorkflowState) -> StateCheck:
        return cls(passed=True, phase=state.phase, task_id=state.task_id)

    @classmethod
    def disabled(cls, task_id: str | None = None) -> StateCheck:
        return cls(passed=True, task_id=task_id, reason="workflow enforcement disabled")

    @classmethod
    def from_error(cls, error: WorkflowError, *, task_id: str, phase: Phase | None = None) -> StateCheck:
        return cls(
            passed=False,
            phase=getattr(error, "phase", phase),
            task_id=task_id,
            reason=error.message,
            code=error.code,
        )


class IngestFailure(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tool: ToolKind
    path: str
    kind: IngestErrorKind
    message: str
    required: bool

    @property
    def code(self) -> str:
        return f"E_INGEST_{self.kind.value.upper()}"

    @classmethod
    def from_failed_source(cls, failed: FailedSource) -> IngestFailure:
        detail = failed.error.detail
        return cls(
            tool=detail.tool,
            path=detail.path,
            kind=detail.kind,
            message=detail.message,
            required=failed.source.required,
        )


def decision_allowed(
    verdicts: tuple[GateVerdict, ...],
    state_check: StateCheck,
    ingest_errors: tuple[IngestFailure, ...],
) -> bool:
    return (
        state_check.passed
        and all(verdict.passed for verdict in verdicts if verdict.blocking)
        and not any(failure.required for failure in ingest_errors)
    )


class PolicyDecision(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    allowed: bool
    verdicts: tuple[GateVerdict, ...] = ()
    state_check: StateCheck
    ingest_errors: tuple[IngestFailure, ...] = ()
    hook_phase: HookPhase
    task_id: str | None = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _validate_allowed(self) -> PolicyDecision:
        if self.allowed != decision_allowed(self.verdicts, self.state_check, self.ingest_errors):
            raise ValueError("allowed flag is inconsistent with verdicts, state check and ingest errors")
        names = [verdict.gate_name for verdict in self.verdicts]
        if len(set(names)) != len(names):
            raise ValueError("each gate may contribute at most one verdict")
        return self
