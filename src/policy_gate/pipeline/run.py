from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from policy_gate.config import PolicyConfig
from policy_gate.decision import HookPhase, IngestFailure, PolicyDecision, StateCheck, decide, exit_code
from policy_gate.findings import ToolKind
from policy_gate.gates import GateVerdict, evaluate_gates
from policy_gate.ingest import Deadline, IngestOutcome, ParserRegistry, default_registry, ingest_all
from policy_gate.metrics import Metrics, aggregate, load_baseline, save_baseline
from policy_gate.workflow import StateStore, WorkflowError, WorkflowState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckResult:
    decision: PolicyDecision
    metrics: Metrics | None
    exit_code: int


@dataclass(frozen=True, slots=True)
class CoverageCheckResult:
    verdict: GateVerdict
    state: WorkflowState
    ingest_errors: tuple[IngestFailure, ...]


@dataclass(frozen=True, slots=True)
class BaselineUpdateResult:
    metrics: Metrics
    ingest_errors: tuple[IngestFailure, ...]
    written: bool


def state_store(config: PolicyConfig, state_dir: Path | None = None) -> StateStore:
    return StateStore(
        state_dir if state_dir is not None else config.workflow.state_dir,
        lock_timeout=config.workflow.lock_timeout_seconds,
    )


def check_workflow_state(config: PolicyConfig, task_id: str, *, state_dir: Path | None = None) -> StateCheck:
    if not config.workflow.enabled:
        return StateCheck.disabled(task_id)
    try:
        state = state_store(config, state_dir).check_commit(task_id)
    except WorkflowError as exc:
        logger.warning("workflow check failed for task %s: %s", task_id, exc)
        return StateCheck.from_error(exc, task_id=task_id)
    return StateCheck.allowed(state)


def _failures(outcome: IngestOutcome) -> tuple[IngestFailure, ...]:
    return tuple(IngestFailure.from_failed_source(failed) for failed in outcome.failures)


def run_check(
    config: PolicyConfig,
    *,
    hook_phase: HookPhase,
    task_id: str,
    state_dir: Path | None = None,
    deadline_seconds: float | None = None,
    registry: ParserRegistry | None = None,
    cwd: Path | None = None,
) -> CheckResult:
    state_check = check_workflow_state(config, task_id, state_dir=state_dir)
    if not state_check.passed:
        decision = decide((), state_check, hook_phase=hook_phase)
        return CheckResult(decision=decision, metrics=None, exit_code=exit_code(decision))

    seconds = deadline_seconds if deadline_seconds is not None else config.deadline_for(hook_phase)
    deadline = Deadline.after(seconds)
    baseline = load_baseline(config.baseline) if config.baseline is not None else None
    outcome = ingest_all(
        config.report_sources(cwd=cwd),
        registry=registry if registry is not None else default_registry(),
        deadline=deadline,
    )
    metrics = aggregate(outcome.reports, baseline, critical_paths=config.critical_path_rules())
    verdicts = evaluate_gates(config.build_gates(), metrics)
    decision = decide(verdicts, state_check, ingest_errors=_failures(outcome), hook_phase=hook_phase)
    code = exit_code(decision)
    logger.info(
        "%s check for task %s: %s (exit %d, %d verdict(s), %d ingest error(s))",
        hook_phase.value,
        task_id,
        "allowed" if decision.allowed else "blocked",
        code,
        len(decision.verdicts),
        len(decision.ingest_errors),
    )
    return CheckResult(decision=decision, metrics=metrics, exit_code=code)


def check_coverage(
    config: PolicyConfig,
    *,
    task_id: str,
    state_dir: Path | None = None,
    registry: ParserRegistry | None = None,
    cwd: Path | None = None,
) -> CoverageCheckResult:
    sources = tuple(source for source in config.report_sources(cwd=cwd) if source.tool is ToolKind.COVERAGE)
    outcome = ingest_all(
        sources,
        registry=registry,
        deadline=Deadline.after(config.deadline_for(HookPhase.PRE_COMMIT)),
    )
    metrics = aggregate(outcome.reports, critical_paths=config.critical_path_rules())
    verdict = config.coverage_gate().evaluate(metrics)
    state = state_store(config, state_dir).record_coverage_check(task_id, verdict.passed)
    return CoverageCheckResult(verdict=verdict, state=state, ingest_errors=_failures(outcome))


def update_baseline(
    config: PolicyConfig,
    *,
    registry: ParserRegistry | None = None,
    cwd: Path | None = None,
) -> BaselineUpdateResult:
    if config.baseline is None:
        raise ValueError("no baseline path configured")
    outcome = ingest_all(
        config.report_sources(cwd=cwd),
        registry=registry,
        deadline=Deadline.after(config.deadline_for(HookPhase.PRE_PUSH)),
    )
    metrics = aggregate(outcome.reports, critical_paths=config.critical_path_rules())
    failures = _failures(outcome)
    if any(failure.required for failure in failures):
        logger.warning("baseline not written: a required report failed to ingest")
        return BaselineUpdateResult(metrics=metrics, ingest_errors=failures, written=False)
    save_baseline(config.baseline, metrics)
    return BaselineUpdateResult(metrics=metrics, ingest_errors=failures, written=True)
