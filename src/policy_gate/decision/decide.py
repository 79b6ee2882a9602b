from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from typing import Final

from policy_gate.findings.sort import severity_rank
from policy_gate.gates import GateVerdict

from .models import HookPhase, IngestFailure, PolicyDecision, StateCheck, decision_allowed

DECISION_SCHEMA: Final[str] = "policy_gate.decision"
DECISION_SCHEMA_VERSION: Final[int] = 1

EXIT_ALLOWED: Final[int] = 0
EXIT_GATE_FAILURE: Final[int] = 1
EXIT_STATE_VIOLATION: Final[int] = 2
EXIT_INPUT_FAILURE: Final[int] = 3


def decide(
    verdicts: Sequence[GateVerdict],
    state_check: StateCheck,
    *,
    ingest_errors: Sequence[IngestFailure] = (),
    hook_phase: HookPhase,
) -> PolicyDecision:
    verdict_tuple = tuple(verdicts)
    failure_tuple = tuple(ingest_errors)
    return PolicyDecision(
        allowed=decision_allowed(verdict_tuple, state_check, failure_tuple),
        verdicts=verdict_tuple,
        state_check=state_check,
        ingest_errors=failure_tuple,
        hook_phase=hook_phase,
        task_id=state_check.task_id,
    )


def exit_code(decision: PolicyDecision) -> int:
    if not decision.state_check.passed:
        return EXIT_STATE_VIOLATION
    if any(failure.required for failure in decision.ingest_errors):
        return EXIT_INPUT_FAILURE
    if any(verdict.blocking and not verdict.passed for verdict in decision.verdicts):
        return EXIT_GATE_FAILURE
    return EXIT_ALLOWED


def render_json(decision: PolicyDecision) -> str:
    payload: dict[str, object] = decision.model_dump(mode="json")
    payload["schema"] = DECISION_SCHEMA
    payload["schema_version"] = DECISION_SCHEMA_VERSION
    payload["exit_code"] = exit_code(decision)
    return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), sort_keys=True)


def _verdict_sort_key(verdict: GateVerdict) -> tuple[int, str]:
    return (severity_rank(verdict.severity), verdict.gate_name)


def _verdict_lines(verdicts: Iterable[GateVerdict]) -> list[str]:
    lines: list[str] = []
    for verdict in sorted(verdicts, key=_verdict_sort_key):
        lines.append(
            "GATE"
            f" name={verdict.gate_name}"
            f" severity={verdict.severity.value}"
            f" blocking={'true' if verdict.blocking else 'false'}"
            " status=fail"
        )
        lines.extend(f"  reason={reason}" for reason in verdict.reasons)
    return lines


def _ingest_lines(failures: Iterable[IngestFailure]) -> list[str]:
    return [
        "INGEST"
        f" tool={failure.tool.value}"
        f" code={failure.code}"
        f" required={'true' if failure.required else 'false'}"
        f" path={failure.path}"
        f" message={failure.message}"
        for failure in failures
    ]


def render_text(decision: PolicyDecision) -> str:
    lines: list[str] = []
    state = decision.state_check
    if not state.passed:
        lines.append(
            "STATE"
            f" task={state.task_id or '-'}"
            f" phase={state.phase.value if state.phase is not None else '-'}"
            f" code={state.code}"
            f" message={state.reason}"
        )
    lines.extend(_ingest_lines(failure for failure in decision.ingest_errors if failure.required))

    failed = [verdict for verdict in decision.verdicts if not verdict.passed]
    lines.extend(_verdict_lines(verdict for verdict in failed if verdict.blocking))
    lines.extend(_verdict_lines(verdict for verdict in failed if not verdict.blocking))
    lines.extend(_ingest_lines(failure for failure in decision.ingest_errors if not failure.required))

    lines.append(f"RESULT {'allowed' if decision.allowed else 'blocked'} exit={exit_code(decision)}")
    return "\n".join(lines)
