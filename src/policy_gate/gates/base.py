from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Final, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, model_validator

from policy_gate.findings import Severity
from policy_gate.metrics import Metrics

MAX_WORKERS: Final[int] = 10


class GateVerdict(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    gate_name: str = Field(min_length=1)
    passed: bool
    blocking: bool
    severity: Severity
    reasons: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _validate_reasons(self) -> GateVerdict:
        if not self.passed and not self.reasons:
            raise ValueError(f"failed verdict for gate '{self.gate_name}' requires at least one reason")
        return self


@runtime_checkable
class Gate(Protocol):
    @property
    def name(self) -> str: ...

    def evaluate(self, metrics: Metrics) -> GateVerdict: ...


def evaluate_gates(
    gates: Sequence[Gate],
    metrics: Metrics,
    *,
    max_workers: int = MAX_WORKERS,
) -> tuple[GateVerdict, ...]:
    if not gates:
        return ()
    names = [gate.name for gate in gates]
    if len(set(names)) != len(names):
        raise ValueError(f"gate names must be unique: {', '.join(names)}")
    with ThreadPoolExecutor(
        max_workers=max(1, min(len(gates), max_workers)),
        thread_name_prefix="policy-gate-gate",
    ) as executor:
        return tuple(executor.map(lambda gate: gate.evaluate(metrics), gates))
