from __future__ import annotations

from dataclasses import dataclass

from policy_gate.findings import Severity
from policy_gate.metrics import Metrics

from .base import GateVerdict


@dataclass(frozen=True, slots=True)
class SuppressionDriftGate:
    max_new: int = 0
    name: str = "suppression_drift"

    def __post_init__(self) -> None:
        if self.max_new < 0:
            raise ValueError("max_new must be >= 0")

    def evaluate(self, metrics: Metrics) -> GateVerdict:
        if metrics.new_suppressions <= self.max_new:
            return GateVerdict(
                gate_name=self.name,
                passed=True,
                blocking=True,
                severity=Severity.HIGH,
                reasons=(f"{metrics.new_suppressions} new suppression(s) (allowed: {self.max_new})",),
            )

        reasons = [
            f"{metrics.new_suppressions} new or undocumented suppression(s) (allowed: {self.max_new})"
        ]
        reasons.extend(
            f"suppression without justification: {record.rule_id} at {record.file}:{record.line}"
            for record in metrics.suppressions
            if not record.justified
        )
        return GateVerdict(
            gate_name=self.name,
            passed=False,
            blocking=True,
            severity=Severity.HIGH,
            reasons=tuple(reasons),
        )
