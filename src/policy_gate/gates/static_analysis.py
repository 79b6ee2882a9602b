from __future__ import annotations

from dataclasses import dataclass

from policy_gate.findings import Severity
from policy_gate.metrics import Metrics

from .base import GateVerdict


@dataclass(frozen=True, slots=True)
class StaticAnalysisGate:
    """Blocks on critical/high violations; medium and low counts only warn."""

    max_critical: int = 0
    max_high: int = 0
    name: str = "static_analysis"

    def __post_init__(self) -> None:
        if self.max_critical < 0 or self.max_high < 0:
            raise ValueError("static analysis limits must be >= 0")

    def evaluate(self, metrics: Metrics) -> GateVerdict:
        critical = metrics.violations(Severity.CRITICAL)
        high = metrics.violations(Severity.HIGH)
        medium = metrics.violations(Severity.MEDIUM)
        low = metrics.violations(Severity.LOW)

        blocking_reasons: list[str] = []
        if critical > self.max_critical:
            blocking_reasons.append(f"{critical} critical violation(s) (allowed: {self.max_critical})")
        if high > self.max_high:
            blocking_reasons.append(f"{high} high violation(s) (allowed: {self.max_high})")
        advisory_reason = f"{medium} medium and {low} low violation(s) (advisory)"

        if blocking_reasons:
            if medium or low:
                blocking_reasons.append(advisory_reason)
            return GateVerdict(
                gate_name=self.name,
                passed=False,
                blocking=True,
                severity=Severity.CRITICAL if critical > self.max_critical else Severity.HIGH,
                reasons=tuple(blocking_reasons),
            )
        if medium or low:
            return GateVerdict(
                gate_name=self.name,
                passed=False,
                blocking=False,
                severity=Severity.MEDIUM if medium else Severity.LOW,
                reasons=(advisory_reason,),
            )
        return GateVerdict(
            gate_name=self.name,
            passed=True,
            blocking=True,
            severity=Severity.HIGH,
            reasons=("no unsuppressed static analysis violations",),
        )
