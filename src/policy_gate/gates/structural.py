from __future__ import annotations

from dataclasses import dataclass

from policy_gate.findings import Severity
from policy_gate.metrics import Metrics

from .base import GateVerdict


@dataclass(frozen=True, slots=True)
class StructuralMetricGate:
    max_class_lines: int = 300
    max_method_lines: int = 20
    blocking: bool = False
    name: str = "structural"

    def __post_init__(self) -> None:
        if self.max_class_lines <= 0 or self.max_method_lines <= 0:
            raise ValueError("structural limits must be > 0")

    def evaluate(self, metrics: Metrics) -> GateVerdict:
        reasons: list[str] = []
        if metrics.largest_class_lines > self.max_class_lines:
            reasons.append(
                f"largest class {metrics.largest_class or '?'} has {metrics.largest_class_lines} lines"
                f" (max: {self.max_class_lines})"
            )
        if metrics.largest_method_lines > self.max_method_lines:
            reasons.append(
                f"largest method {metrics.largest_method or '?'} has {metrics.largest_method_lines} lines"
                f" (max: {self.max_method_lines})"
            )
        passed = not reasons
        if passed:
            reasons.append(
                f"largest class {metrics.largest_class_lines} lines,"
                f" largest method {metrics.largest_method_lines} lines"
            )
        return GateVerdict(
            gate_name=self.name,
            passed=passed,
            blocking=self.blocking,
            severity=Severity.MEDIUM,
            reasons=tuple(reasons),
        )
