from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from policy_gate.findings import Severity
from policy_gate.metrics import Metrics

from .base import GateVerdict

NO_COVERAGE_REASON: Final[str] = "no coverage report provided"
CRITICAL_PATH_DATA_REASON: Final[str] = "critical-path coverage requires per-file coverage data"


def _pct(value: float) -> str:
    return f"{value:.2f}%"


@dataclass(frozen=True, slots=True)
class CoverageGate:
    min_coverage: float = 80.0
    critical_path_min: float = 100.0
    name: str = "coverage"

    def __post_init__(self) -> None:
        for label, value in (
            ("min_coverage", self.min_coverage),
            ("critical_path_min", self.critical_path_min),
        ):
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{label} must be within [0, 100]: {value}")

    def evaluate(self, metrics: Metrics) -> GateVerdict:
        coverage = metrics.coverage_percent
        if coverage is None:
            return self._verdict(passed=False, reasons=(NO_COVERAGE_REASON,))

        reasons: list[str] = []
        if coverage < self.min_coverage:
            reasons.append(f"unit test coverage {_pct(coverage)} is below the required {_pct(self.min_coverage)}")

        critical = metrics.critical_path_coverage_percent
        if critical is not None and critical < self.critical_path_min:
            reasons.append(
                f"critical-path coverage {_pct(critical)} is below the required {_pct(self.critical_path_min)}"
            )
        elif critical is None and metrics.critical_paths:
            reasons.append(CRITICAL_PATH_DATA_REASON)
        for entry in metrics.critical_paths:
            if entry.percent is not None and entry.percent < entry.threshold:
                reasons.append(
                    f"critical path '{entry.pattern}' coverage {_pct(entry.percent)}"
                    f" is below its threshold {_pct(entry.threshold)}"
                    f" ({entry.lines_covered}/{entry.lines_valid} lines)"
                )

        if reasons:
            return self._verdict(passed=False, reasons=tuple(reasons))
        summary = f"unit test coverage {_pct(coverage)}"
        if critical is not None:
            summary += f", critical-path coverage {_pct(critical)}"
        return self._verdict(passed=True, reasons=(summary,))

    def _verdict(self, *, passed: bool, reasons: tuple[str, ...]) -> GateVerdict:
        return GateVerdict(
            gate_name=self.name,
            passed=passed,
            blocking=True,
            severity=Severity.HIGH,
            reasons=reasons,
        )
