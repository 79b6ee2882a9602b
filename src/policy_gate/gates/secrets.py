from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from policy_gate.findings import Severity
from policy_gate.metrics import Metrics

from .base import GateVerdict

NO_SECRET_SCAN_REASON: Final[str] = "no secret-scan report provided"


@dataclass(frozen=True, slots=True)
class SecretGate:
    name: str = "secrets"

    def evaluate(self, metrics: Metrics) -> GateVerdict:
        count = metrics.secret_findings
        if count is None:
            return self._verdict(passed=False, reasons=(NO_SECRET_SCAN_REASON,))
        if count == 0:
            return self._verdict(passed=True, reasons=("no secrets detected",))
        reasons = [f"{count} potential secret(s) detected; zero tolerance"]
        reasons.extend(f"secret at {location}" for location in metrics.secret_locations)
        return self._verdict(passed=False, reasons=tuple(reasons))

    def _verdict(self, *, passed: bool, reasons: tuple[str, ...]) -> GateVerdict:
        return GateVerdict(
            gate_name=self.name,
            passed=passed,
            blocking=True,
            severity=Severity.CRITICAL,
            reasons=reasons,
        )
