from __future__ import annotations

from collections.abc import Iterable

from .models import Finding, Severity, UnitSize

SEVERITY_RANK: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


def severity_rank(severity: Severity) -> int:
    return SEVERITY_RANK[severity]


def finding_sort_key(finding: Finding) -> tuple[int, str, int, str, str, int]:
    return (
        SEVERITY_RANK[finding.severity],
        finding.file,
        finding.line,
        finding.rule_id,
        finding.message,
        1 if finding.suppressed else 0,
    )


def sort_findings(findings: Iterable[Finding]) -> list[Finding]:
    return sorted(findings, key=finding_sort_key)


def unit_size_sort_key(unit: UnitSize) -> tuple[int, str, str, str]:
    return (-unit.lines, unit.kind.value, unit.file, unit.name)
