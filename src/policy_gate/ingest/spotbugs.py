from __future__ import annotations

from dataclasses import dataclass
from xml.etree import ElementTree

from policy_gate.findings import Finding, Severity, ToolKind, ToolReport

from .base import (
    element_text,
    flag_attribute,
    int_attribute,
    iter_children,
    iter_descendants,
    normalize_path,
    parse_xml_root,
    require_root,
)
from .errors import ReportFormatError

_PRIORITY_SEVERITY: dict[int, Severity] = {
    1: Severity.HIGH,
    2: Severity.MEDIUM,
    3: Severity.LOW,
}


def spotbugs_severity(*, rank: int | None, priority: int) -> Severity:
    if rank is not None:
        if rank <= 4:
            return Severity.CRITICAL
        if rank <= 9:
            return Severity.HIGH
        if rank <= 14:
            return Severity.MEDIUM
        return Severity.LOW
    return _PRIORITY_SEVERITY.get(priority, Severity.LOW)


def _primary_source_line(bug: ElementTree.Element) -> ElementTree.Element | None:
    direct = list(iter_children(bug, "SourceLine"))
    for candidate in direct:
        if flag_attribute(candidate, "primary"):
            return candidate
    if direct:
        return direct[0]
    nested = list(iter_descendants(bug, "SourceLine"))
    for candidate in nested:
        if flag_attribute(candidate, "primary"):
            return candidate
    return nested[0] if nested else None


@dataclass(frozen=True, slots=True)
class SpotBugsParser:
    tool: ToolKind = ToolKind.SPOTBUGS
    fmt: str = "spotbugs-xml"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        root = parse_xml_root(payload)
        require_root(root, "BugCollection")

        findings: list[Finding] = []
        for bug in iter_children(root, "BugInstance"):
            bug_type = (bug.get("type") or "").strip()
            if not bug_type:
                raise ReportFormatError("<BugInstance> is missing attribute 'type'")
            rank = int_attribute(bug, "rank") if bug.get("rank") else None
            source_line = _primary_source_line(bug)
            file = ""
            line = 0
            if source_line is not None:
                file = normalize_path(source_line.get("sourcepath") or source_line.get("sourcefile") or "")
                line = int_attribute(source_line, "start", default=0)
            message = element_text(next(iter_children(bug, "LongMessage"), None)) or element_text(
                next(iter_children(bug, "ShortMessage"), None)
            )
            findings.append(
                Finding(
                    rule_id=bug_type,
                    severity=spotbugs_severity(rank=rank, priority=int_attribute(bug, "priority", default=3)),
                    file=file,
                    line=line,
                    message=message or bug_type,
                )
            )

        return ToolReport(tool=self.tool, source_path=source_path, raw_findings=tuple(findings))
