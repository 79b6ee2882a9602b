from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from policy_gate.findings import Finding, Severity, ToolKind, ToolReport

from .base import (
    collect_sizes,
    element_text,
    flag_attribute,
    int_attribute,
    iter_children,
    normalize_path,
    parse_xml_root,
    require_root,
    size_from_rule,
)

_PRIORITY_SEVERITY: Final[dict[int, Severity]] = {
    1: Severity.CRITICAL,
    2: Severity.HIGH,
    3: Severity.MEDIUM,
    4: Severity.LOW,
    5: Severity.LOW,
}
_PROCESSING_ERROR_RULE: Final[str] = "PMD.ProcessingError"
_SUPPRESSED_RULE_FALLBACK: Final[str] = "PMD.Suppressed"


def pmd_severity(priority: int) -> Severity:
    return _PRIORITY_SEVERITY.get(priority, Severity.LOW)


@dataclass(frozen=True, slots=True)
class PmdParser:
    tool: ToolKind = ToolKind.PMD
    fmt: str = "pmd-xml"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        root = parse_xml_root(payload)
        require_root(root, "pmd")

        findings: list[Finding] = []
        for file_element in iter_children(root, "file"):
            file = normalize_path(file_element.get("name") or "")
            for violation in iter_children(file_element, "violation"):
                suppressed = flag_attribute(violation, "suppressed")
                findings.append(
                    Finding(
                        rule_id=(violation.get("rule") or "").strip() or "PMD.Unknown",
                        severity=pmd_severity(int_attribute(violation, "priority", default=3)),
                        file=file,
                        line=int_attribute(violation, "beginline", default=0),
                        message=element_text(violation),
                        suppressed=suppressed,
                        suppression_justification=violation.get("justification") if suppressed else None,
                    )
                )

        for suppressed_element in iter_children(root, "suppressedviolation"):
            findings.append(
                Finding(
                    rule_id=(suppressed_element.get("rule") or "").strip() or _SUPPRESSED_RULE_FALLBACK,
                    severity=pmd_severity(int_attribute(suppressed_element, "priority", default=3)),
                    file=normalize_path(suppressed_element.get("filename") or ""),
                    line=int_attribute(suppressed_element, "beginline", default=0),
                    message=(suppressed_element.get("msg") or "").strip(),
                    suppressed=True,
                    suppression_justification=suppressed_element.get("usermsg"),
                )
            )

        for error_element in iter_children(root, "error"):
            findings.append(
                Finding(
                    rule_id=_PROCESSING_ERROR_RULE,
                    severity=Severity.MEDIUM,
                    file=normalize_path(error_element.get("filename") or ""),
                    message=(error_element.get("msg") or "").strip() or "PMD could not process file",
                )
            )

        return ToolReport(
            tool=self.tool,
            source_path=source_path,
            raw_findings=tuple(findings),
            unit_sizes=collect_sizes(
                size_from_rule(
                    rule_id=finding.rule_id,
                    message=finding.message,
                    file=finding.file,
                    line=finding.line,
                )
                for finding in findings
            ),
        )
