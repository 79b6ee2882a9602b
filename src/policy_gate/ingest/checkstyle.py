from __future__ import annotations

from dataclasses import dataclass

from policy_gate.findings import Finding, ToolKind, ToolReport

from .base import (
    checkstyle_severity,
    collect_sizes,
    flag_attribute,
    int_attribute,
    iter_children,
    normalize_path,
    parse_xml_root,
    require_root,
    size_from_rule,
)


@dataclass(frozen=True, slots=True)
class CheckstyleXmlParser:
    """Checkstyle's XML layout, also emitted by detekt's ``xml`` report."""

    tool: ToolKind = ToolKind.CHECKSTYLE
    fmt: str = "checkstyle-xml"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        root = parse_xml_root(payload)
        require_root(root, "checkstyle")

        findings: list[Finding] = []
        for file_element in iter_children(root, "file"):
            file = normalize_path(file_element.get("name") or "")
            for error in iter_children(file_element, "error"):
                suppressed = flag_attribute(error, "suppressed")
                findings.append(
                    Finding(
                        rule_id=(error.get("source") or "").strip() or f"{self.tool.value}.Unknown",
                        severity=checkstyle_severity(error.get("severity")),
                        file=file,
                        line=int_attribute(error, "line", default=0),
                        message=(error.get("message") or "").strip(),
                        suppressed=suppressed,
                        suppression_justification=error.get("justification") if suppressed else None,
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
