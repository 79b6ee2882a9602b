from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, cast

from policy_gate.findings import Finding, Severity, ToolKind, ToolReport

from .base import normalize_path, parse_json_document
from .errors import ReportFormatError

_AUDITED_FALSE_POSITIVE: Final[str] = "audited as false positive"


def _line_number(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return 0


@dataclass(frozen=True, slots=True)
class GitleaksParser:
    """Gitleaks JSON report. Matched secret values are never copied into findings."""

    tool: ToolKind = ToolKind.SECRET_SCAN
    fmt: str = "gitleaks-json"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        document = parse_json_document(payload)
        if document is None:
            document = []
        if not isinstance(document, list):
            raise ReportFormatError("gitleaks report must be a JSON array")

        findings: list[Finding] = []
        for index, raw_leak in enumerate(cast(list[object], document)):
            if not isinstance(raw_leak, dict):
                raise ReportFormatError(f"leak entry {index} must be an object")
            leak = cast(Mapping[str, object], raw_leak)
            rule_id = leak.get("RuleID")
            if not isinstance(rule_id, str) or not rule_id:
                raise ReportFormatError(f"leak entry {index} is missing 'RuleID'")
            file = leak.get("File")
            description = leak.get("Description")
            findings.append(
                Finding(
                    rule_id=rule_id,
                    severity=Severity.CRITICAL,
                    file=normalize_path(file) if isinstance(file, str) else "",
                    line=_line_number(leak.get("StartLine")),
                    message=description if isinstance(description, str) and description else rule_id,
                )
            )
        return ToolReport(tool=self.tool, source_path=source_path, raw_findings=tuple(findings))


@dataclass(frozen=True, slots=True)
class DetectSecretsParser:
    tool: ToolKind = ToolKind.SECRET_SCAN
    fmt: str = "detect-secrets"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        document = parse_json_document(payload)
        if not isinstance(document, dict):
            raise ReportFormatError("detect-secrets report must be a JSON object")
        results = document.get("results")
        if not isinstance(results, dict):
            raise ReportFormatError("detect-secrets report is missing 'results' object")

        findings: list[Finding] = []
        for file_key in sorted(results):
            entries = results[file_key]
            if not isinstance(entries, list):
                raise ReportFormatError(f"results['{file_key}'] must be an array")
            for entry in entries:
                if not isinstance(entry, dict):
                    raise ReportFormatError(f"results['{file_key}'] entries must be objects")
                secret_type = entry.get("type")
                rule_id = secret_type if isinstance(secret_type, str) and secret_type else "secret"
                filename = entry.get("filename")
                audited_false = entry.get("is_secret") is False
                findings.append(
                    Finding(
                        rule_id=rule_id,
                        severity=Severity.CRITICAL,
                        file=normalize_path(filename if isinstance(filename, str) else str(file_key)),
                        line=_line_number(entry.get("line_number")),
                        message=f"potential secret: {rule_id}",
                        suppressed=audited_false,
                        suppression_justification=_AUDITED_FALSE_POSITIVE if audited_false else None,
                    )
                )
        return ToolReport(tool=self.tool, source_path=source_path, raw_findings=tuple(findings))
