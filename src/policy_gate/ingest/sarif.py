from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, cast

from policy_gate.findings import Finding, Severity, ToolKind, ToolReport

from .base import collect_sizes, normalize_path, parse_json_document, size_from_rule
from .errors import ReportFormatError

_LEVEL_SEVERITY: Final[dict[str, Severity]] = {
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "note": Severity.LOW,
    "none": Severity.LOW,
}
_DEFAULT_LEVEL: Final[str] = "warning"


def _mapping(value: object, *, field_name: str) -> Mapping[str, object]:
    if not isinstance(value, dict):
        raise ReportFormatError(f"{field_name} must be an object")
    return cast(Mapping[str, object], value)


def _list(value: object, *, field_name: str) -> list[object]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ReportFormatError(f"{field_name} must be an array")
    return cast(list[object], value)


def _rule_levels(run: Mapping[str, object]) -> dict[str, str]:
    tool = run.get("tool")
    if not isinstance(tool, dict):
        return {}
    driver = tool.get("driver")
    if not isinstance(driver, dict):
        return {}
    levels: dict[str, str] = {}
    for rule in _list(driver.get("rules"), field_name="runs[].tool.driver.rules"):
        if not isinstance(rule, dict):
            continue
        rule_id = rule.get("id")
        configuration = rule.get("defaultConfiguration")
        if isinstance(rule_id, str) and isinstance(configuration, dict):
            level = configuration.get("level")
            if isinstance(level, str):
                levels[rule_id] = level
    return levels


def _location(result: Mapping[str, object]) -> tuple[str, int]:
    for location in _list(result.get("locations"), field_name="results[].locations"):
        if not isinstance(location, dict):
            continue
        physical = location.get("physicalLocation")
        if not isinstance(physical, dict):
            continue
        artifact = physical.get("artifactLocation")
        uri = artifact.get("uri") if isinstance(artifact, dict) else None
        region = physical.get("region")
        start_line = region.get("startLine") if isinstance(region, dict) else None
        line = start_line if isinstance(start_line, int) and start_line >= 0 else 0
        return (normalize_path(uri) if isinstance(uri, str) else "", line)
    return ("", 0)


def _message_text(result: Mapping[str, object]) -> str:
    message = result.get("message")
    if isinstance(message, dict):
        text = message.get("text")
        if isinstance(text, str):
            return " ".join(text.split())
    return ""


def _suppression(result: Mapping[str, object]) -> tuple[bool, str | None]:
    suppressions = _list(result.get("suppressions"), field_name="results[].suppressions")
    active = [
        entry
        for entry in suppressions
        if isinstance(entry, dict) and entry.get("status", "accepted") == "accepted"
    ]
    if not active:
        return (False, None)
    justifications = [
        entry["justification"]
        for entry in active
        if isinstance(entry.get("justification"), str) and entry["justification"].strip()
    ]
    return (True, justifications[0] if justifications else None)


@dataclass(frozen=True, slots=True)
class SarifParser:
    tool: ToolKind = ToolKind.DETEKT
    fmt: str = "sarif"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        document = _mapping(parse_json_document(payload), field_name="SARIF document")
        if "runs" not in document:
            raise ReportFormatError("SARIF document is missing 'runs'")
        runs = _list(document.get("runs"), field_name="runs")

        findings: list[Finding] = []
        for run_index, raw_run in enumerate(runs):
            run = _mapping(raw_run, field_name=f"runs[{run_index}]")
            rule_levels = _rule_levels(run)
            for raw_result in _list(run.get("results"), field_name=f"runs[{run_index}].results"):
                result = _mapping(raw_result, field_name=f"runs[{run_index}].results[]")
                rule_id = result.get("ruleId")
                if not isinstance(rule_id, str) or not rule_id:
                    raise ReportFormatError(f"runs[{run_index}].results[] is missing 'ruleId'")
                level = result.get("level")
                if not isinstance(level, str):
                    level = rule_levels.get(rule_id, _DEFAULT_LEVEL)
                file, line = _location(result)
                suppressed, justification = _suppression(result)
                findings.append(
                    Finding(
                        rule_id=rule_id,
                        severity=_LEVEL_SEVERITY.get(level.lower(), Severity.MEDIUM),
                        file=file,
                        line=line,
                        message=_message_text(result),
                        suppressed=suppressed,
                        suppression_justification=justification,
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
