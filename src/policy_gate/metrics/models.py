from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from policy_gate.findings import Severity, ToolKind
from policy_gate.findings.sort import SEVERITY_RANK


@dataclass(frozen=True, slots=True)
class CriticalPathRule:
    pattern: str
    threshold: float = 100.0

    def __post_init__(self) -> None:
        if not self.pattern.strip():
            raise ValueError("critical path pattern must be non-empty")
        if not 0.0 <= self.threshold <= 100.0:
            raise ValueError(f"critical path threshold must be within [0, 100]: {self.threshold}")


class SuppressionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_id: str = Field(min_length=1)
    file: str
    line: int = Field(ge=0)
    justified: bool

    @property
    def identity(self) -> tuple[str, str, int]:
        return (self.rule_id, self.file, self.line)


class CriticalPathCoverage(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    pattern: str = Field(min_length=1)
    threshold: float = Field(ge=0.0, le=100.0)
    percent: float | None = Field(default=None, ge=0.0, le=100.0)
    lines_valid: int = Field(default=0, ge=0)
    lines_covered: int = Field(default=0, ge=0)


def _zero_violations() -> dict[Severity, int]:
    return {severity: 0 for severity in Severity}


class Metrics(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    coverage_percent: float | None = Field(default=None, ge=0.0, le=100.0)
    critical_path_coverage_percent: float | None = Field(default=None, ge=0.0, le=100.0)
    critical_paths: tuple[CriticalPathCoverage, ...] = ()
    violations_by_severity: Mapping[Severity, int] = Field(default_factory=_zero_violations, validate_default=True)
    secret_findings: int | None = Field(default=None, ge=0)
    secret_locations: tuple[str, ...] = ()
    suppressions: tuple[SuppressionRecord, ...] = ()
    new_suppressions: int = Field(default=0, ge=0)
    largest_class_lines: int = Field(default=0, ge=0)
    largest_method_lines: int = Field(default=0, ge=0)
    largest_class: str | None = None
    largest_method: str | None = None
    tools: tuple[ToolKind, ...] = ()

    @field_validator("violations_by_severity")
    @classmethod
    def _normalize_violations(cls, value: Mapping[Severity, int]) -> Mapping[Severity, int]:
        normalized = _zero_violations()
        for severity, count in value.items():
            if count < 0:
                raise ValueError(f"violation count for '{severity}' must be >= 0")
            normalized[severity] = count
        return MappingProxyType(dict(sorted(normalized.items(), key=lambda item: SEVERITY_RANK[item[0]])))

    @field_serializer("violations_by_severity")
    def _serialize_violations(self, value: Mapping[Severity, int]) -> dict[str, int]:
        return {severity.value: count for severity, count in value.items()}

    def violations(self, severity: Severity) -> int:
        return self.violations_by_severity.get(severity, 0)


def canonical_metrics_json(metrics: Metrics) -> str:
    return json.dumps(
        metrics.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        allow_nan=False,
    )
