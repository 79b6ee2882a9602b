from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

from policy_gate.decision import HookPhase
from policy_gate.findings import ToolKind
from policy_gate.gates import (
    CoverageGate,
    Gate,
    SecretGate,
    StaticAnalysisGate,
    StructuralMetricGate,
    SuppressionDriftGate,
)
from policy_gate.ingest import ReportSource
from policy_gate.metrics import CriticalPathRule


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class WorkflowConfig(_ConfigModel):
    enabled: bool = True
    state_dir: Path = Path(".policy-gate/state")
    lock_timeout_seconds: float = Field(default=5.0, gt=0)


class DeadlineConfig(_ConfigModel):
    pre_commit: float = Field(default=60.0, gt=0, alias="pre-commit")
    pre_push: float = Field(default=120.0, gt=0, alias="pre-push")

    @model_validator(mode="before")
    @classmethod
    def _expand_scalar(cls, value: object) -> object:
        if isinstance(value, bool):
            return value
        if isinstance(value, int | float):
            return {"pre-commit": value, "pre-push": value}
        return value

    def for_phase(self, hook_phase: HookPhase) -> float:
        if hook_phase is HookPhase.PRE_PUSH:
            return self.pre_push
        return self.pre_commit


class CriticalPathConfig(_ConfigModel):
    pattern: str = Field(min_length=1)
    threshold: float | None = Field(default=None, ge=0.0, le=100.0)


class ReportConfig(_ConfigModel):
    tool: ToolKind
    path: Path
    format: str | None = None
    required: bool = True
    command: tuple[str, ...] = ()
    timeout_seconds: float = Field(default=30.0, gt=0)
    allow_nonzero: bool = True

    @field_validator("format")
    @classmethod
    def _normalize_format(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("format must be non-empty when given")
        return normalized

    def to_source(self, *, cwd: Path | None = None) -> ReportSource:
        return ReportSource(
            tool=self.tool,
            path=self.path,
            fmt=self.format,
            required=self.required,
            command=self.command,
            allow_nonzero=self.allow_nonzero,
            timeout_seconds=self.timeout_seconds,
            cwd=cwd,
        )


class CoverageGateConfig(_ConfigModel):
    enabled: bool = True
    min_coverage: float = Field(default=80.0, ge=0.0, le=100.0)
    critical_path_min: float = Field(default=100.0, ge=0.0, le=100.0)


class StaticAnalysisGateConfig(_ConfigModel):
    enabled: bool = True
    max_critical: int = Field(default=0, ge=0)
    max_high: int = Field(default=0, ge=0)


class SecretGateConfig(_ConfigModel):
    enabled: bool = True


class SuppressionDriftGateConfig(_ConfigModel):
    enabled: bool = True
    max_new: int = Field(default=0, ge=0)


class StructuralGateConfig(_ConfigModel):
    enabled: bool = True
    blocking: bool = False
    max_class_lines: PositiveInt = 300
    max_method_lines: PositiveInt = 20
    method_limits: dict[str, PositiveInt] = Field(default_factory=dict)

    @field_validator("method_limits")
    @classmethod
    def _normalize_languages(cls, value: dict[str, int]) -> dict[str, int]:
        return {language.strip().lower(): limit for language, limit in sorted(value.items())}

    def method_limit(self, language: str | None) -> int:
        if language is None:
            return self.max_method_lines
        return self.method_limits.get(language.strip().lower(), self.max_method_lines)


class GatesConfig(_ConfigModel):
    coverage: CoverageGateConfig = Field(default_factory=CoverageGateConfig)
    static_analysis: StaticAnalysisGateConfig = Field(default_factory=StaticAnalysisGateConfig)
    secrets: SecretGateConfig = Field(default_factory=SecretGateConfig)
    suppression_drift: SuppressionDriftGateConfig = Field(default_factory=SuppressionDriftGateConfig)
    structural: StructuralGateConfig = Field(default_factory=StructuralGateConfig)


class PolicyConfig(_ConfigModel):
    version: Literal[1] = 1
    language: str | None = None
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    deadline_seconds: DeadlineConfig = Field(default_factory=DeadlineConfig)
    baseline: Path | None = Path(".policy-gate/baseline.json")
    critical_paths: tuple[CriticalPathConfig, ...] = ()
    reports: tuple[ReportConfig, ...] = ()
    gates: GatesConfig = Field(default_factory=GatesConfig)

    @model_validator(mode="after")
    def _validate_reports(self) -> PolicyConfig:
        seen: set[tuple[ToolKind, str]] = set()
        for report in self.reports:
            key = (report.tool, report.path.as_posix())
            if key in seen:
                raise ValueError(f"duplicate report entry for tool '{report.tool}' path '{report.path}'")
            seen.add(key)
        patterns = [rule.pattern for rule in self.critical_paths]
        if len(set(patterns)) != len(patterns):
            raise ValueError("critical path patterns must be unique")
        return self

    def resolve_paths(self, base_dir: Path) -> PolicyConfig:
        def _resolve(path: Path) -> Path:
            return path if path.is_absolute() else base_dir / path

        return self.model_copy(
            update={
                "workflow": self.workflow.model_copy(update={"state_dir": _resolve(self.workflow.state_dir)}),
                "baseline": _resolve(self.baseline) if self.baseline is not None else None,
                "reports": tuple(
                    report.model_copy(update={"path": _resolve(report.path)}) for report in self.reports
                ),
            }
        )

    def deadline_for(self, hook_phase: HookPhase) -> float:
        return self.deadline_seconds.for_phase(hook_phase)

    def report_sources(self, *, cwd: Path | None = None) -> tuple[ReportSource, ...]:
        return tuple(report.to_source(cwd=cwd) for report in self.reports)

    def critical_path_rules(self) -> tuple[CriticalPathRule, ...]:
        default = self.gates.coverage.critical_path_min
        return tuple(
            CriticalPathRule(
                pattern=rule.pattern,
                threshold=rule.threshold if rule.threshold is not None else default,
            )
            for rule in self.critical_paths
        )

    def coverage_gate(self) -> CoverageGate:
        coverage = self.gates.coverage
        return CoverageGate(min_coverage=coverage.min_coverage, critical_path_min=coverage.critical_path_min)

    def build_gates(self) -> tuple[Gate, ...]:
        gates = self.gates
        built: list[Gate] = []
        if gates.coverage.enabled:
            built.append(self.coverage_gate())
        if gates.static_analysis.enabled:
            built.append(
                StaticAnalysisGate(
                    max_critical=gates.static_analysis.max_critical,
                    max_high=gates.static_analysis.max_high,
                )
            )
        if gates.secrets.enabled:
            built.append(SecretGate())
        if gates.suppression_drift.enabled:
            built.append(SuppressionDriftGate(max_new=gates.suppression_drift.max_new))
        if gates.structural.enabled:
            built.append(
                StructuralMetricGate(
                    max_class_lines=gates.structural.max_class_lines,
                    max_method_lines=gates.structural.method_limit(self.language),
                    blocking=gates.structural.blocking,
                )
            )
        return tuple(built)
