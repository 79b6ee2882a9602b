from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Severity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ToolKind(StrEnum):
    COVERAGE = "coverage"
    PMD = "pmd"
    DETEKT = "detekt"
    CHECKSTYLE = "checkstyle"
    SPOTBUGS = "spotbugs"
    SECRET_SCAN = "secret-scan"


class UnitKind(StrEnum):
    CLASS = "class"
    METHOD = "method"


STATIC_ANALYSIS_TOOLS: frozenset[ToolKind] = frozenset(
    (ToolKind.PMD, ToolKind.DETEKT, ToolKind.CHECKSTYLE, ToolKind.SPOTBUGS)
)


class Finding(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_id: str = Field(min_length=1)
    severity: Severity
    file: str
    line: int = Field(default=0, ge=0)
    message: str
    suppressed: bool = False
    suppression_justification: str | None = None

    @model_validator(mode="after")
    def _validate_justification(self) -> Finding:
        if self.suppression_justification is not None and not self.suppressed:
            raise ValueError("suppression_justification requires suppressed=true")
        return self

    @property
    def identity(self) -> tuple[str, str, int]:
        return (self.rule_id, self.file, self.line)

    @property
    def is_documented_suppression(self) -> bool:
        if not self.suppressed or self.suppression_justification is None:
            return False
        return bool(self.suppression_justification.strip())


class UnitSize(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: UnitKind
    name: str = Field(min_length=1)
    file: str
    lines: int = Field(ge=0)


class FileCoverage(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    file: str = Field(min_length=1)
    lines_valid: int = Field(ge=0)
    lines_covered: int = Field(ge=0)

    @model_validator(mode="after")
    def _validate_counts(self) -> FileCoverage:
        if self.lines_covered > self.lines_valid:
            raise ValueError(f"covered lines exceed valid lines for '{self.file}'")
        return self


class CoverageSummary(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    lines_valid: int = Field(ge=0)
    lines_covered: int = Field(ge=0)
    files: tuple[FileCoverage, ...] = ()

    @model_validator(mode="after")
    def _validate_counts(self) -> CoverageSummary:
        if self.lines_covered > self.lines_valid:
            raise ValueError("covered lines exceed valid lines")
        return self

    @property
    def percent(self) -> float:
        return coverage_percent(self.lines_covered, self.lines_valid)


class ToolReport(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    tool: ToolKind
    source_path: str
    raw_findings: tuple[Finding, ...] = ()
    coverage: CoverageSummary | None = None
    unit_sizes: tuple[UnitSize, ...] = ()

    @model_validator(mode="after")
    def _validate_coverage_owner(self) -> ToolReport:
        if self.coverage is not None and self.tool is not ToolKind.COVERAGE:
            raise ValueError(f"coverage summary is only valid on coverage reports, got '{self.tool}'")
        return self


def coverage_percent(lines_covered: int, lines_valid: int) -> float:
    if lines_valid <= 0:
        return 100.0
    return round(100.0 * lines_covered / lines_valid, 4)
