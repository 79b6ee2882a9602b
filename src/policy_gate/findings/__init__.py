from .models import (
    STATIC_ANALYSIS_TOOLS,
    CoverageSummary,
    FileCoverage,
    Finding,
    Severity,
    ToolKind,
    ToolReport,
    UnitKind,
    UnitSize,
    coverage_percent,
)
from .sort import finding_sort_key, severity_rank, sort_findings, unit_size_sort_key

__all__ = [
    "STATIC_ANALYSIS_TOOLS",
    "CoverageSummary",
    "FileCoverage",
    "Finding",
    "Severity",
    "ToolKind",
    "ToolReport",
    "UnitKind",
    "UnitSize",
    "coverage_percent",
    "finding_sort_key",
    "severity_rank",
    "sort_findings",
    "unit_size_sort_key",
]
