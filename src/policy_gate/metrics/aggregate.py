from __future__ import annotations

from collections.abc import Iterable, Sequence
from fnmatch import fnmatchcase

from policy_gate.findings import (
    STATIC_ANALYSIS_TOOLS,
    CoverageSummary,
    FileCoverage,
    Severity,
    ToolKind,
    ToolReport,
    UnitKind,
    UnitSize,
    coverage_percent,
    unit_size_sort_key,
)

from .models import CriticalPathCoverage, CriticalPathRule, Metrics, SuppressionRecord


def matches_critical_path(file: str, pattern: str) -> bool:
    return fnmatchcase(file, pattern) or fnmatchcase(file, f"*/{pattern}")


def _report_sort_key(report: ToolReport) -> tuple[str, str]:
    return (report.tool.value, report.source_path)


def _merge_coverage(
    summaries: Sequence[CoverageSummary],
) -> tuple[tuple[FileCoverage, ...], int, int]:
    files: dict[str, FileCoverage] = {}
    totals_only_valid = 0
    totals_only_covered = 0
    for summary in summaries:
        if not summary.files:
            totals_only_valid += summary.lines_valid
            totals_only_covered += summary.lines_covered
            continue
        for entry in summary.files:
            existing = files.get(entry.file)
            if existing is None:
                files[entry.file] = entry
                continue
            lines_valid = max(existing.lines_valid, entry.lines_valid)
            files[entry.file] = FileCoverage(
                file=entry.file,
                lines_valid=lines_valid,
                lines_covered=min(lines_valid, max(existing.lines_covered, entry.lines_covered)),
            )
    merged = tuple(files[key] for key in sorted(files))
    lines_valid = totals_only_valid + sum(entry.lines_valid for entry in merged)
    lines_covered = totals_only_covered + sum(entry.lines_covered for entry in merged)
    return (merged, lines_valid, lines_covered)


def _critical_path_coverage(
    files: Sequence[FileCoverage],
    rules: Sequence[CriticalPathRule],
    *,
    coverage_available: bool,
    per_file_available: bool,
) -> tuple[float | None, tuple[CriticalPathCoverage, ...]]:
    per_rule: list[CriticalPathCoverage] = []
    pooled: dict[str, FileCoverage] = {}
    for rule in rules:
        matched = [entry for entry in files if matches_critical_path(entry.file, rule.pattern)]
        lines_valid = sum(entry.lines_valid for entry in matched)
        lines_covered = sum(entry.lines_covered for entry in matched)
        per_rule.append(
            CriticalPathCoverage(
                pattern=rule.pattern,
                threshold=rule.threshold,
                percent=coverage_percent(lines_covered, lines_valid) if matched else None,
                lines_valid=lines_valid,
                lines_covered=lines_covered,
            )
        )
        for entry in matched:
            pooled[entry.file] = entry

    # totals-only reports cannot be attributed to critical paths
    if not coverage_available or (rules and not per_file_available):
        return (None, tuple(per_rule))
    pooled_valid = sum(entry.lines_valid for entry in pooled.values())
    pooled_covered = sum(entry.lines_covered for entry in pooled.values())
    return (coverage_percent(pooled_covered, pooled_valid), tuple(per_rule))


def _collect_suppressions(reports: Sequence[ToolReport]) -> tuple[SuppressionRecord, ...]:
    records: dict[tuple[str, str, int], SuppressionRecord] = {}
    for report in reports:
        for finding in report.raw_findings:
            if not finding.suppressed:
                continue
            existing = records.get(finding.identity)
            justified = finding.is_documented_suppression
            if existing is not None:
                justified = justified and existing.justified
            records[finding.identity] = SuppressionRecord(
                rule_id=finding.rule_id,
                file=finding.file,
                line=finding.line,
                justified=justified,
            )
    return tuple(records[key] for key in sorted(records))


def count_new_suppressions(
    current: Iterable[SuppressionRecord],
    baseline: Metrics | None,
) -> int:
    known = {record.identity for record in baseline.suppressions} if baseline is not None else set()
    return sum(1 for record in current if not record.justified or record.identity not in known)


def _largest(sizes: Sequence[UnitSize], kind: UnitKind) -> UnitSize | None:
    candidates = sorted((unit for unit in sizes if unit.kind is kind), key=unit_size_sort_key)
    return candidates[0] if candidates else None


def aggregate(
    reports: Iterable[ToolReport],
    baseline: Metrics | None = None,
    *,
    critical_paths: Sequence[CriticalPathRule] = (),
) -> Metrics:
    ordered = sorted(reports, key=_report_sort_key)

    violations = {severity: 0 for severity in Severity}
    secret_findings: int | None = None
    secret_locations: set[str] = set()
    summaries: list[CoverageSummary] = []
    sizes: list[UnitSize] = []
    for report in ordered:
        if report.tool is ToolKind.SECRET_SCAN:
            secret_findings = (secret_findings or 0) + len(report.raw_findings)
            secret_locations.update(f"{finding.file}:{finding.line}" for finding in report.raw_findings)
        if report.tool in STATIC_ANALYSIS_TOOLS:
            for finding in report.raw_findings:
                if not finding.is_documented_suppression:
                    violations[finding.severity] += 1
        if report.coverage is not None:
            summaries.append(report.coverage)
        sizes.extend(report.unit_sizes)

    coverage_available = bool(summaries)
    files, lines_valid, lines_covered = _merge_coverage(summaries)
    critical_percent, critical_breakdown = _critical_path_coverage(
        files,
        critical_paths,
        coverage_available=coverage_available,
        per_file_available=all(summary.files or summary.lines_valid == 0 for summary in summaries),
    )
    suppressions = _collect_suppressions(ordered)
    largest_class = _largest(sizes, UnitKind.CLASS)
    largest_method = _largest(sizes, UnitKind.METHOD)

    return Metrics(
        coverage_percent=coverage_percent(lines_covered, lines_valid) if coverage_available else None,
        critical_path_coverage_percent=critical_percent,
        critical_paths=critical_breakdown,
        violations_by_severity=violations,
        secret_findings=secret_findings,
        secret_locations=tuple(sorted(secret_locations)),
        suppressions=suppressions,
        new_suppressions=count_new_suppressions(suppressions, baseline),
        largest_class_lines=largest_class.lines if largest_class is not None else 0,
        largest_method_lines=largest_method.lines if largest_method is not None else 0,
        largest_class=largest_class.name if largest_class is not None else None,
        largest_method=largest_method.name if largest_method is not None else None,
        tools=tuple(sorted({report.tool for report in ordered}, key=lambda tool: tool.value)),
    )
