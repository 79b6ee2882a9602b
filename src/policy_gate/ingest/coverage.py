from __future__ import annotations

from dataclasses import dataclass
from xml.etree import ElementTree

from policy_gate.findings import CoverageSummary, FileCoverage, ToolKind, ToolReport, UnitKind, UnitSize

from .base import (
    int_attribute,
    iter_children,
    iter_descendants,
    local_name,
    normalize_path,
    parse_xml_root,
    require_root,
)
from .errors import ReportFormatError


def _summary_from_files(
    line_sets: dict[str, dict[int, bool]],
    *,
    fallback: tuple[int, int] | None,
) -> CoverageSummary:
    files = tuple(
        FileCoverage(
            file=file,
            lines_valid=len(lines),
            lines_covered=sum(1 for covered in lines.values() if covered),
        )
        for file, lines in sorted(line_sets.items())
    )
    if files:
        return CoverageSummary(
            lines_valid=sum(entry.lines_valid for entry in files),
            lines_covered=sum(entry.lines_covered for entry in files),
            files=files,
        )
    if fallback is not None:
        lines_valid, lines_covered = fallback
        return CoverageSummary(lines_valid=lines_valid, lines_covered=min(lines_covered, lines_valid))
    return CoverageSummary(lines_valid=0, lines_covered=0)


def _cobertura_lines(lines_element: ElementTree.Element | None) -> dict[int, bool]:
    lines: dict[int, bool] = {}
    if lines_element is None:
        return lines
    for line in iter_children(lines_element, "line"):
        number = int_attribute(line, "number")
        hits = int_attribute(line, "hits", default=0)
        lines[number] = lines.get(number, False) or hits > 0
    return lines


def _first_child(element: ElementTree.Element, name: str) -> ElementTree.Element | None:
    return next(iter_children(element, name), None)


@dataclass(frozen=True, slots=True)
class CoberturaParser:
    tool: ToolKind = ToolKind.COVERAGE
    fmt: str = "cobertura"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        root = parse_xml_root(payload)
        require_root(root, "coverage")

        line_sets: dict[str, dict[int, bool]] = {}
        sizes: list[UnitSize] = []
        for class_element in iter_descendants(root, "class"):
            filename = normalize_path(class_element.get("filename") or "")
            if not filename:
                raise ReportFormatError("<class> is missing attribute 'filename'")
            class_name = (class_element.get("name") or filename).strip()
            class_lines = _cobertura_lines(_first_child(class_element, "lines"))
            file_lines = line_sets.setdefault(filename, {})
            for number, covered in class_lines.items():
                file_lines[number] = file_lines.get(number, False) or covered
            sizes.append(
                UnitSize(kind=UnitKind.CLASS, name=class_name, file=filename, lines=len(class_lines))
            )

            methods = _first_child(class_element, "methods")
            if methods is None:
                continue
            for method in iter_children(methods, "method"):
                method_name = (method.get("name") or "").strip()
                if not method_name:
                    continue
                method_lines = _cobertura_lines(_first_child(method, "lines"))
                sizes.append(
                    UnitSize(
                        kind=UnitKind.METHOD,
                        name=f"{class_name}.{method_name}",
                        file=filename,
                        lines=len(method_lines),
                    )
                )

        fallback: tuple[int, int] | None = None
        if root.get("lines-valid") is not None:
            fallback = (int_attribute(root, "lines-valid"), int_attribute(root, "lines-covered", default=0))
        return ToolReport(
            tool=self.tool,
            source_path=source_path,
            coverage=_summary_from_files(line_sets, fallback=fallback),
            unit_sizes=tuple(sizes),
        )


def _jacoco_line_counter(element: ElementTree.Element) -> tuple[int, int] | None:
    for counter in iter_children(element, "counter"):
        if counter.get("type") == "LINE":
            missed = int_attribute(counter, "missed", default=0)
            covered = int_attribute(counter, "covered", default=0)
            return (missed + covered, covered)
    return None


def _join_package_path(package_name: str, file_name: str) -> str:
    if not package_name:
        return normalize_path(file_name)
    return normalize_path(f"{package_name}/{file_name}")


@dataclass(frozen=True, slots=True)
class JacocoParser:
    tool: ToolKind = ToolKind.COVERAGE
    fmt: str = "jacoco"

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport:
        root = parse_xml_root(payload)
        require_root(root, "report")

        files: list[FileCoverage] = []
        sizes: list[UnitSize] = []
        for package in iter_descendants(root, "package"):
            package_name = (package.get("name") or "").strip()
            for child in package:
                tag = local_name(child.tag)
                if tag == "sourcefile":
                    counter = _jacoco_line_counter(child)
                    if counter is None:
                        continue
                    lines_valid, lines_covered = counter
                    files.append(
                        FileCoverage(
                            file=_join_package_path(package_name, child.get("name") or ""),
                            lines_valid=lines_valid,
                            lines_covered=lines_covered,
                        )
                    )
                elif tag == "class":
                    sizes.extend(self._class_sizes(child, package_name=package_name))

        total = _jacoco_line_counter(root)
        if total is None:
            total = (
                sum(entry.lines_valid for entry in files),
                sum(entry.lines_covered for entry in files),
            )
        lines_valid, lines_covered = total
        return ToolReport(
            tool=self.tool,
            source_path=source_path,
            coverage=CoverageSummary(
                lines_valid=lines_valid,
                lines_covered=lines_covered,
                files=tuple(sorted(files, key=lambda entry: entry.file)),
            ),
            unit_sizes=tuple(sizes),
        )

    def _class_sizes(self, class_element: ElementTree.Element, *, package_name: str) -> list[UnitSize]:
        raw_name = (class_element.get("name") or "").strip()
        if not raw_name:
            raise ReportFormatError("<class> is missing attribute 'name'")
        class_name = raw_name.replace("/", ".")
        file = _join_package_path(package_name, class_element.get("sourcefilename") or "")

        sizes: list[UnitSize] = []
        class_counter = _jacoco_line_counter(class_element)
        if class_counter is not None:
            sizes.append(
                UnitSize(kind=UnitKind.CLASS, name=class_name, file=file, lines=class_counter[0])
            )
        for method in iter_children(class_element, "method"):
            method_counter = _jacoco_line_counter(method)
            if method_counter is None:
                continue
            sizes.append(
                UnitSize(
                    kind=UnitKind.METHOD,
                    name=f"{class_name}.{method.get('name') or '?'}",
                    file=file,
                    lines=method_counter[0],
                )
            )
        return sizes
