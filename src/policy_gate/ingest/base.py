from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator
from pathlib import PurePosixPath
from typing import Final, Protocol, runtime_checkable
from xml.etree import ElementTree

from policy_gate.findings import Severity, ToolKind, ToolReport, UnitKind, UnitSize

from .errors import ReportFormatError

_SIZE_RULES: Final[dict[str, UnitKind | None]] = {
    "LongMethod": UnitKind.METHOD,
    "MethodLength": UnitKind.METHOD,
    "ExcessiveMethodLength": UnitKind.METHOD,
    "LargeClass": UnitKind.CLASS,
    "FileLength": UnitKind.CLASS,
    "ExcessiveClassLength": UnitKind.CLASS,
    "NcssCount": None,
}
_NUMBER_PATTERN: Final[re.Pattern[str]] = re.compile(r"\d[\d,]*")
_METHOD_WORDS: Final[tuple[str, ...]] = ("method", "function", "constructor")


@runtime_checkable
class ReportParser(Protocol):
    @property
    def tool(self) -> ToolKind: ...

    @property
    def fmt(self) -> str: ...

    def parse(self, payload: bytes, *, source_path: str) -> ToolReport: ...


def parse_xml_root(payload: bytes) -> ElementTree.Element:
    try:
        return ElementTree.fromstring(payload)
    except ElementTree.ParseError as exc:
        raise ReportFormatError(f"invalid XML: {exc}") from exc


def parse_json_document(payload: bytes) -> object:
    try:
        return json.loads(payload.decode("utf-8-sig"))
    except UnicodeDecodeError as exc:
        raise ReportFormatError(f"report is not UTF-8 text: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ReportFormatError(f"invalid JSON: {exc}") from exc


def local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag


def require_root(root: ElementTree.Element, expected: str) -> None:
    actual = local_name(root.tag)
    if actual != expected:
        raise ReportFormatError(f"expected <{expected}> root element, found <{actual}>")


def iter_children(element: ElementTree.Element, name: str) -> Iterator[ElementTree.Element]:
    for child in element:
        if local_name(child.tag) == name:
            yield child


def iter_descendants(element: ElementTree.Element, name: str) -> Iterator[ElementTree.Element]:
    for child in element.iter():
        if child is not element and local_name(child.tag) == name:
            yield child


def int_attribute(element: ElementTree.Element, name: str, *, default: int | None = None) -> int:
    raw = element.get(name)
    if raw is None or not raw.strip():
        if default is None:
            raise ReportFormatError(f"<{local_name(element.tag)}> is missing attribute '{name}'")
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ReportFormatError(
            f"<{local_name(element.tag)}> attribute '{name}' is not an integer: {raw!r}"
        ) from exc
    if value < 0:
        raise ReportFormatError(f"<{local_name(element.tag)}> attribute '{name}' is negative")
    return value


def flag_attribute(element: ElementTree.Element, name: str) -> bool:
    return (element.get(name) or "").strip().lower() in {"true", "1", "yes"}


def normalize_path(raw: str) -> str:
    text = raw.strip().replace("\\", "/")
    if text.startswith("file://"):
        text = text[len("file://") :]
    if not text:
        return ""
    return PurePosixPath(text).as_posix()


def element_text(element: ElementTree.Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return " ".join(element.text.split())


def checkstyle_severity(raw: str | None) -> Severity:
    normalized = (raw or "").strip().lower()
    if normalized == "error":
        return Severity.HIGH
    if normalized == "warning":
        return Severity.MEDIUM
    return Severity.LOW


def short_rule_name(rule_id: str) -> str:
    name = rule_id.rsplit(".", 1)[-1].rsplit("/", 1)[-1]
    if name.endswith("Check") and name != "Check":
        name = name[: -len("Check")]
    return name


def size_from_rule(
    *,
    rule_id: str,
    message: str,
    file: str,
    line: int,
) -> UnitSize | None:
    rule_name = short_rule_name(rule_id)
    if rule_name not in _SIZE_RULES:
        return None
    match = _NUMBER_PATTERN.search(message)
    if match is None:
        return None
    kind = _SIZE_RULES[rule_name]
    if kind is None:
        lowered = message.lower()
        kind = UnitKind.METHOD if any(word in lowered for word in _METHOD_WORDS) else UnitKind.CLASS
    file_name = PurePosixPath(file).name or "unknown"
    return UnitSize(
        kind=kind,
        name=f"{file_name}:{line}",
        file=file,
        lines=int(match.group(0).replace(",", "")),
    )


def collect_sizes(candidates: Iterable[UnitSize | None]) -> tuple[UnitSize, ...]:
    return tuple(candidate for candidate in candidates if candidate is not None)
