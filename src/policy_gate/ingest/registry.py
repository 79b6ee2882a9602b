from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from policy_gate.findings import ToolKind

from .base import ReportParser
from .checkstyle import CheckstyleXmlParser
from .coverage import CoberturaParser, JacocoParser
from .pmd import PmdParser
from .sarif import SarifParser
from .secrets import DetectSecretsParser, GitleaksParser
from .spotbugs import SpotBugsParser

DEFAULT_FORMATS: Final[dict[ToolKind, str]] = {
    ToolKind.COVERAGE: "cobertura",
    ToolKind.PMD: "pmd-xml",
    ToolKind.DETEKT: "checkstyle-xml",
    ToolKind.CHECKSTYLE: "checkstyle-xml",
    ToolKind.SPOTBUGS: "spotbugs-xml",
    ToolKind.SECRET_SCAN: "gitleaks-json",
}


class ParserRegistry:
    def __init__(self, parsers: Iterable[ReportParser] = ()) -> None:
        self._parsers: dict[tuple[ToolKind, str], ReportParser] = {}
        for parser in parsers:
            self.register(parser)

    def register(self, parser: ReportParser) -> None:
        key = (parser.tool, parser.fmt)
        if key in self._parsers:
            raise ValueError(f"duplicate parser registration for tool '{parser.tool}' format '{parser.fmt}'")
        self._parsers[key] = parser

    def resolve(self, tool: ToolKind, fmt: str | None = None) -> ReportParser | None:
        selected_format = fmt if fmt is not None else DEFAULT_FORMATS.get(tool)
        if selected_format is None:
            return None
        return self._parsers.get((tool, selected_format.strip().lower()))

    def formats(self, tool: ToolKind) -> tuple[str, ...]:
        return tuple(sorted(fmt for parser_tool, fmt in self._parsers if parser_tool is tool))


def default_registry() -> ParserRegistry:
    return ParserRegistry(
        (
            CoberturaParser(),
            JacocoParser(),
            PmdParser(),
            CheckstyleXmlParser(tool=ToolKind.DETEKT),
            SarifParser(tool=ToolKind.DETEKT),
            CheckstyleXmlParser(tool=ToolKind.CHECKSTYLE),
            SarifParser(tool=ToolKind.CHECKSTYLE),
            SpotBugsParser(),
            SarifParser(tool=ToolKind.SPOTBUGS),
            GitleaksParser(),
            DetectSecretsParser(),
        )
    )
