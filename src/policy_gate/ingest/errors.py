from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from policy_gate.findings import ToolKind


class IngestErrorKind(StrEnum):
    MISSING_REPORT = "missing_report"
    MALFORMED_INPUT = "malformed_input"
    UNSUPPORTED_FORMAT = "unsupported_format"
    TIMEOUT = "timeout"
    COMMAND_FAILED = "command_failed"


@dataclass(frozen=True, slots=True)
class IngestErrorDetail:
    kind: IngestErrorKind
    tool: ToolKind
    path: str
    message: str

    @property
    def code(self) -> str:
        return f"E_INGEST_{self.kind.value.upper()}"


class IngestError(ValueError):
    def __init__(self, detail: IngestErrorDetail) -> None:
        super().__init__(f"{detail.code}: {detail.message}")
        self.detail = detail

    @property
    def code(self) -> str:
        return self.detail.code


class ReportFormatError(ValueError):
    """Raised by parsers when a payload does not have the expected shape."""


def build_ingest_error(
    kind: IngestErrorKind,
    *,
    tool: ToolKind,
    path: str,
    message: str,
) -> IngestError:
    return IngestError(IngestErrorDetail(kind=kind, tool=tool, path=path, message=message))
