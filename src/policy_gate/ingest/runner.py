from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from policy_gate.findings import ToolKind, ToolReport, sort_findings

from .errors import IngestError, IngestErrorKind, build_ingest_error
from .registry import ParserRegistry, default_registry

logger = logging.getLogger(__name__)

MAX_WORKERS: Final[int] = 10
DEFAULT_SOURCE_TIMEOUT_SECONDS: Final[float] = 30.0
_COMMAND_OUTPUT_LIMIT: Final[int] = 500


@dataclass(frozen=True, slots=True)
class Deadline:
    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(expires_at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


@dataclass(frozen=True, slots=True)
class ReportSource:
    tool: ToolKind
    path: Path
    fmt: str | None = None
    required: bool = True
    command: tuple[str, ...] = ()
    allow_nonzero: bool = True
    timeout_seconds: float = DEFAULT_SOURCE_TIMEOUT_SECONDS
    cwd: Path | None = None

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("report source timeout must be > 0")


@dataclass(frozen=True, slots=True)
class FailedSource:
    source: ReportSource
    error: IngestError


@dataclass(frozen=True, slots=True)
class IngestOutcome:
    reports: tuple[ToolReport, ...] = ()
    failures: tuple[FailedSource, ...] = ()

    @property
    def required_failures(self) -> tuple[FailedSource, ...]:
        return tuple(failure for failure in self.failures if failure.source.required)


def ingest(
    tool: ToolKind,
    path: str | Path,
    *,
    fmt: str | None = None,
    registry: ParserRegistry | None = None,
) -> ToolReport:
    report_path = Path(path)
    path_text = report_path.as_posix()
    selected = registry if registry is not None else default_registry()
    parser = selected.resolve(tool, fmt)
    if parser is None:
        known = ", ".join(selected.formats(tool)) or "none"
        raise build_ingest_error(
            IngestErrorKind.UNSUPPORTED_FORMAT,
            tool=tool,
            path=path_text,
            message=f"no parser for tool '{tool}' format '{fmt}' (known formats: {known})",
        )

    try:
        payload = report_path.read_bytes()
    except FileNotFoundError as exc:
        raise build_ingest_error(
            IngestErrorKind.MISSING_REPORT,
            tool=tool,
            path=path_text,
            message=f"report file not found: {path_text}",
        ) from exc
    except OSError as exc:
        raise build_ingest_error(
            IngestErrorKind.MISSING_REPORT,
            tool=tool,
            path=path_text,
            message=f"report file unreadable: {path_text}: {exc}",
        ) from exc

    if not payload.strip():
        raise build_ingest_error(
            IngestErrorKind.MALFORMED_INPUT,
            tool=tool,
            path=path_text,
            message=f"report file is empty: {path_text}",
        )

    try:
        report = parser.parse(payload, source_path=path_text)
    except ValueError as exc:
        raise build_ingest_error(
            IngestErrorKind.MALFORMED_INPUT,
            tool=tool,
            path=path_text,
            message=f"malformed {parser.fmt} report: {exc}",
        ) from exc
    report = report.model_copy(update={"raw_findings": tuple(sort_findings(report.raw_findings))})
    logger.debug(
        "ingested %s report %s: %d findings", tool, path_text, len(report.raw_findings)
    )
    return report


def ingest_source(
    source: ReportSource,
    *,
    registry: ParserRegistry | None = None,
    deadline: Deadline | None = None,
) -> ToolReport:
    if source.command:
        _run_source_command(source, deadline=deadline)
    return ingest(source.tool, source.path, fmt=source.fmt, registry=registry)


def ingest_all(
    sources: Sequence[ReportSource],
    *,
    registry: ParserRegistry | None = None,
    deadline: Deadline | None = None,
    max_workers: int = MAX_WORKERS,
) -> IngestOutcome:
    if not sources:
        return IngestOutcome()

    selected = registry if registry is not None else default_registry()
    results: dict[int, ToolReport | IngestError] = {}
    executor = ThreadPoolExecutor(
        max_workers=max(1, min(len(sources), max_workers)),
        thread_name_prefix="policy-gate-ingest",
    )
    try:
        futures: dict[Future[ToolReport], int] = {
            executor.submit(ingest_source, source, registry=selected, deadline=deadline): index
            for index, source in enumerate(sources)
        }
        done, not_done = wait(futures, timeout=deadline.remaining() if deadline is not None else None)
        for future in done:
            index = futures[future]
            try:
                results[index] = future.result()
            except IngestError as exc:
                results[index] = exc
        for future in not_done:
            future.cancel()
            index = futures[future]
            source = sources[index]
            logger.warning("deadline expired before %s report %s was ingested", source.tool, source.path)
            results[index] = build_ingest_error(
                IngestErrorKind.TIMEOUT,
                tool=source.tool,
                path=source.path.as_posix(),
                message="run deadline expired before the report was ingested",
            )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    reports: list[ToolReport] = []
    failures: list[FailedSource] = []
    for index, source in enumerate(sources):
        result = results[index]
        if isinstance(result, IngestError):
            logger.warning("%s", result)
            failures.append(FailedSource(source=source, error=result))
        else:
            reports.append(result)
    return IngestOutcome(reports=tuple(reports), failures=tuple(failures))


def _run_source_command(source: ReportSource, *, deadline: Deadline | None) -> None:
    path_text = source.path.as_posix()
    timeout = source.timeout_seconds
    if deadline is not None:
        timeout = min(timeout, deadline.remaining())
    if timeout <= 0:
        raise build_ingest_error(
            IngestErrorKind.TIMEOUT,
            tool=source.tool,
            path=path_text,
            message="run deadline expired before the report command started",
        )

    logger.debug("running %s report command: %s", source.tool, " ".join(source.command))
    try:
        completed = subprocess.run(
            list(source.command),
            cwd=source.cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise build_ingest_error(
            IngestErrorKind.TIMEOUT,
            tool=source.tool,
            path=path_text,
            message=f"report command '{source.command[0]}' timed out after {timeout:.1f}s",
        ) from exc
    except OSError as exc:
        raise build_ingest_error(
            IngestErrorKind.COMMAND_FAILED,
            tool=source.tool,
            path=path_text,
            message=f"report command '{source.command[0]}' could not start: {exc}",
        ) from exc

    if completed.returncode != 0 and not source.allow_nonzero:
        detail = completed.stderr.strip() or completed.stdout.strip()
        if len(detail) > _COMMAND_OUTPUT_LIMIT:
            detail = detail[:_COMMAND_OUTPUT_LIMIT] + "..."
        raise build_ingest_error(
            IngestErrorKind.COMMAND_FAILED,
            tool=source.tool,
            path=path_text,
            message=f"report command exited with {completed.returncode}: {detail}",
        )
