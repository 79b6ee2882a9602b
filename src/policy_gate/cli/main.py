from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Final, NoReturn

import click
import typer
from typer.core import TyperGroup

from policy_gate.config import (
    DEFAULT_CONFIG_FILENAME,
    ConfigError,
    PolicyConfig,
    default_config,
    load_config,
    resolve_log_level,
)
from policy_gate.decision import (
    EXIT_ALLOWED,
    EXIT_GATE_FAILURE,
    EXIT_INPUT_FAILURE,
    EXIT_STATE_VIOLATION,
    HookPhase,
    IngestFailure,
    render_json,
    render_text,
)
from policy_gate.fs_atomic import atomic_write_text
from policy_gate.gates import GateVerdict
from policy_gate.metrics import BaselineError
from policy_gate.pipeline import check_coverage, run_check, state_store, update_baseline
from policy_gate.workflow import Phase, WorkflowError, WorkflowState, resolve_task_id

logger = logging.getLogger(__name__)


class _PolicyGateGroup(TyperGroup):
    """Maps click usage errors (bad option values, unknown flags) to exit code 3."""

    def make_context(
        self,
        info_name: str | None,
        args: list[str],
        parent: click.Context | None = None,
        **extra: Any,
    ) -> click.Context:
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as exc:
            exc.exit_code = EXIT_INPUT_FAILURE
            raise

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except click.UsageError as exc:
            exc.exit_code = EXIT_INPUT_FAILURE
            raise


app = typer.Typer(
    cls=_PolicyGateGroup,
    help="Commit policy gate: TDD workflow state plus quality gates",
    no_args_is_help=True,
)
phase_app = typer.Typer(help="Inspect and move the TDD workflow phase", no_args_is_help=True)
baseline_app = typer.Typer(help="Manage the suppression/metrics baseline", no_args_is_help=True)
config_app = typer.Typer(help="Inspect the policy configuration", no_args_is_help=True)
app.add_typer(phase_app, name="phase")
app.add_typer(baseline_app, name="baseline")
app.add_typer(config_app, name="config")

_LOG_FORMAT: Final[str] = "%(levelname)s %(name)s: %(message)s"

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help=f"Policy config file (default: ./{DEFAULT_CONFIG_FILENAME})",
)
_STATE_DIR_OPTION = typer.Option(None, "--state-dir", help="Override the workflow state directory")
_TASK_OPTION = typer.Option(None, "--task", help="Task id (default: $POLICY_GATE_TASK, git branch, 'default')")
_VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr")
_JSON_OPTION = typer.Option(False, "--json", help="Emit JSON instead of text")


def _configure_logging(verbose: bool) -> None:
    try:
        level = resolve_log_level(verbose=verbose)
    except ConfigError as exc:
        _fail(exc.code, exc.message, EXIT_INPUT_FAILURE)
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _fail(code: str, message: str, exit_code: int) -> NoReturn:
    typer.echo(f"ERROR code={code} message={message}", err=True)
    raise typer.Exit(code=exit_code)


def _load(config_path: Path | None) -> PolicyConfig:
    try:
        if config_path is not None:
            return load_config(config_path)
        default_path = Path(DEFAULT_CONFIG_FILENAME)
        if default_path.is_file():
            return load_config(default_path)
        return default_config(Path.cwd())
    except ConfigError as exc:
        _fail(exc.code, exc.message, EXIT_INPUT_FAILURE)


def _print_state(state: WorkflowState, *, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(state.model_dump(mode="json"), ensure_ascii=True, separators=(",", ":"), sort_keys=True))
        return
    typer.echo(
        "TASK"
        f" task={state.task_id}"
        f" phase={state.phase.value}"
        f" coverage_checked={'true' if state.coverage_checked else 'false'}"
        f" revision={state.revision}"
        f" entered_at={state.entered_at.isoformat()}"
    )


def _print_ingest_failures(failures: tuple[IngestFailure, ...]) -> None:
    for failure in failures:
        typer.echo(
            "INGEST"
            f" tool={failure.tool.value}"
            f" code={failure.code}"
            f" required={'true' if failure.required else 'false'}"
            f" path={failure.path}"
            f" message={failure.message}"
        )


def _print_verdict(verdict: GateVerdict) -> None:
    typer.echo(
        "GATE"
        f" name={verdict.gate_name}"
        f" severity={verdict.severity.value}"
        f" blocking={'true' if verdict.blocking else 'false'}"
        f" status={'pass' if verdict.passed else 'fail'}"
    )
    for reason in verdict.reasons:
        typer.echo(f"  reason={reason}")


@app.command()
def check(
    phase: HookPhase = typer.Option(..., "--phase", help="Git hook invoking the check"),
    config: Path | None = _CONFIG_OPTION,
    state_dir: Path | None = _STATE_DIR_OPTION,
    task: str | None = _TASK_OPTION,
    as_json: bool = _JSON_OPTION,
    report_out: Path | None = typer.Option(None, "--report-out", help="Also write the JSON report to this file"),
    deadline: float | None = typer.Option(None, "--deadline", min=0.001, help="Overall run deadline in seconds"),
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Evaluate workflow state and quality gates for a commit or push."""
    _configure_logging(verbose)
    policy = _load(config)
    task_id = resolve_task_id(task)
    logger.debug("running %s check for task %s", phase.value, task_id)
    try:
        result = run_check(
            policy,
            hook_phase=phase,
            task_id=task_id,
            state_dir=state_dir,
            deadline_seconds=deadline,
        )
    except (ConfigError, BaselineError) as exc:
        _fail(exc.code, exc.message, EXIT_INPUT_FAILURE)
    except WorkflowError as exc:
        _fail(exc.code, exc.message, EXIT_STATE_VIOLATION)

    document = render_json(result.decision)
    if report_out is not None:
        atomic_write_text(report_out, document + "\n")
    typer.echo(document if as_json else render_text(result.decision))
    raise typer.Exit(code=result.exit_code)


@phase_app.command("show")
def phase_show(
    config: Path | None = _CONFIG_OPTION,
    state_dir: Path | None = _STATE_DIR_OPTION,
    task: str | None = _TASK_OPTION,
    as_json: bool = _JSON_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Print the persisted workflow state of a task."""
    _configure_logging(verbose)
    store = state_store(_load(config), state_dir)
    try:
        state = store.load(resolve_task_id(task))
    except WorkflowError as exc:
        _fail(exc.code, exc.message, EXIT_STATE_VIOLATION)
    _print_state(state, as_json=as_json)


@phase_app.command("advance")
def phase_advance(
    target: Phase = typer.Argument(..., help="Phase to move to"),
    config: Path | None = _CONFIG_OPTION,
    state_dir: Path | None = _STATE_DIR_OPTION,
    task: str | None = _TASK_OPTION,
    as_json: bool = _JSON_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Move a task to the next TDD phase."""
    _configure_logging(verbose)
    store = state_store(_load(config), state_dir)
    try:
        state = store.advance(resolve_task_id(task), target)
    except WorkflowError as exc:
        _fail(exc.code, exc.message, EXIT_STATE_VIOLATION)
    _print_state(state, as_json=as_json)


@phase_app.command("abandon")
def phase_abandon(
    config: Path | None = _CONFIG_OPTION,
    state_dir: Path | None = _STATE_DIR_OPTION,
    task: str | None = _TASK_OPTION,
    as_json: bool = _JSON_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Return a task to stopped from any phase."""
    _configure_logging(verbose)
    store = state_store(_load(config), state_dir)
    try:
        state = store.abandon(resolve_task_id(task))
    except WorkflowError as exc:
        _fail(exc.code, exc.message, EXIT_STATE_VIOLATION)
    _print_state(state, as_json=as_json)


@phase_app.command("check-coverage")
def phase_check_coverage(
    config: Path | None = _CONFIG_OPTION,
    state_dir: Path | None = _STATE_DIR_OPTION,
    task: str | None = _TASK_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Run the coverage gate and record the outcome; required before entering red."""
    _configure_logging(verbose)
    policy = _load(config)
    try:
        result = check_coverage(policy, task_id=resolve_task_id(task), state_dir=state_dir)
    except WorkflowError as exc:
        _fail(exc.code, exc.message, EXIT_STATE_VIOLATION)
    _print_verdict(result.verdict)
    _print_ingest_failures(result.ingest_errors)
    _print_state(result.state, as_json=False)
    raise typer.Exit(code=EXIT_ALLOWED if result.verdict.passed else EXIT_GATE_FAILURE)


@baseline_app.command("update")
def baseline_update(
    config: Path | None = _CONFIG_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Ingest the configured reports and rewrite the baseline file."""
    _configure_logging(verbose)
    policy = _load(config)
    if policy.baseline is None:
        _fail("E_CONFIG_BASELINE_MISSING", "no baseline path configured", EXIT_INPUT_FAILURE)
    result = update_baseline(policy)
    _print_ingest_failures(result.ingest_errors)
    if not result.written:
        _fail("E_INGEST_REQUIRED", "baseline not written: a required report failed to ingest", EXIT_INPUT_FAILURE)
    typer.echo(
        "BASELINE"
        f" path={policy.baseline.as_posix() if policy.baseline is not None else '-'}"
        f" suppressions={len(result.metrics.suppressions)}"
        f" tools={','.join(tool.value for tool in result.metrics.tools) or '-'}"
    )


@config_app.command("validate")
def config_validate(
    config: Path | None = _CONFIG_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Validate the config and print the effective settings as JSON."""
    _configure_logging(verbose)
    policy = _load(config)
    payload = policy.model_dump(mode="json", by_alias=True)
    typer.echo(json.dumps(payload, ensure_ascii=True, separators=(",", ":"), sort_keys=True))


def main() -> None:
    app()
