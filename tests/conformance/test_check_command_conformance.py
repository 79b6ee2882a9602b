from __future__ import annotations

import importlib
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner, Result

cli_main = importlib.import_module("policy_gate.cli.main")
from policy_gate.workflow import Phase, StateStore

pytestmark = pytest.mark.conformance

runner = CliRunner()
TASK = "feature-payment"


def _cobertura(files: dict[str, tuple[int, int]]) -> str:
    classes = []
    for name, (valid, covered) in files.items():
        lines = "".join(
            f'<line number="{number}" hits="{1 if number <= covered else 0}"/>' for number in range(1, valid + 1)
        )
        classes.append(f'<class name="{name}" filename="{name}"><lines>{lines}</lines></class>')
    return f"<coverage><packages><package><classes>{''.join(classes)}</classes></package></packages></coverage>"


def _project(
    tmp_path: Path,
    *,
    coverage: dict[str, tuple[int, int]] | None = None,
    leaks: list[dict[str, object]] | None = None,
    pmd: str | None = '<pmd version="7.0.0"/>',
    workflow_enabled: bool = True,
) -> Path:
    reports: list[str] = []
    if coverage is not None:
        (tmp_path / "coverage.xml").write_text(_cobertura(coverage), encoding="utf-8")
        reports.append("  - {tool: coverage, path: coverage.xml}")
    if leaks is not None:
        (tmp_path / "gitleaks.json").write_text(json.dumps(leaks), encoding="utf-8")
        reports.append("  - {tool: secret-scan, path: gitleaks.json}")
    if pmd is not None:
        (tmp_path / "pmd.xml").write_text(pmd, encoding="utf-8")
        reports.append("  - {tool: pmd, path: pmd.xml}")
    config = tmp_path / "policy-gate.yaml"
    config.write_text(
        "version: 1\n"
        f"workflow: {{enabled: {'true' if workflow_enabled else 'false'}, state_dir: state}}\n"
        "baseline: baseline.json\n"
        "critical_paths:\n"
        "  - pattern: 'src/payment/**'\n"
        "reports:\n" + ("\n".join(reports) + "\n" if reports else "  []\n"),
        encoding="utf-8",
    )
    return config


def _put_in_phase(tmp_path: Path, phase: Phase) -> None:
    store = StateStore(tmp_path / "state")
    store.record_coverage_check(TASK, True)
    path = {
        Phase.RED: (Phase.RED,),
        Phase.GREEN: (Phase.RED, Phase.GREEN),
        Phase.REFACTORING: (Phase.RED, Phase.GREEN, Phase.REFACTORING),
    }[phase]
    for target in path:
        store.advance(TASK, target)


def _check(config: Path, *extra: str) -> Result:
    return runner.invoke(
        cli_main.app,
        ["check", "--phase", "pre-commit", "--config", str(config), "--task", TASK, *extra],
    )


_HEALTHY_COVERAGE = {"src/payment/Charger.kt": (20, 20), "src/util/Text.kt": (20, 14)}


def test_secret_finding_blocks_commit_with_exit_one(tmp_path: Path) -> None:
    config = _project(
        tmp_path,
        coverage=_HEALTHY_COVERAGE,
        leaks=[{"RuleID": "aws-access-token", "File": "config/dev.env", "StartLine": 3, "Secret": "AKIA..."}],
    )
    _put_in_phase(tmp_path, Phase.GREEN)

    result = _check(config, "--json")

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["allowed"] is False
    failed = [verdict["gate_name"] for verdict in payload["verdicts"] if not verdict["passed"]]
    assert failed == ["secrets"]
    assert "AKIA" not in result.stdout


def test_only_secret_report_fails_closed_on_missing_coverage(tmp_path: Path) -> None:
    config = _project(
        tmp_path,
        leaks=[{"RuleID": "generic-api-key", "File": "a.py", "StartLine": 1}],
        pmd=None,
        workflow_enabled=False,
    )

    result = _check(config)

    assert result.exit_code == 1
    lines = result.stdout.splitlines()
    assert lines[0] == "GATE name=secrets severity=critical blocking=true status=fail"
    assert "  reason=no coverage report provided" in lines
    assert lines[-1] == "RESULT blocked exit=1"


def test_healthy_green_commit_is_allowed(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage=_HEALTHY_COVERAGE, leaks=[])
    _put_in_phase(tmp_path, Phase.GREEN)

    result = _check(config, "--json")

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["allowed"] is True
    assert payload["exit_code"] == 0
    assert payload["state_check"]["phase"] == "green"
    assert [verdict["gate_name"] for verdict in payload["verdicts"]] == [
        "coverage",
        "static_analysis",
        "secrets",
        "suppression_drift",
        "structural",
    ]
    assert payload["verdicts"][0]["reasons"] == ["unit test coverage 85.00%, critical-path coverage 100.00%"]


def test_totals_only_coverage_cannot_satisfy_critical_paths(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage={}, leaks=[])
    (tmp_path / "coverage.xml").write_text(
        '<coverage lines-valid="100" lines-covered="85"><packages/></coverage>', encoding="utf-8"
    )
    _put_in_phase(tmp_path, Phase.GREEN)

    result = _check(config)

    assert result.exit_code == 1
    assert result.stdout.splitlines() == [
        "GATE name=coverage severity=high blocking=true status=fail",
        "  reason=critical-path coverage requires per-file coverage data",
        "RESULT blocked exit=1",
    ]


def test_commit_in_red_is_blocked_before_any_gate_runs(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage=_HEALTHY_COVERAGE, leaks=[])
    _put_in_phase(tmp_path, Phase.RED)

    result = _check(config, "--json")

    assert result.exit_code == 2
    payload = json.loads(result.stdout)
    assert payload["allowed"] is False
    assert payload["verdicts"] == []
    assert payload["ingest_errors"] == []
    assert payload["state_check"]["code"] == "E_STATE_ILLEGAL_COMMIT"
    assert payload["state_check"]["phase"] == "red"


def test_commit_without_active_cycle_is_blocked(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage=_HEALTHY_COVERAGE, leaks=[])

    result = _check(config)

    assert result.exit_code == 2
    first_line = result.stdout.splitlines()[0]
    assert first_line.startswith("STATE task=feature-payment phase=stopped code=E_STATE_ILLEGAL_COMMIT")


def test_missing_required_report_exits_three(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage=_HEALTHY_COVERAGE, leaks=[])
    (tmp_path / "pmd.xml").unlink()
    _put_in_phase(tmp_path, Phase.REFACTORING)

    result = _check(config)

    assert result.exit_code == 3
    assert any(
        line.startswith("INGEST tool=pmd code=E_INGEST_MISSING_REPORT required=true")
        for line in result.stdout.splitlines()
    )


def test_report_out_writes_the_json_document(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage=_HEALTHY_COVERAGE, leaks=[])
    _put_in_phase(tmp_path, Phase.GREEN)
    out = tmp_path / "reports" / "policy.json"

    result = _check(config, "--report-out", str(out))

    assert result.exit_code == 0
    assert result.stdout.splitlines()[-1] == "RESULT allowed exit=0"
    assert json.loads(out.read_text(encoding="utf-8"))["schema"] == "policy_gate.decision"


def test_corrupted_state_is_a_state_violation(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage=_HEALTHY_COVERAGE, leaks=[])
    store = StateStore(tmp_path / "state")
    store.state_path(TASK).parent.mkdir(parents=True)
    store.state_path(TASK).write_text("garbage", encoding="utf-8")

    result = _check(config)

    assert result.exit_code == 2
    assert "code=E_STATE_CORRUPTED" in result.stdout


def test_config_errors_exit_three(tmp_path: Path) -> None:
    result = _check(tmp_path / "absent.yaml")

    assert result.exit_code == 3
    assert "ERROR code=E_CONFIG_MISSING message=config file not found" in result.output


def test_invalid_baseline_exits_three(tmp_path: Path) -> None:
    config = _project(tmp_path, coverage=_HEALTHY_COVERAGE, leaks=[])
    (tmp_path / "baseline.json").write_text("[]", encoding="utf-8")
    _put_in_phase(tmp_path, Phase.GREEN)

    result = _check(config)

    assert result.exit_code == 3
    assert "ERROR code=E_CONFIG_BASELINE_INVALID" in result.output


@pytest.mark.parametrize(
    "args",
    [
        ["check", "--phase", "post-merge"],
        ["check", "--phase", "pre-commit", "--deadline", "0"],
        ["check", "--phase", "pre-commit", "--no-such-flag"],
        ["check"],
    ],
)
def test_usage_errors_exit_with_input_failure_code(tmp_path: Path, args: list[str]) -> None:
    result = runner.invoke(cli_main.app, [*args, "--config", str(tmp_path / "x.yaml")])

    assert result.exit_code == 3


def test_invalid_hook_phase_names_the_bad_value(tmp_path: Path) -> None:
    result = runner.invoke(cli_main.app, ["check", "--phase", "post-merge", "--config", str(tmp_path / "x.yaml")])

    assert result.exit_code == 3
    assert "post-merge" in result.output
