from __future__ import annotations

import importlib
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner, Result

cli_main = importlib.import_module("policy_gate.cli.main")
from policy_gate.metrics import load_baseline

pytestmark = pytest.mark.unit

runner = CliRunner()

_COBERTURA = """\
<coverage>
  <packages><package><classes>
    <class name="Charger" filename="src/payment/Charger.kt">
      <lines>{lines}</lines>
    </class>
  </classes></package></packages>
</coverage>
"""

_PMD_WITH_SUPPRESSION = """\
<pmd version="7.0.0">
  <suppressedviolation filename="src/payment/Charger.kt" beginline="12" rule="EmptyCatchBlock"
      suppressiontype="annotation" usermsg="legacy retry loop, tracked in PAY-17"/>
</pmd>
"""


def _lines(valid: int, covered: int) -> str:
    return "".join(
        f'<line number="{number}" hits="{1 if number <= covered else 0}"/>' for number in range(1, valid + 1)
    )


def _config(tmp_path: Path, *, covered: int = 10, with_pmd: bool = False) -> Path:
    (tmp_path / "coverage.xml").write_text(_COBERTURA.format(lines=_lines(10, covered)), encoding="utf-8")
    reports = "  - {tool: coverage, path: coverage.xml}\n"
    if with_pmd:
        (tmp_path / "pmd.xml").write_text(_PMD_WITH_SUPPRESSION, encoding="utf-8")
        reports += "  - {tool: pmd, path: pmd.xml}\n"
    path = tmp_path / "policy-gate.yaml"
    path.write_text(
        f"version: 1\nworkflow: {{state_dir: state}}\nbaseline: baseline.json\nreports:\n{reports}",
        encoding="utf-8",
    )
    return path


def _phase(config: Path, *args: str) -> Result:
    return runner.invoke(cli_main.app, ["phase", *args, "--config", str(config), "--task", "t"])


def _state_json(result: Result) -> dict[str, object]:
    return json.loads(result.stdout)


def test_phase_show_reports_fresh_stopped_state(tmp_path: Path) -> None:
    result = _phase(_config(tmp_path), "show", "--json")

    assert result.exit_code == 0
    state = _state_json(result)
    assert state["phase"] == "stopped"
    assert state["coverage_checked"] is False
    assert state["revision"] == 0


def test_full_cycle_through_the_cli(tmp_path: Path) -> None:
    config = _config(tmp_path)

    check = _phase(config, "check-coverage")
    assert check.exit_code == 0
    assert check.stdout.splitlines()[0] == "GATE name=coverage severity=high blocking=true status=pass"
    assert "coverage_checked=true" in check.stdout

    for target in ("red", "green", "refactoring"):
        result = _phase(config, "advance", target, "--json")
        assert result.exit_code == 0, result.output
        assert _state_json(result)["phase"] == target

    assert (tmp_path / "state" / "t.json").is_file()


def test_failed_coverage_check_blocks_entering_red(tmp_path: Path) -> None:
    config = _config(tmp_path, covered=5)

    check = _phase(config, "check-coverage")
    advance = _phase(config, "advance", "red")

    assert check.exit_code == 1
    assert "status=fail" in check.stdout
    assert advance.exit_code == 2
    assert "ERROR code=E_STATE_ILLEGAL_TRANSITION" in advance.output
    assert "last coverage check failed" in advance.output


def test_illegal_advance_exits_two(tmp_path: Path) -> None:
    result = _phase(_config(tmp_path), "advance", "green")

    assert result.exit_code == 2
    assert "transition stopped -> green is not allowed" in result.output


def test_unknown_phase_argument_is_a_usage_error(tmp_path: Path) -> None:
    result = _phase(_config(tmp_path), "advance", "purple")

    assert result.exit_code == 3


def test_abandon_returns_to_stopped(tmp_path: Path) -> None:
    config = _config(tmp_path)
    _phase(config, "check-coverage")
    _phase(config, "advance", "red")

    result = _phase(config, "abandon")

    assert result.exit_code == 0
    assert result.stdout.startswith("TASK task=t phase=stopped coverage_checked=false revision=3 ")


def test_check_coverage_outside_stopped_is_rejected(tmp_path: Path) -> None:
    config = _config(tmp_path)
    _phase(config, "check-coverage")
    _phase(config, "advance", "red")

    result = _phase(config, "check-coverage")

    assert result.exit_code == 2
    assert "only be recorded while stopped" in result.output


def test_state_dir_option_overrides_config(tmp_path: Path) -> None:
    config = _config(tmp_path)
    other = tmp_path / "other-state"

    result = runner.invoke(
        cli_main.app,
        ["phase", "abandon", "--config", str(config), "--task", "t", "--state-dir", str(other)],
    )

    assert result.exit_code == 0
    assert (other / "t.json").is_file()
    assert not (tmp_path / "state").exists()


def test_baseline_update_writes_canonical_baseline(tmp_path: Path) -> None:
    config = _config(tmp_path, with_pmd=True)

    result = runner.invoke(cli_main.app, ["baseline", "update", "--config", str(config)])

    assert result.exit_code == 0, result.output
    baseline_path = tmp_path / "baseline.json"
    assert result.stdout.strip() == (
        f"BASELINE path={baseline_path.resolve().as_posix()} suppressions=1 tools=coverage,pmd"
    )
    baseline = load_baseline(baseline_path)
    assert baseline is not None
    assert [record.rule_id for record in baseline.suppressions] == ["EmptyCatchBlock"]


def test_baseline_update_refuses_when_required_report_is_missing(tmp_path: Path) -> None:
    config = _config(tmp_path)
    (tmp_path / "coverage.xml").unlink()

    result = runner.invoke(cli_main.app, ["baseline", "update", "--config", str(config)])

    assert result.exit_code == 3
    assert "INGEST tool=coverage code=E_INGEST_MISSING_REPORT" in result.stdout
    assert not (tmp_path / "baseline.json").exists()


def test_config_validate_prints_effective_settings(tmp_path: Path) -> None:
    result = runner.invoke(cli_main.app, ["config", "validate", "--config", str(_config(tmp_path))])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["version"] == 1
    assert payload["deadline_seconds"] == {"pre-commit": 60.0, "pre-push": 120.0}
    assert payload["gates"]["coverage"]["min_coverage"] == 80.0
    assert payload["workflow"]["state_dir"] == (tmp_path.resolve() / "state").as_posix()


def test_config_validate_reports_invalid_config(tmp_path: Path) -> None:
    path = tmp_path / "policy-gate.yaml"
    path.write_text("gates:\n  coverage: {min_coverage: -1}\n", encoding="utf-8")

    result = runner.invoke(cli_main.app, ["config", "validate", "--config", str(path)])

    assert result.exit_code == 3
    assert "ERROR code=E_CONFIG_INVALID" in result.output


def test_invalid_log_level_env_is_a_config_error(tmp_path: Path) -> None:
    result = runner.invoke(
        cli_main.app,
        ["config", "validate", "--config", str(_config(tmp_path))],
        env={"POLICY_GATE_LOG_LEVEL": "chatty"},
    )

    assert result.exit_code == 3
    assert "E_CONFIG_ENV_INVALID" in result.output
