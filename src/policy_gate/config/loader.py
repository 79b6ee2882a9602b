from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Final, TypeAlias

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from policy_gate.ingest import ParserRegistry, default_registry

from .models import PolicyConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME: Final[str] = "policy-gate.yaml"
LOG_LEVEL_ENV_VAR: Final[str] = "POLICY_GATE_LOG_LEVEL"

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})
_LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError("E_CONFIG_ENV_INVALID", f"{name} must be a number, got '{raw}'") from exc


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError("E_CONFIG_ENV_INVALID", f"{name} must be an integer, got '{raw}'") from exc


def _parse_bool(name: str, raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError("E_CONFIG_ENV_INVALID", f"{name} must be a boolean, got '{raw}'")


def _parse_path(name: str, raw: str) -> str:
    if not raw.strip():
        raise ConfigError("E_CONFIG_ENV_INVALID", f"{name} must be a non-empty path")
    # env paths are relative to the invoking directory, not the config file
    return Path(raw.strip()).expanduser().absolute().as_posix()


_Setter: TypeAlias = Callable[[dict[str, object], str, str], None]


def _section(raw: dict[str, object], *keys: str) -> dict[str, object]:
    current = raw
    for key in keys:
        child = current.get(key)
        if child is None:
            child = {}
            current[key] = child
        if not isinstance(child, dict):
            raise ConfigError("E_CONFIG_SHAPE", f"'{'.'.join(keys)}' must be a mapping")
        current = child
    return current


def _set_state_dir(raw: dict[str, object], name: str, value: str) -> None:
    _section(raw, "workflow")["state_dir"] = _parse_path(name, value)


def _set_deadline(raw: dict[str, object], name: str, value: str) -> None:
    raw["deadline_seconds"] = _parse_float(name, value)


def _set_baseline(raw: dict[str, object], name: str, value: str) -> None:
    raw["baseline"] = _parse_path(name, value)


def _set_min_coverage(raw: dict[str, object], name: str, value: str) -> None:
    _section(raw, "gates", "coverage")["min_coverage"] = _parse_float(name, value)


def _set_max_method_lines(raw: dict[str, object], name: str, value: str) -> None:
    structural = _section(raw, "gates", "structural")
    structural["max_method_lines"] = _parse_int(name, value)
    # a uniform override replaces every per-language limit
    structural.pop("method_limits", None)


def _set_max_class_lines(raw: dict[str, object], name: str, value: str) -> None:
    _section(raw, "gates", "structural")["max_class_lines"] = _parse_int(name, value)


def _set_structural_blocking(raw: dict[str, object], name: str, value: str) -> None:
    _section(raw, "gates", "structural")["blocking"] = _parse_bool(name, value)


def _set_max_new_suppressions(raw: dict[str, object], name: str, value: str) -> None:
    _section(raw, "gates", "suppression_drift")["max_new"] = _parse_int(name, value)


ENV_OVERRIDES: Final[dict[str, _Setter]] = {
    "POLICY_GATE_STATE_DIR": _set_state_dir,
    "POLICY_GATE_DEADLINE_SECONDS": _set_deadline,
    "POLICY_GATE_BASELINE": _set_baseline,
    "POLICY_GATE_MIN_COVERAGE": _set_min_coverage,
    "POLICY_GATE_MAX_METHOD_LINES": _set_max_method_lines,
    "POLICY_GATE_MAX_CLASS_LINES": _set_max_class_lines,
    "POLICY_GATE_STRUCTURAL_BLOCKING": _set_structural_blocking,
    "POLICY_GATE_MAX_NEW_SUPPRESSIONS": _set_max_new_suppressions,
}


def apply_env_overrides(raw: dict[str, object], env: Mapping[str, str]) -> dict[str, object]:
    updated = _deep_copy(raw)
    for name, setter in ENV_OVERRIDES.items():
        value = env.get(name)
        if value is None:
            continue
        setter(updated, name, value)
        logger.debug("config override from %s", name)
    return updated


def _deep_copy(value: dict[str, object]) -> dict[str, object]:
    return {key: _deep_copy(item) if isinstance(item, dict) else item for key, item in value.items()}


def resolve_log_level(env: Mapping[str, str] | None = None, *, verbose: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    environ = os.environ if env is None else env
    raw = environ.get(LOG_LEVEL_ENV_VAR)
    if raw is None or not raw.strip():
        return logging.WARNING
    name = raw.strip().upper()
    if name not in _LOG_LEVELS:
        raise ConfigError(
            "E_CONFIG_ENV_INVALID",
            f"{LOG_LEVEL_ENV_VAR} must be one of {', '.join(_LOG_LEVELS)}, got '{raw}'",
        )
    return logging.getLevelNamesMapping()[name]


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "<root>"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _load_mapping(path: Path) -> dict[str, object]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError("E_CONFIG_MISSING", f"config file not found: {path.as_posix()}") from exc
    except OSError as exc:
        raise ConfigError("E_CONFIG_UNREADABLE", f"cannot read config '{path.as_posix()}': {exc}") from exc
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError("E_CONFIG_YAML", f"invalid YAML in '{path.as_posix()}': {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError("E_CONFIG_SHAPE", f"config '{path.as_posix()}' must be a mapping")
    return payload


def validate_formats(config: PolicyConfig, registry: ParserRegistry) -> None:
    for report in config.reports:
        if registry.resolve(report.tool, report.format) is None:
            known = ", ".join(registry.formats(report.tool)) or "none"
            raise ConfigError(
                "E_CONFIG_UNSUPPORTED_FORMAT",
                f"report '{report.path.as_posix()}' uses unsupported format '{report.format}'"
                f" for tool '{report.tool}' (known formats: {known})",
            )


def _build_config(
    raw: dict[str, object],
    *,
    source: str,
    base_dir: Path,
    env: Mapping[str, str] | None,
    registry: ParserRegistry | None,
) -> PolicyConfig:
    overridden = apply_env_overrides(raw, os.environ if env is None else env)
    try:
        config = PolicyConfig.model_validate(overridden)
    except ValidationError as exc:
        raise ConfigError(
            "E_CONFIG_INVALID",
            f"config '{source}' is invalid: {_format_validation_error(exc)}",
        ) from exc
    validate_formats(config, registry if registry is not None else default_registry())
    return config.resolve_paths(base_dir)


def load_config(
    path: Path,
    *,
    env: Mapping[str, str] | None = None,
    registry: ParserRegistry | None = None,
) -> PolicyConfig:
    config = _build_config(
        _load_mapping(path),
        source=path.as_posix(),
        base_dir=path.resolve().parent,
        env=env,
        registry=registry,
    )
    logger.info("loaded config %s with %d report source(s)", path, len(config.reports))
    return config


def default_config(
    base_dir: Path,
    *,
    env: Mapping[str, str] | None = None,
) -> PolicyConfig:
    """Built-in defaults plus environment overrides, for commands run without a config file."""
    logger.info("no config file; using defaults relative to %s", base_dir)
    return _build_config({}, source="<defaults>", base_dir=base_dir.resolve(), env=env, registry=None)
