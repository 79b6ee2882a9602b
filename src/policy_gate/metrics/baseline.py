from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from policy_gate.fs_atomic import atomic_write_text

from .models import Metrics, canonical_metrics_json

logger = logging.getLogger(__name__)


class BaselineError(ValueError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


def load_baseline(path: Path) -> Metrics | None:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("no baseline at %s; every suppression counts as new", path)
        return None
    except OSError as exc:
        raise BaselineError("E_CONFIG_BASELINE_UNREADABLE", f"cannot read baseline '{path}': {exc}") from exc

    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise BaselineError("E_CONFIG_BASELINE_INVALID", f"baseline '{path}' is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise BaselineError("E_CONFIG_BASELINE_INVALID", f"baseline '{path}' must be a JSON object")
    try:
        return Metrics.model_validate(payload)
    except ValidationError as exc:
        raise BaselineError("E_CONFIG_BASELINE_INVALID", f"baseline '{path}' failed validation: {exc}") from exc


def save_baseline(path: Path, metrics: Metrics) -> None:
    atomic_write_text(path, canonical_metrics_json(metrics) + "\n")
    logger.info("baseline written to %s (%d suppressions)", path, len(metrics.suppressions))
