from .decide import (
    DECISION_SCHEMA,
    DECISION_SCHEMA_VERSION,
    EXIT_ALLOWED,
    EXIT_GATE_FAILURE,
    EXIT_INPUT_FAILURE,
    EXIT_STATE_VIOLATION,
    decide,
    exit_code,
    render_json,
    render_text,
)
from .models import HookPhase, IngestFailure, PolicyDecision, StateCheck, decision_allowed

__all__ = [
    "DECISION_SCHEMA",
    "DECISION_SCHEMA_VERSION",
    "EXIT_ALLOWED",
    "EXIT_GATE_FAILURE",
    "EXIT_INPUT_FAILURE",
    "EXIT_STATE_VIOLATION",
    "HookPhase",
    "IngestFailure",
    "PolicyDecision",
    "StateCheck",
    "decide",
    "decision_allowed",
    "exit_code",
    "render_json",
    "render_text",
]
