from .run import (
    BaselineUpdateResult,
    CheckResult,
    CoverageCheckResult,
    check_coverage,
    check_workflow_state,
    run_check,
    state_store,
    update_baseline,
)

__all__ = [
    "BaselineUpdateResult",
    "CheckResult",
    "CoverageCheckResult",
    "check_coverage",
    "check_workflow_state",
    "run_check",
    "state_store",
    "update_baseline",
]
