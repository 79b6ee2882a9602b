from .aggregate import aggregate, count_new_suppressions, matches_critical_path
from .baseline import BaselineError, load_baseline, save_baseline
from .models import (
    CriticalPathCoverage,
    CriticalPathRule,
    Metrics,
    SuppressionRecord,
    canonical_metrics_json,
)

__all__ = [
    "BaselineError",
    "CriticalPathCoverage",
    "CriticalPathRule",
    "Metrics",
    "SuppressionRecord",
    "aggregate",
    "canonical_metrics_json",
    "count_new_suppressions",
    "load_baseline",
    "matches_critical_path",
    "save_baseline",
]
