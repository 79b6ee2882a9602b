from .base import MAX_WORKERS, Gate, GateVerdict, evaluate_gates
from .coverage import CRITICAL_PATH_DATA_REASON, NO_COVERAGE_REASON, CoverageGate
from .secrets import NO_SECRET_SCAN_REASON, SecretGate
from .static_analysis import StaticAnalysisGate
from .structural import StructuralMetricGate
from .suppression import SuppressionDriftGate

__all__ = [
    "CRITICAL_PATH_DATA_REASON",
    "CoverageGate",
    "Gate",
    "GateVerdict",
    "MAX_WORKERS",
    "NO_COVERAGE_REASON",
    "NO_SECRET_SCAN_REASON",
    "SecretGate",
    "StaticAnalysisGate",
    "StructuralMetricGate",
    "SuppressionDriftGate",
    "evaluate_gates",
]
