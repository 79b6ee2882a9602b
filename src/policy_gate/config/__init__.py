from .loader import (
    DEFAULT_CONFIG_FILENAME,
    ENV_OVERRIDES,
    LOG_LEVEL_ENV_VAR,
    ConfigError,
    apply_env_overrides,
    default_config,
    load_config,
    resolve_log_level,
    validate_formats,
)
from .models import (
    CoverageGateConfig,
    CriticalPathConfig,
    DeadlineConfig,
    GatesConfig,
    PolicyConfig,
    ReportConfig,
    SecretGateConfig,
    StaticAnalysisGateConfig,
    StructuralGateConfig,
    SuppressionDriftGateConfig,
    WorkflowConfig,
)

__all__ = [
    "DEFAULT_CONFIG_FILENAME",
    "ENV_OVERRIDES",
    "LOG_LEVEL_ENV_VAR",
    "ConfigError",
    "CoverageGateConfig",
    "CriticalPathConfig",
    "DeadlineConfig",
    "GatesConfig",
    "PolicyConfig",
    "ReportConfig",
    "SecretGateConfig",
    "StaticAnalysisGateConfig",
    "StructuralGateConfig",
    "SuppressionDriftGateConfig",
    "WorkflowConfig",
    "apply_env_overrides",
    "default_config",
    "load_config",
    "resolve_log_level",
    "validate_formats",
]
