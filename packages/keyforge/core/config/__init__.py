"""Engine configuration."""

from keyforge.core.config.loader import (
    configure_logging,
    detect_format,
    load_config,
    load_engine_config,
)
from keyforge.core.config.models import (
    BakeConfig,
    EngineConfig,
    EulerConfig,
    LoggingConfig,
    SimplifyConfig,
    SmoothingConfig,
    SoftSelectionConfig,
    TangentConfig,
)

__all__ = [
    "BakeConfig",
    "EngineConfig",
    "EulerConfig",
    "LoggingConfig",
    "SimplifyConfig",
    "SmoothingConfig",
    "SoftSelectionConfig",
    "TangentConfig",
    "configure_logging",
    "detect_format",
    "load_config",
    "load_engine_config",
]
