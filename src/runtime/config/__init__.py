from runtime.config.loader import load_config, load_default_config
from runtime.config.schema import RuntimeSettings, TelemetryConfig, validate_config

__all__ = [
    "RuntimeSettings",
    "TelemetryConfig",
    "load_config",
    "load_default_config",
    "validate_config",
]
