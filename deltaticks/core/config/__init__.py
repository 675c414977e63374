"""Configuration loading."""

from deltaticks.core.config.settings import (
    DEFAULT_CONFIG_PATH,
    ConfigManager,
    DeltaTicksConfig,
    LoggingConfig,
    StorageConfig,
    deep_update,
    load_config_from_env,
    resolve_config,
)

__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DeltaTicksConfig",
    "LoggingConfig",
    "StorageConfig",
    "deep_update",
    "load_config_from_env",
    "resolve_config",
]
