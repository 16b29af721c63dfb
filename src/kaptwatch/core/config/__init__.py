"""Configuration loading and validation."""

from kaptwatch.core.errors import ConfigError

from .models import (
    AppConfig,
    LoggingConfig,
    ScheduleConfig,
    SourceConfig,
    StorageConfig,
)
from .loader import load_app_config, validate_config_file

__all__ = [
    # Config models
    "AppConfig",
    "LoggingConfig",
    "ScheduleConfig",
    "SourceConfig",
    "StorageConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_config_file",
]
