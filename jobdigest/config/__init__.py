"""Configuration management for the job digest notifier."""

from .duration import DurationParseError, parse_duration
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, validate_config_file
from .models import (
    AlertConfig,
    AppConfig,
    DigestConfig,
    EmailConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    ScheduleConfig,
    TelegramConfig,
)

__all__ = [
    # Main loader functions
    "load_config",
    "validate_config_file",
    "load_environment_config",
    "parse_duration",
    # Configuration models
    "AppConfig",
    "DigestConfig",
    "ScheduleConfig",
    "EmailConfig",
    "TelegramConfig",
    "AlertConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
    "DurationParseError",
]
