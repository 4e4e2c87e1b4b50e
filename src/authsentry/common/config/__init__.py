"""Configuration module."""

from authsentry.common.config.settings import (
    AlertSinkType,
    Config,
    Environment,
    LogLevel,
    get_config,
    reset_config,
)

__all__ = [
    "AlertSinkType",
    "Config",
    "Environment",
    "LogLevel",
    "get_config",
    "reset_config",
]
