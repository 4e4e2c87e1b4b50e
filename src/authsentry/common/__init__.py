"""Common utilities - logging, config, exceptions."""

from authsentry.common.logging.logger import get_logger
from authsentry.common.config import Config, get_config, reset_config
from authsentry.common.exceptions import (
    AuthSentryError,
    ConfigurationError,
    DuplicateFingerprint,
    InvalidEvent,
    StoreUnavailable,
    SweepPartialFailure,
)

__all__ = [
    # Logging
    "get_logger",
    # Config
    "Config",
    "get_config",
    "reset_config",
    # Exceptions
    "AuthSentryError",
    "ConfigurationError",
    "DuplicateFingerprint",
    "InvalidEvent",
    "StoreUnavailable",
    "SweepPartialFailure",
]
