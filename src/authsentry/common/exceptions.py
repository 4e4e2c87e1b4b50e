"""Custom exceptions for AuthSentry.

Provides a hierarchy of exceptions for different error types.
All AuthSentry exceptions inherit from AuthSentryError.
"""

from typing import Any, Dict, Optional


class AuthSentryError(Exception):
    """Base exception for all AuthSentry errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
        retryable: Whether the caller may retry the same call
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str = "AUTHSENTRY_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


class ConfigurationError(AuthSentryError):
    """Raised when configuration or the rule table is invalid or missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class InvalidEvent(AuthSentryError):
    """Raised when a login event is missing required fields or is malformed.

    Scoring never falls back to a fabricated score for such input.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INVALID_EVENT", details=details)


class StoreUnavailable(AuthSentryError):
    """Raised when the event or fingerprint store cannot be read in time."""

    retryable = True

    def __init__(
        self,
        message: str,
        store_name: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["store_name"] = store_name
        super().__init__(message, code="STORE_UNAVAILABLE", details=details)


class SweepPartialFailure(AuthSentryError):
    """Raised when one or more sweep detectors failed.

    The partial report (alerts from the detectors that succeeded plus
    the per-detector errors) travels with the exception.
    """

    def __init__(
        self,
        message: str,
        report: Any,
        details: Optional[Dict[str, Any]] = None
    ):
        self.report = report
        details = details or {}
        details["failed_detectors"] = sorted(getattr(report, "errors", {}) or {})
        super().__init__(message, code="SWEEP_PARTIAL_FAILURE", details=details)


class DuplicateFingerprint(AuthSentryError, ValueError):
    """Raised when a fingerprint with the same hash is already stored."""

    def __init__(self, fingerprint_hash: str):
        super().__init__(
            f"Fingerprint {fingerprint_hash} already recorded",
            code="DUPLICATE_FINGERPRINT",
            details={"hash": fingerprint_hash},
        )
