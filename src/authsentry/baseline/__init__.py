"""Behavioral baseline - per-user rolling statistics."""

from authsentry.baseline.calculator import (
    BaselineBuilder,
    device_changes,
    fingerprint_stability,
    ip_consistency,
    login_frequency,
    success_rate,
    time_patterns,
    utc_hour,
)

__all__ = [
    "BaselineBuilder",
    "device_changes",
    "fingerprint_stability",
    "ip_consistency",
    "login_frequency",
    "success_rate",
    "time_patterns",
    "utc_hour",
]
