"""Data schemas - canonical Pydantic definitions."""

from authsentry.data.schemas.login_event import LoginEvent
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint, fingerprint_digest
from authsentry.data.schemas.baseline import (
    DeviceChange,
    TimePatterns,
    UserBaseline,
    VelocityCounts,
)
from authsentry.data.schemas.risk_assessment import RiskAssessment, RiskLevel
from authsentry.data.schemas.alert import Alert, AlertKind, SweepReport

__all__ = [
    "LoginEvent",
    "DeviceFingerprint",
    "fingerprint_digest",
    "DeviceChange",
    "TimePatterns",
    "UserBaseline",
    "VelocityCounts",
    "RiskAssessment",
    "RiskLevel",
    "Alert",
    "AlertKind",
    "SweepReport",
]
