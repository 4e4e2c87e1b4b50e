"""Data layer - schemas and store contracts."""

from authsentry.data.schemas import (
    Alert,
    AlertKind,
    DeviceFingerprint,
    LoginEvent,
    RiskAssessment,
    RiskLevel,
    SweepReport,
    UserBaseline,
)

__all__ = [
    "Alert",
    "AlertKind",
    "DeviceFingerprint",
    "LoginEvent",
    "RiskAssessment",
    "RiskLevel",
    "SweepReport",
    "UserBaseline",
]
