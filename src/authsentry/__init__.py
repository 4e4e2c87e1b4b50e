"""AuthSentry - login risk scoring and aggregate attack detection."""

__version__ = "0.1.0"
__author__ = "AuthSentry Team"

# Core exports
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
from authsentry.orchestration.engine import RiskEngine

__all__ = [
    "Alert",
    "AlertKind",
    "DeviceFingerprint",
    "LoginEvent",
    "RiskAssessment",
    "RiskLevel",
    "SweepReport",
    "UserBaseline",
    "RiskEngine",
]
