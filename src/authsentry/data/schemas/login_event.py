"""LoginEvent schema - canonical definition."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class LoginEvent(BaseModel):
    """Login event entity schema.

    Represents a single authentication attempt with its outcome.
    Immutable once recorded; history is append-only.
    """
    event_id: Optional[str] = Field(
        default=None, description="Caller-assigned event identifier"
    )
    user_id: Optional[str] = Field(
        default=None, description="Target user account, absent for unknown-user attempts"
    )
    ip: str = Field(..., min_length=1, description="Source IP address")
    user_agent: str = Field(..., min_length=1, description="Raw User-Agent header")
    timestamp: datetime = Field(..., description="Event timestamp (timezone-aware)")
    success: bool = Field(..., description="Whether the login succeeded")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Opaque key/value context"
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "event_id": "evt_abc123",
                "user_id": "user_abc123",
                "ip": "203.0.113.7",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "timestamp": "2026-01-25T14:30:05Z",
                "success": True,
                "metadata": {"auth_method": "password"},
            }
        }
    }

    @field_validator("user_id", "event_id")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("ip", "user_agent")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("timestamp")
    @classmethod
    def _timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("timestamp must be timezone-aware")
        return value
