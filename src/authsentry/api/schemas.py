"""API Schemas - Request/Response models for the API Gateway.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class LoginEventRequest(BaseModel):
    """Login event in request. Validated again into LoginEvent by the engine."""
    event_id: Optional[str] = Field(default=None, description="Caller-assigned event identifier")
    user_id: Optional[str] = Field(default=None, description="Target user, absent for unknown users")
    ip: str = Field(..., description="Source IP address")
    user_agent: str = Field(..., description="Raw User-Agent header")
    timestamp: datetime = Field(..., description="Event timestamp (timezone-aware)")
    success: bool = Field(..., description="Whether the login succeeded")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AssessRiskRequest(BaseModel):
    """Request body for POST /assess-risk."""
    event: LoginEventRequest = Field(..., description="The login event to score")
    now: Optional[datetime] = Field(
        default=None, description="Baseline point in time, defaults to the event timestamp"
    )
    record: bool = Field(
        default=False, description="Append the event to history after scoring"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "event": {
                    "event_id": "evt_abc123",
                    "user_id": "user_abc123",
                    "ip": "203.0.113.7",
                    "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                    "timestamp": "2026-01-25T14:30:05Z",
                    "success": True,
                },
                "record": True,
            }
        }
    }


class SweepRequest(BaseModel):
    """Request body for POST /sweep."""
    window_minutes: Optional[int] = Field(
        default=None, ge=1, description="Window length, defaults to the configured sweep window"
    )
    now: Optional[datetime] = Field(default=None, description="Window end, defaults to now")
    raise_on_errors: bool = Field(
        default=False, description="Fail the request if any detector failed"
    )


class FingerprintRequest(BaseModel):
    """Request body for POST /fingerprints."""
    payload: Dict[str, Any] = Field(..., description="Raw client fingerprint payload")
    ip: str = Field(..., min_length=1)
    user_agent: str = Field(..., min_length=1)
    created_at: datetime = Field(..., description="Capture timestamp (timezone-aware)")
    user_id: Optional[str] = Field(default=None)
    session_id: Optional[str] = Field(default=None)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class RecordResponse(BaseModel):
    """Identifier of a stored record."""
    id: str = Field(..., description="Event id or fingerprint hash")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    details: Dict[str, Any] = Field(default_factory=dict)
    retryable: bool = Field(default=False)
    request_id: Optional[str] = Field(
        default=None, description="Request ID for debugging"
    )
