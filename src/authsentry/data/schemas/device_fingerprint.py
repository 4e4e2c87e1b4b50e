"""DeviceFingerprint schema - canonical definition."""

import hashlib
import json
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


def fingerprint_digest(payload: Mapping[str, Any]) -> str:
    """SHA-256 hex digest of the canonical JSON form of a fingerprint payload.

    Keys are sorted so the digest does not depend on collection order.
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class DeviceFingerprint(BaseModel):
    """Device fingerprint entity schema.

    hash is a content digest of the client-side fingerprint payload,
    never the raw payload itself. Many fingerprints may point at one user.
    """
    hash: str = Field(..., min_length=64, max_length=64, description="SHA-256 payload digest")
    user_id: Optional[str] = Field(default=None, description="Owning user, if known")
    session_id: Optional[str] = Field(default=None, description="Session the fingerprint was taken in")
    ip: str = Field(..., min_length=1, description="IP address at capture time")
    user_agent: str = Field(..., min_length=1, description="User-Agent at capture time")
    created_at: datetime = Field(..., description="Capture timestamp (timezone-aware)")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "hash": "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
                "user_id": "user_abc123",
                "session_id": "sess_abc123",
                "ip": "203.0.113.7",
                "user_agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) Safari/605.1.15",
                "created_at": "2026-01-25T14:30:05Z",
            }
        }
    }

    @field_validator("created_at")
    @classmethod
    def _timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("created_at must be timezone-aware")
        return value

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        ip: str,
        user_agent: str,
        created_at: datetime,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> "DeviceFingerprint":
        """Build a fingerprint record from a raw client payload."""
        return cls(
            hash=fingerprint_digest(payload),
            user_id=user_id,
            session_id=session_id,
            ip=ip,
            user_agent=user_agent,
            created_at=created_at,
        )

    def matches(self, payload: Mapping[str, Any]) -> bool:
        """Check whether a raw payload hashes to this fingerprint."""
        return self.hash == fingerprint_digest(payload)
