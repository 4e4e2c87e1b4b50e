"""Alert and SweepReport schemas - aggregate findings from the sweeper."""

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from authsentry.common.exceptions import SweepPartialFailure


class AlertKind(str, Enum):
    """Aggregate attack patterns surfaced by the sweeper."""
    IP_FLOOD = "ip-flood"
    UA_FLOOD = "ua-flood"
    BRUTE_FORCE = "brute-force"
    ACCOUNT_TAKEOVER_PROBE = "account-takeover-probe"


def _alert_id(kind: "AlertKind", subject: str, anchor: str) -> str:
    digest = hashlib.sha256(f"{kind.value}|{subject}|{anchor}".encode("utf-8"))
    return f"alt_{digest.hexdigest()[:16]}"


class Alert(BaseModel):
    """A single aggregate finding. Never mutated after creation.

    alert_id is derived from (kind, subject, first matching event time), so
    two sweeps that see the same burst produce the same id.
    """
    alert_id: str = Field(..., description="Deterministic alert identifier")
    kind: AlertKind = Field(..., description="Pattern that was detected")
    subject: str = Field(..., description="IP address or user-agent string")
    window_start: datetime = Field(..., description="Start of the swept window")
    window_end: datetime = Field(..., description="End of the swept window")
    count: int = Field(..., ge=0, description="Number of events behind the finding")
    detail: Dict[str, Any] = Field(default_factory=dict, description="Detector-specific evidence")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "alert_id": "alt_3f2a9c0d1e4b5a67",
                "kind": "ip-flood",
                "subject": "10.0.0.1",
                "window_start": "2026-01-25T13:30:00Z",
                "window_end": "2026-01-25T14:30:00Z",
                "count": 6,
                "detail": {
                    "first_seen": "2026-01-25T14:20:00+00:00",
                    "last_seen": "2026-01-25T14:24:00+00:00",
                    "span_seconds": 240.0,
                },
            }
        }
    }

    @classmethod
    def create(
        cls,
        kind: AlertKind,
        subject: str,
        window_start: datetime,
        window_end: datetime,
        count: int,
        first_seen: datetime,
        detail: Optional[Dict[str, Any]] = None,
    ) -> "Alert":
        """Create an alert with an id anchored on the first matching event."""
        detail = dict(detail or {})
        detail.setdefault("first_seen", first_seen.isoformat())
        return cls(
            alert_id=_alert_id(kind, subject, first_seen.isoformat()),
            kind=kind,
            subject=subject,
            window_start=window_start,
            window_end=window_end,
            count=count,
            detail=detail,
        )


class SweepReport(BaseModel):
    """Outcome of one sweep run.

    errors maps detector name to an error summary. A detector that failed
    contributes no alerts; the others still report theirs.
    """
    window_start: datetime
    window_end: datetime
    alerts: List[Alert] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
    events_scanned: int = Field(default=0, ge=0)
    skipped: bool = Field(default=False, description="Another run held the job lock")
    cancelled: bool = Field(default=False, description="Run stopped by cancellation or deadline")
    duration_ms: float = Field(default=0.0, ge=0.0)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def alerts_of(self, kind: AlertKind) -> List[Alert]:
        return [alert for alert in self.alerts if alert.kind == kind]

    def raise_for_errors(self) -> "SweepReport":
        """Raise SweepPartialFailure if any detector failed, else return self."""
        if self.errors:
            raise SweepPartialFailure(
                f"{len(self.errors)} sweep detector(s) failed: {', '.join(sorted(self.errors))}",
                report=self,
            )
        return self
