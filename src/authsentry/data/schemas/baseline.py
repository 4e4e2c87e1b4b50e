"""UserBaseline schema - derived per-user behavioral summary.

Recomputed on demand from the event and fingerprint stores.
Never a source of truth; safe to cache and discard.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class TimePatterns(BaseModel):
    """Hour-of-day summary over the behavior window."""

    histogram: Dict[int, int] = Field(
        default_factory=dict, description="Hour of day -> event count"
    )
    most_common_hour: Optional[int] = Field(default=None, ge=0, le=23)
    spread: int = Field(default=0, ge=0, description="Max minus min populated hour")
    night_logins: int = Field(default=0, ge=0, description="Events at hour >= 22 or <= 6")

    model_config = {"frozen": True}


class DeviceChange(BaseModel):
    """Consecutive fingerprints whose user-agent differs."""

    timestamp: datetime = Field(..., description="Creation time of the later fingerprint")
    from_user_agent: str = Field(..., description="User-agent before the change")
    to_user_agent: str = Field(..., description="User-agent after the change")

    model_config = {"frozen": True}


class VelocityCounts(BaseModel):
    """Short-window counters taken relative to the event being scored."""

    user_attempts: int = Field(
        default=0, ge=0, description="This user's events in the rapid-attempts window"
    )
    user_attempts_last_hour: int = Field(
        default=0, ge=0, description="This user's events in the trailing hour"
    )
    ip_failures: int = Field(
        default=0, ge=0, description="Failed events from this IP in the failure window"
    )

    model_config = {"frozen": True}


class UserBaseline(BaseModel):
    """Behavioral baseline for one user as of a point in time.

    All ratios are 0 on empty input.
    """

    user_id: Optional[str] = Field(default=None, description="User the baseline describes")
    as_of: datetime = Field(..., description="Exclusive upper bound of every window")
    window_days: int = Field(..., ge=1, description="Behavior window length")

    # Behavior window
    event_count: int = Field(default=0, ge=0)
    login_frequency: float = Field(
        default=0.0, ge=0.0, description="Events per hour since the first event in window"
    )
    time_patterns: TimePatterns = Field(default_factory=TimePatterns)
    success_rate: float = Field(
        default=0.0, ge=0.0, le=100.0, description="Percent of successful events"
    )
    ip_consistency: float = Field(
        default=0.0, ge=0.0, le=1.0, description="1 - distinct IPs / total events"
    )
    distinct_ips: List[str] = Field(default_factory=list)
    last_success_ip: Optional[str] = Field(default=None)
    last_success_at: Optional[datetime] = Field(default=None)

    # User-agent window
    recent_user_agents: List[str] = Field(
        default_factory=list, description="Distinct user-agents in the user-agent window"
    )

    # Fingerprint window
    fingerprint_count: int = Field(default=0, ge=0)
    fingerprint_stability: float = Field(default=0.0, ge=0.0, le=1.0)
    fingerprint_user_agents: List[str] = Field(
        default_factory=list,
        description="Distinct user-agents on fingerprints in the device-mismatch window"
    )
    device_changes: List[DeviceChange] = Field(default_factory=list)
    consistency_score: float = Field(
        default=0.0, ge=0.0, le=1.0,
        description="Mean of fingerprint stability and IP consistency"
    )

    # Event-relative counters; None when the baseline was not built for an event
    velocity: Optional[VelocityCounts] = Field(default=None)

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        """True when the user has no history in any window."""
        return (
            self.event_count == 0
            and not self.recent_user_agents
            and self.fingerprint_count == 0
        )
