"""RiskAssessment schema - the scored verdict for one login event."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    """Risk levels, ordered low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other):
        if isinstance(other, RiskLevel):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, RiskLevel):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, RiskLevel):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, RiskLevel):
            return self.rank >= other.rank
        return NotImplemented


_LEVEL_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class RiskAssessment(BaseModel):
    """Risk verdict for a single login event.

    Produced fresh per event. score is a pure function of the event,
    the user's baseline and the rule table.
    """
    score: float = Field(..., ge=0.0, le=1.0, description="Additive rule score, clamped to 1.0")
    level: RiskLevel = Field(..., description="Level bracket derived from the score")
    factors: List[str] = Field(
        default_factory=list, description="Triggered rule names in evaluation order"
    )
    recommendations: List[str] = Field(
        default_factory=list, description="Advisory actions derived from score and factors"
    )
    anomalies: List[str] = Field(
        default_factory=list, description="Advisory findings that do not affect the score"
    )
    event_id: Optional[str] = Field(default=None, description="Source event identifier")
    assessed_at: datetime = Field(..., description="Point in time the baseline was taken at")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "score": 0.7,
                "level": "high",
                "factors": ["rapid_attempts", "recent_ip_failures"],
                "recommendations": [
                    "Require additional authentication (step-up)",
                    "Apply rate limiting to this account",
                ],
                "anomalies": [],
                "event_id": "evt_abc123",
                "assessed_at": "2026-01-25T14:30:05Z",
            }
        }
    }

    @property
    def requires_action(self) -> bool:
        """High and critical assessments should not be silently allowed."""
        return self.level >= RiskLevel.HIGH
