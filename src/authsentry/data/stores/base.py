"""Store contracts - the event history and fingerprint collaborators.

The engine only depends on these interfaces. Production deployments plug in
their own persistence; the in-memory implementations serve tests and
development.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from authsentry.data.schemas.device_fingerprint import DeviceFingerprint
from authsentry.data.schemas.login_event import LoginEvent


class EventQuery(BaseModel):
    """Filter for event history reads.

    The time range is [start, end) unless end_inclusive is set.
    Unset attribute filters match everything.
    """
    start: datetime = Field(..., description="Inclusive lower bound")
    end: datetime = Field(..., description="Upper bound")
    end_inclusive: bool = Field(default=False)
    user_id: Optional[str] = Field(default=None)
    ip: Optional[str] = Field(default=None)
    user_agent: Optional[str] = Field(default=None)
    success: Optional[bool] = Field(default=None)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _ordered_range(self) -> "EventQuery":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    def matches(self, event: LoginEvent) -> bool:
        """Check a single event against every filter in this query."""
        if event.timestamp < self.start:
            return False
        if self.end_inclusive:
            if event.timestamp > self.end:
                return False
        elif event.timestamp >= self.end:
            return False
        if self.user_id is not None and event.user_id != self.user_id:
            return False
        if self.ip is not None and event.ip != self.ip:
            return False
        if self.user_agent is not None and event.user_agent != self.user_agent:
            return False
        if self.success is not None and event.success != self.success:
            return False
        return True


class EventHistoryStore(ABC):
    """Append-only login event history.

    Implementations must support concurrent reads and efficient
    range-by-time queries.
    """

    @abstractmethod
    def record(self, event: LoginEvent) -> str:
        """Append an event and return its identifier."""
        pass

    @abstractmethod
    def query(self, query: EventQuery) -> List[LoginEvent]:
        """Return matching events ordered by timestamp ascending."""
        pass

    @abstractmethod
    def prune(self, before: datetime) -> int:
        """Delete events older than `before`; return how many were removed."""
        pass


class FingerprintStore(ABC):
    """Device fingerprint records, addressable by content hash."""

    @abstractmethod
    def record(self, fingerprint: DeviceFingerprint) -> str:
        """Store a fingerprint and return its hash.

        Raises:
            DuplicateFingerprint: If a fingerprint with the same hash already exists
        """
        pass

    @abstractmethod
    def query(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[DeviceFingerprint]:
        """Return a user's fingerprints in [start, end), oldest first."""
        pass

    @abstractmethod
    def prune(self, before: datetime) -> int:
        """Delete fingerprints created before `before`; return how many were removed."""
        pass
