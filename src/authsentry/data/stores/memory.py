"""In-memory stores for development and tests.

Thread-safe: every read copies under the lock and returns a plain list,
so no lock is held while callers iterate.
"""

import bisect
import logging
import threading
from datetime import datetime
from typing import Dict, List
from uuid import uuid4

from authsentry.common.exceptions import DuplicateFingerprint
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.data.stores.base import EventHistoryStore, EventQuery, FingerprintStore

logger = logging.getLogger(__name__)


def _event_time(event: LoginEvent) -> datetime:
    return event.timestamp


def _fingerprint_time(fingerprint: DeviceFingerprint) -> datetime:
    return fingerprint.created_at


class InMemoryEventStore(EventHistoryStore):
    """Event history kept sorted by timestamp.

    Events with equal timestamps keep their insertion order.
    """

    def __init__(self):
        self._events: List[LoginEvent] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def record(self, event: LoginEvent) -> str:
        if event.event_id is None:
            event = event.model_copy(update={"event_id": f"evt_{uuid4().hex[:12]}"})

        with self._lock:
            bisect.insort_right(self._events, event, key=_event_time)

        return event.event_id

    def query(self, query: EventQuery) -> List[LoginEvent]:
        with self._lock:
            lo = bisect.bisect_left(self._events, query.start, key=_event_time)
            if query.end_inclusive:
                hi = bisect.bisect_right(self._events, query.end, key=_event_time)
            else:
                hi = bisect.bisect_left(self._events, query.end, key=_event_time)
            candidates = self._events[lo:hi]

        return [event for event in candidates if query.matches(event)]

    def prune(self, before: datetime) -> int:
        with self._lock:
            cut = bisect.bisect_left(self._events, before, key=_event_time)
            del self._events[:cut]

        if cut:
            logger.info(f"Pruned {cut} login events older than {before.isoformat()}")
        return cut


class InMemoryFingerprintStore(FingerprintStore):
    """Fingerprints indexed by hash and ordered by creation time."""

    def __init__(self):
        self._by_hash: Dict[str, DeviceFingerprint] = {}
        self._ordered: List[DeviceFingerprint] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._ordered)

    def record(self, fingerprint: DeviceFingerprint) -> str:
        with self._lock:
            if fingerprint.hash in self._by_hash:
                raise DuplicateFingerprint(fingerprint.hash)
            self._by_hash[fingerprint.hash] = fingerprint
            bisect.insort_right(self._ordered, fingerprint, key=_fingerprint_time)

        return fingerprint.hash

    def get(self, fingerprint_hash: str) -> DeviceFingerprint | None:
        with self._lock:
            return self._by_hash.get(fingerprint_hash)

    def query(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[DeviceFingerprint]:
        with self._lock:
            lo = bisect.bisect_left(self._ordered, start, key=_fingerprint_time)
            hi = bisect.bisect_left(self._ordered, end, key=_fingerprint_time)
            candidates = self._ordered[lo:hi]

        return [fp for fp in candidates if fp.user_id == user_id]

    def prune(self, before: datetime) -> int:
        with self._lock:
            cut = bisect.bisect_left(self._ordered, before, key=_fingerprint_time)
            for fingerprint in self._ordered[:cut]:
                del self._by_hash[fingerprint.hash]
            del self._ordered[:cut]

        if cut:
            logger.info(f"Pruned {cut} device fingerprints older than {before.isoformat()}")
        return cut
