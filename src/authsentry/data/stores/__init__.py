"""Store contracts and reference implementations."""

from authsentry.data.stores.base import EventHistoryStore, EventQuery, FingerprintStore
from authsentry.data.stores.bounded import (
    BoundedEventStore,
    BoundedFingerprintStore,
    call_with_timeout,
    get_store_executor,
    shutdown_store_executor,
)
from authsentry.data.stores.memory import InMemoryEventStore, InMemoryFingerprintStore

__all__ = [
    "EventHistoryStore",
    "EventQuery",
    "FingerprintStore",
    "BoundedEventStore",
    "BoundedFingerprintStore",
    "call_with_timeout",
    "get_store_executor",
    "shutdown_store_executor",
    "InMemoryEventStore",
    "InMemoryFingerprintStore",
]
