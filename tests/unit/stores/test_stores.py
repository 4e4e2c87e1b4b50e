"""Tests for the in-memory stores and the time-bounded proxies."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from pydantic import ValidationError

from authsentry.common.exceptions import DuplicateFingerprint, StoreUnavailable
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint, fingerprint_digest
from authsentry.data.stores.base import EventHistoryStore, EventQuery
from authsentry.data.stores.bounded import (
    BoundedEventStore,
    BoundedFingerprintStore,
    call_with_timeout,
)


class SlowEventStore(EventHistoryStore):
    """Blocks every read until released."""

    def __init__(self):
        self.release = threading.Event()

    def record(self, event):
        return event.event_id

    def query(self, query):
        self.release.wait(timeout=5.0)
        return []

    def prune(self, before):
        return 0


class BrokenEventStore(EventHistoryStore):
    def record(self, event):
        raise ConnectionError("connection refused")

    def query(self, query):
        raise ConnectionError("connection refused")

    def prune(self, before):
        raise ConnectionError("connection refused")


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="TestStoreWorker")
    yield pool
    pool.shutdown(wait=False, cancel_futures=True)


class TestEventQuery:
    """Tests for EventQuery filters."""

    def test_half_open_by_default(self, make_event, now):
        query = EventQuery(start=now - timedelta(hours=1), end=now)

        assert query.matches(make_event(minutes=-60))
        assert not query.matches(make_event(minutes=0))

    def test_closed_range(self, make_event, now):
        query = EventQuery(start=now - timedelta(hours=1), end=now, end_inclusive=True)
        assert query.matches(make_event(minutes=0))

    def test_attribute_filters(self, make_event, now):
        query = EventQuery(
            start=now - timedelta(hours=1), end=now, ip="10.0.0.1", success=False
        )

        assert query.matches(make_event(minutes=-1, ip="10.0.0.1", success=False))
        assert not query.matches(make_event(minutes=-1, ip="10.0.0.1", success=True))
        assert not query.matches(make_event(minutes=-1, ip="10.0.0.2", success=False))

    def test_reversed_range_rejected(self, now):
        with pytest.raises(ValidationError):
            EventQuery(start=now, end=now - timedelta(minutes=1))


class TestInMemoryEventStore:
    """Tests for InMemoryEventStore."""

    def test_query_returns_time_order(self, event_store, make_event, now):
        late = make_event(minutes=-1)
        early = make_event(minutes=-30)
        event_store.record(late)
        event_store.record(early)

        events = event_store.query(EventQuery(start=now - timedelta(hours=1), end=now))

        assert events == [early, late]

    def test_equal_timestamps_keep_insertion_order(self, event_store, make_event, now):
        first = make_event(minutes=-5, ip="10.0.0.1")
        second = make_event(minutes=-5, ip="10.0.0.2")
        event_store.record(first)
        event_store.record(second)

        events = event_store.query(EventQuery(start=now - timedelta(hours=1), end=now))

        assert [e.ip for e in events] == ["10.0.0.1", "10.0.0.2"]

    def test_record_assigns_missing_id(self, event_store, make_event):
        event_id = event_store.record(make_event(event_id=None))

        assert event_id.startswith("evt_")
        assert len(event_store) == 1

    def test_prune(self, event_store, make_event, now):
        event_store.record(make_event(minutes=-120))
        event_store.record(make_event(minutes=-10))

        removed = event_store.prune(now - timedelta(hours=1))

        assert removed == 1
        assert len(event_store) == 1


class TestInMemoryFingerprintStore:
    """Tests for InMemoryFingerprintStore."""

    def test_record_and_query(self, fingerprint_store, make_fingerprint, now):
        fingerprint = make_fingerprint(days=-1)

        assert fingerprint_store.record(fingerprint) == fingerprint.hash
        assert fingerprint_store.get(fingerprint.hash) == fingerprint
        assert fingerprint_store.query("user_alice", now - timedelta(days=2), now) == [fingerprint]
        assert fingerprint_store.query("user_bob", now - timedelta(days=2), now) == []

    def test_duplicate_hash_rejected(self, fingerprint_store, make_fingerprint):
        fingerprint = make_fingerprint(days=-1)
        fingerprint_store.record(fingerprint)

        with pytest.raises(DuplicateFingerprint) as exc_info:
            fingerprint_store.record(fingerprint)

        assert exc_info.value.details["hash"] == fingerprint.hash
        assert isinstance(exc_info.value, ValueError)

    def test_prune(self, fingerprint_store, make_fingerprint, now):
        old = make_fingerprint(days=-40)
        fingerprint_store.record(old)
        fingerprint_store.record(make_fingerprint(days=-1))

        assert fingerprint_store.prune(now - timedelta(days=30)) == 1
        assert fingerprint_store.get(old.hash) is None


class TestFingerprintDigest:
    """Tests for payload hashing."""

    def test_key_order_does_not_matter(self):
        assert fingerprint_digest({"a": 1, "b": 2}) == fingerprint_digest({"b": 2, "a": 1})

    def test_matches(self, now):
        payload = {"canvas": "abc", "fonts": ["Arial"]}
        fingerprint = DeviceFingerprint.from_payload(
            payload, ip="10.0.0.1", user_agent="Agent/1", created_at=now
        )

        assert len(fingerprint.hash) == 64
        assert fingerprint.matches(payload)
        assert not fingerprint.matches({"canvas": "xyz"})


class TestBoundedStores:
    """Tests for the timeout-bounded store proxies."""

    def test_passes_through(self, event_store, make_event, now, executor):
        bounded = BoundedEventStore(event_store, timeout=1.0, executor=executor)
        event = make_event(minutes=-1)

        bounded.record(event)
        events = bounded.query(EventQuery(start=now - timedelta(hours=1), end=now))

        assert events == [event]

    def test_timeout_raises_store_unavailable(self, now, executor):
        slow = SlowEventStore()
        bounded = BoundedEventStore(slow, timeout=0.05, executor=executor)

        try:
            with pytest.raises(StoreUnavailable) as exc_info:
                bounded.query(EventQuery(start=now - timedelta(hours=1), end=now))
        finally:
            slow.release.set()

        error = exc_info.value
        assert error.retryable is True
        assert error.details["store_name"] == "event_store"
        assert error.details["timeout_seconds"] == 0.05

    def test_store_error_raises_store_unavailable(self, now, executor):
        bounded = BoundedEventStore(BrokenEventStore(), timeout=1.0, executor=executor)

        with pytest.raises(StoreUnavailable) as exc_info:
            bounded.prune(now)

        assert exc_info.value.details["error_type"] == "ConnectionError"

    def test_fingerprint_duplicates_pass_through(self, fingerprint_store, make_fingerprint, executor):
        bounded = BoundedFingerprintStore(fingerprint_store, timeout=1.0, executor=executor)
        fingerprint = make_fingerprint(days=-1)
        bounded.record(fingerprint)

        with pytest.raises(DuplicateFingerprint):
            bounded.record(fingerprint)

    def test_call_with_timeout_returns_value(self, executor):
        assert call_with_timeout("test_store", lambda x: x * 2, 21, timeout=1.0, executor=executor) == 42
