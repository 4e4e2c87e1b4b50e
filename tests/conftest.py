"""Shared fixtures for AuthSentry tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from authsentry.alerting.sinks import AlertSink
from authsentry.common.config.settings import reset_config
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.data.stores.memory import InMemoryEventStore, InMemoryFingerprintStore
from authsentry.orchestration.engine import RiskEngine
from authsentry.scoring.rules import RiskRules


# Fixed reference time, 14:30 UTC so the unusual-time rule stays quiet
NOW = datetime(2026, 1, 25, 14, 30, 0, tzinfo=timezone.utc)

CHROME_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
SAFARI_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) AppleWebKit/605.1.15 Version/17.2 Safari/605.1.15"
CURL_UA = "curl/8.4.0"


class RecordingSink(AlertSink):
    """Alert sink that keeps every alert in memory."""

    def __init__(self):
        self.alerts = []

    def emit(self, alert):
        self.alerts.append(alert)


@pytest.fixture(autouse=True)
def _reset_config():
    """Every test starts from a fresh configuration singleton."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_event():
    """Factory for login events relative to NOW.

    `minutes` is the offset from NOW (negative is in the past).
    """
    ids = count(1)

    def _make(minutes: float = 0, **overrides) -> LoginEvent:
        fields = {
            "event_id": f"evt_{next(ids):04d}",
            "user_id": "user_alice",
            "ip": "203.0.113.7",
            "user_agent": CHROME_UA,
            "timestamp": NOW + timedelta(minutes=minutes),
            "success": True,
        }
        fields.update(overrides)
        return LoginEvent(**fields)

    return _make


@pytest.fixture
def make_fingerprint():
    """Factory for device fingerprints relative to NOW."""
    ids = count(1)

    def _make(days: float = 0, **overrides) -> DeviceFingerprint:
        fields = {
            "ip": "203.0.113.7",
            "user_agent": CHROME_UA,
            "created_at": NOW + timedelta(days=days),
            "user_id": "user_alice",
        }
        fields.update(overrides)
        payload = {"canvas": f"c{next(ids)}", "fonts": ["Arial"]}
        return DeviceFingerprint.from_payload(payload, **fields)

    return _make


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def fingerprint_store() -> InMemoryFingerprintStore:
    return InMemoryFingerprintStore()


@pytest.fixture
def rules() -> RiskRules:
    return RiskRules()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine(event_store, fingerprint_store, rules, sink) -> RiskEngine:
    engine = RiskEngine(
        event_store=event_store,
        fingerprint_store=fingerprint_store,
        rules=rules,
        sink=sink,
        job_name="test_sweep",
    )
    yield engine
    engine.shutdown()
