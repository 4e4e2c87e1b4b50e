"""Tests for advisory anomaly detection."""

import pytest

from authsentry.common.exceptions import StoreUnavailable
from authsentry.data.schemas.baseline import UserBaseline, VelocityCounts
from authsentry.scoring.analyzer import (
    DEVICE_MISMATCH,
    GEOGRAPHIC_ANOMALY,
    SUSPICIOUS_USER_AGENT,
    UNUSUAL_FREQUENCY,
    SecurityAnalyzer,
)


class TestDetectAnomalies:
    """Tests for SecurityAnalyzer.detect_anomalies."""

    def test_clean_event(self, make_event, now):
        analyzer = SecurityAnalyzer()
        baseline = UserBaseline(as_of=now, window_days=7, velocity=VelocityCounts())

        assert analyzer.detect_anomalies(make_event(), baseline) == []

    def test_suspicious_agent(self, make_event, now):
        analyzer = SecurityAnalyzer()
        event = make_event(user_agent="Wget/1.21.4")

        anomalies = analyzer.detect_anomalies(event, UserBaseline(as_of=now, window_days=7))

        assert anomalies == [SUSPICIOUS_USER_AGENT]

    def test_unusual_frequency(self, make_event, now):
        analyzer = SecurityAnalyzer()
        busy = UserBaseline(
            as_of=now, window_days=7, velocity=VelocityCounts(user_attempts_last_hour=11)
        )
        normal = UserBaseline(
            as_of=now, window_days=7, velocity=VelocityCounts(user_attempts_last_hour=10)
        )

        assert analyzer.detect_anomalies(make_event(), busy) == [UNUSUAL_FREQUENCY]
        assert analyzer.detect_anomalies(make_event(), normal) == []

    def test_geographic_anomaly_predicate(self, make_event, now):
        analyzer = SecurityAnalyzer(geographic_anomaly=lambda event, baseline: True)

        anomalies = analyzer.detect_anomalies(make_event(), UserBaseline(as_of=now, window_days=7))

        assert anomalies == [GEOGRAPHIC_ANOMALY]

    def test_geographic_provider_failure_is_retryable(self, make_event, now):
        def unreachable(event, baseline):
            raise TimeoutError("geo provider timed out")

        analyzer = SecurityAnalyzer(geographic_anomaly=unreachable)

        with pytest.raises(StoreUnavailable) as exc_info:
            analyzer.detect_anomalies(make_event(), UserBaseline(as_of=now, window_days=7))

        assert exc_info.value.retryable is True
        assert exc_info.value.details["store_name"] == "geographic_anomaly"
        assert exc_info.value.details["error_type"] == "TimeoutError"

    def test_device_mismatch(self, make_event, now):
        analyzer = SecurityAnalyzer()
        baseline = UserBaseline(
            as_of=now, window_days=7, fingerprint_user_agents=["SomeOtherAgent/1.0"]
        )

        assert analyzer.detect_anomalies(make_event(), baseline) == [DEVICE_MISMATCH]

    def test_fixed_order(self, make_event, now):
        analyzer = SecurityAnalyzer(geographic_anomaly=lambda event, baseline: True)
        baseline = UserBaseline(
            as_of=now,
            window_days=7,
            fingerprint_user_agents=["Mozilla/5.0"],
            velocity=VelocityCounts(user_attempts_last_hour=50),
        )

        anomalies = analyzer.detect_anomalies(make_event(user_agent="curl/8.4.0"), baseline)

        assert anomalies == [
            SUSPICIOUS_USER_AGENT,
            UNUSUAL_FREQUENCY,
            GEOGRAPHIC_ANOMALY,
            DEVICE_MISMATCH,
        ]


class TestAnalyzeUserAgent:
    """Tests for SecurityAnalyzer.analyze_user_agent."""

    def test_scripted_client(self):
        result = SecurityAnalyzer().analyze_user_agent("curl/8.4.0")

        assert result["is_suspicious"] is True
        assert result["is_bot"] is False
        assert result["matched_signatures"] == ["curl"]
        assert result["browser"] == "Unknown"

    def test_crawler(self):
        result = SecurityAnalyzer().analyze_user_agent("Googlebot/2.1 (+http://www.google.com/bot.html)")

        assert result["is_bot"] is True
        assert result["matched_signatures"] == ["bot"]

    def test_browser(self):
        result = SecurityAnalyzer().analyze_user_agent(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0"
        )

        assert result["is_suspicious"] is False
        assert result["matched_signatures"] == []
        assert result["browser"] == "Chrome"
        assert result["os"] == "Windows"
