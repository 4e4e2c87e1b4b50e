"""Tests for alert sinks."""

import json
import threading
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from authsentry.alerting.sinks import (
    AlertSink,
    BackgroundAlertSink,
    JsonlAlertSink,
    LoggingAlertSink,
    SNSAlertSink,
    build_alert_sink,
)
from authsentry.common.config.settings import AlertSinkType, Config
from authsentry.data.schemas.alert import Alert, AlertKind


@pytest.fixture
def alert(now):
    return Alert.create(
        kind=AlertKind.IP_FLOOD,
        subject="10.0.0.1",
        window_start=now - timedelta(hours=1),
        window_end=now,
        count=6,
        first_seen=now - timedelta(minutes=5),
    )


class CollectingSink(AlertSink):
    def __init__(self):
        self.alerts = []
        self.closed = False

    def emit(self, alert):
        self.alerts.append(alert)

    def shutdown(self):
        self.closed = True


class BlockingSink(AlertSink):
    """Holds the writer thread until released."""

    def __init__(self):
        self.release = threading.Event()
        self.alerts = []

    def emit(self, alert):
        self.release.wait(timeout=5.0)
        self.alerts.append(alert)


class TestLoggingAlertSink:
    """Tests for LoggingAlertSink."""

    def test_logs_warning(self, alert, caplog):
        sink = LoggingAlertSink()

        with caplog.at_level("WARNING", logger="authsentry.alerts"):
            sink.emit(alert)

        assert "ip-flood alert for 10.0.0.1: 6 events" in caplog.text
        assert caplog.records[-1].alert_id == alert.alert_id


class TestJsonlAlertSink:
    """Tests for JsonlAlertSink."""

    def test_appends_one_line_per_alert(self, alert, tmp_path):
        path = tmp_path / "nested" / "alerts.jsonl"
        sink = JsonlAlertSink(path)

        sink.emit(alert)
        sink.emit(alert)

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        record = json.loads(lines[0])
        assert record["alert_id"] == alert.alert_id
        assert record["kind"] == "ip-flood"
        assert record["count"] == 6
        assert Alert.model_validate_json(lines[1]) == alert


class TestSNSAlertSink:
    """Tests for SNSAlertSink."""

    def test_publish(self, alert):
        client = MagicMock()
        sink = SNSAlertSink("arn:aws:sns:us-east-1:123456789012:alerts", client=client)

        sink.emit(alert)

        kwargs = client.publish.call_args.kwargs
        assert kwargs["TopicArn"] == "arn:aws:sns:us-east-1:123456789012:alerts"
        assert kwargs["Subject"] == "[AuthSentry] ip-flood: 10.0.0.1"
        assert json.loads(kwargs["Message"])["alert_id"] == alert.alert_id
        assert kwargs["MessageAttributes"]["kind"]["StringValue"] == "ip-flood"

    def test_long_subject_is_truncated(self, now):
        client = MagicMock()
        sink = SNSAlertSink("arn:aws:sns:us-east-1:123456789012:alerts", client=client)
        alert = Alert.create(
            kind=AlertKind.UA_FLOOD,
            subject="Mozilla/5.0 " * 20,
            window_start=now - timedelta(hours=1),
            window_end=now,
            count=11,
            first_seen=now,
        )

        sink.emit(alert)

        assert len(client.publish.call_args.kwargs["Subject"]) == 100

    def test_client_error_becomes_ioerror(self, alert):
        client = MagicMock()
        client.publish.side_effect = ClientError(
            {"Error": {"Code": "NotFound", "Message": "Topic does not exist"}}, "Publish"
        )
        sink = SNSAlertSink("arn:aws:sns:us-east-1:123456789012:missing", client=client)

        with pytest.raises(IOError):
            sink.emit(alert)

    @patch("authsentry.alerting.sinks.boto3.client")
    def test_creates_client_for_region(self, mock_client):
        SNSAlertSink("arn:aws:sns:eu-west-1:123456789012:alerts", region="eu-west-1")

        mock_client.assert_called_once_with("sns", region_name="eu-west-1")


class TestBackgroundAlertSink:
    """Tests for BackgroundAlertSink."""

    def test_delivers_on_writer_thread(self, alert):
        inner = CollectingSink()
        sink = BackgroundAlertSink(inner)

        sink.emit(alert)
        sink.flush()

        assert inner.alerts == [alert]
        assert sink.get_stats()["delivered"] == 1
        sink.shutdown()
        assert inner.closed

    def test_full_queue_drops(self, alert):
        inner = BlockingSink()
        sink = BackgroundAlertSink(inner, max_queue_size=1)

        try:
            # The writer may pick up the first alert and block on it;
            # one more fills the queue and the rest are dropped.
            for _ in range(5):
                sink.emit(alert)

            stats = sink.get_stats()
            assert stats["dropped"] >= 3
        finally:
            inner.release.set()
            sink.shutdown()

    def test_delivery_failures_are_counted(self, alert):
        inner = MagicMock()
        inner.emit.side_effect = IOError("down")
        sink = BackgroundAlertSink(inner)

        sink.emit(alert)
        sink.flush()

        assert sink.get_stats()["failed"] == 1
        sink.shutdown()

    def test_emit_after_shutdown_delivers_inline(self, alert):
        inner = CollectingSink()
        sink = BackgroundAlertSink(inner)
        sink.shutdown()

        sink.emit(alert)

        assert inner.alerts == [alert]

    def test_shutdown_is_idempotent(self):
        sink = BackgroundAlertSink(CollectingSink())
        sink.shutdown()
        sink.shutdown()


class TestBuildAlertSink:
    """Tests for build_alert_sink."""

    def test_log_sink_by_default(self):
        sink = build_alert_sink(Config(), background=False)
        assert isinstance(sink, LoggingAlertSink)

    def test_jsonl_sink(self, tmp_path):
        config = Config(alert_sink=AlertSinkType.JSONL, alert_log_path=tmp_path / "a.jsonl")
        sink = build_alert_sink(config, background=False)

        assert isinstance(sink, JsonlAlertSink)
        assert sink.path == tmp_path / "a.jsonl"

    @patch("authsentry.alerting.sinks.boto3.client")
    def test_sns_sink(self, mock_client):
        config = Config(
            alert_sink=AlertSinkType.SNS,
            alert_sns_topic_arn="arn:aws:sns:us-east-1:123456789012:alerts",
        )
        sink = build_alert_sink(config, background=False)

        assert isinstance(sink, SNSAlertSink)
        mock_client.assert_called_once_with("sns", region_name=config.aws_region)

    def test_background_wrapper(self):
        sink = build_alert_sink(Config())

        try:
            assert isinstance(sink, BackgroundAlertSink)
            assert isinstance(sink.sink, LoggingAlertSink)
        finally:
            sink.shutdown()
