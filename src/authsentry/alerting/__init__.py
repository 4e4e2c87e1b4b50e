"""Alert delivery - sinks for sweeper findings."""

from authsentry.alerting.sinks import (
    AlertSink,
    BackgroundAlertSink,
    JsonlAlertSink,
    LoggingAlertSink,
    SNSAlertSink,
    build_alert_sink,
)

__all__ = [
    "AlertSink",
    "BackgroundAlertSink",
    "JsonlAlertSink",
    "LoggingAlertSink",
    "SNSAlertSink",
    "build_alert_sink",
]
