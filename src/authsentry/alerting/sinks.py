"""Alert sinks - delivery of sweeper findings.

emit() is fire-and-forget from the sweeper's point of view: the sweeper
catches and logs anything a sink raises and carries on.
"""

import atexit
import json
import logging
import queue
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from authsentry.common.config.settings import AlertSinkType, Config
from authsentry.common.constants import AlertConstants
from authsentry.common.exceptions import ConfigurationError
from authsentry.data.schemas.alert import Alert

logger = logging.getLogger(__name__)

# SNS subjects are limited to 100 characters
SNS_SUBJECT_MAX = 100


class AlertSink(ABC):
    """Consumer of sweeper alerts."""

    @abstractmethod
    def emit(self, alert: Alert) -> None:
        pass

    def shutdown(self) -> None:
        """Release resources. Default is a no-op."""


class LoggingAlertSink(AlertSink):
    """Writes each alert to the application log at WARNING."""

    def __init__(self, logger_name: str = "authsentry.alerts"):
        self._logger = logging.getLogger(logger_name)

    def emit(self, alert: Alert) -> None:
        self._logger.warning(
            f"{alert.kind.value} alert for {alert.subject}: {alert.count} events",
            extra={
                "alert_id": alert.alert_id,
                "alert_kind": alert.kind.value,
                "subject": alert.subject,
                "count": alert.count,
            },
        )


class JsonlAlertSink(AlertSink):
    """Appends alerts to a JSON Lines file, one alert per line."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, alert: Alert) -> None:
        line = alert.model_dump_json()
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class SNSAlertSink(AlertSink):
    """Publishes alerts to an SNS topic as JSON messages."""

    def __init__(self, topic_arn: str, region: Optional[str] = None, client=None):
        self.topic_arn = topic_arn
        self.sns = client or boto3.client("sns", region_name=region)
        logger.info(f"Initialized SNSAlertSink: topic={topic_arn}")

    def emit(self, alert: Alert) -> None:
        subject = f"[AuthSentry] {alert.kind.value}: {alert.subject}"[:SNS_SUBJECT_MAX]
        try:
            self.sns.publish(
                TopicArn=self.topic_arn,
                Subject=subject,
                Message=alert.model_dump_json(),
                MessageAttributes={
                    "kind": {"DataType": "String", "StringValue": alert.kind.value},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish alert {alert.alert_id} to SNS: {e}")
            raise IOError(f"SNS publish failed: {e}") from e


class BackgroundAlertSink(AlertSink):
    """Non-blocking wrapper that delivers alerts on a writer thread.

    A full queue drops the alert with a warning rather than block the
    sweeper. Remaining alerts are drained on shutdown.
    """

    DEFAULT_QUEUE_SIZE = AlertConstants.QUEUE_SIZE
    DEFAULT_FLUSH_TIMEOUT = AlertConstants.FLUSH_TIMEOUT_SECONDS

    def __init__(
        self,
        sink: AlertSink,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        flush_timeout: float = DEFAULT_FLUSH_TIMEOUT,
    ):
        """Initialize background alert sink.

        Args:
            sink: Sink that performs the actual delivery
            max_queue_size: Maximum number of alerts to buffer
            flush_timeout: Timeout for draining the queue on shutdown
        """
        self.sink = sink
        self.max_queue_size = max_queue_size
        self.flush_timeout = flush_timeout

        self._queue: queue.Queue[Optional[Alert]] = queue.Queue(maxsize=max_queue_size)
        self._shutdown_event = threading.Event()
        self._writer_thread: Optional[threading.Thread] = None

        self._delivered = 0
        self._failed = 0
        self._dropped = 0
        self._stats_lock = threading.Lock()

        self._start_writer()
        atexit.register(self.shutdown)

    def _start_writer(self) -> None:
        self._writer_thread = threading.Thread(
            target=self._writer_loop,
            name="AlertWriter",
            daemon=True,
        )
        self._writer_thread.start()
        logger.info("Background alert sink started")

    def _deliver(self, alert: Alert) -> None:
        try:
            self.sink.emit(alert)
            with self._stats_lock:
                self._delivered += 1
        except Exception as e:
            with self._stats_lock:
                self._failed += 1
            logger.error(f"Failed to deliver alert {alert.alert_id}: {e}")

    def _writer_loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                alert = self._queue.get(timeout=AlertConstants.QUEUE_GET_TIMEOUT)
            except queue.Empty:
                continue

            try:
                if alert is None:
                    break
                self._deliver(alert)
            finally:
                self._queue.task_done()

        self._drain_queue()
        logger.info("Background alert sink stopped")

    def _drain_queue(self) -> None:
        drained = 0
        while True:
            try:
                alert = self._queue.get_nowait()
            except queue.Empty:
                break
            if alert is not None:
                self._deliver(alert)
                drained += 1
            self._queue.task_done()

        if drained > 0:
            logger.info(f"Drained {drained} alerts during shutdown")

    def emit(self, alert: Alert) -> None:
        if self._shutdown_event.is_set():
            self._deliver(alert)
            return

        try:
            self._queue.put_nowait(alert)
        except queue.Full:
            with self._stats_lock:
                self._dropped += 1
            logger.warning(f"Alert queue full, alert {alert.alert_id} dropped")

    def flush(self) -> None:
        """Block until every queued alert has been handled."""
        self._queue.join()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the writer thread after draining the queue."""
        if self._shutdown_event.is_set():
            return

        timeout = timeout if timeout is not None else self.flush_timeout
        self._shutdown_event.set()

        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass  # writer sees the shutdown event instead

        if self._writer_thread and self._writer_thread.is_alive():
            self._writer_thread.join(timeout=timeout)
            if self._writer_thread.is_alive():
                logger.warning("Alert writer did not stop cleanly")

        self.sink.shutdown()
        logger.info(
            f"Alert sink shutdown complete. "
            f"Delivered: {self._delivered}, "
            f"Failed: {self._failed}, "
            f"Dropped: {self._dropped}"
        )

    def get_stats(self) -> dict:
        with self._stats_lock:
            return {
                "delivered": self._delivered,
                "failed": self._failed,
                "dropped": self._dropped,
                "queue_size": self._queue.qsize(),
                "max_queue_size": self.max_queue_size,
            }


def build_alert_sink(config: Config, background: bool = True) -> AlertSink:
    """Create the alert sink selected in configuration.

    Raises:
        ConfigurationError: If the selected sink is missing required settings
    """
    if config.alert_sink == AlertSinkType.JSONL:
        sink: AlertSink = JsonlAlertSink(config.alert_log_path)
    elif config.alert_sink == AlertSinkType.SNS:
        if not config.alert_sns_topic_arn:
            raise ConfigurationError("SNS alert sink requires a topic ARN")
        sink = SNSAlertSink(config.alert_sns_topic_arn, region=config.aws_region)
    else:
        sink = LoggingAlertSink()

    logger.info(f"Using {config.alert_sink.value} alert sink")
    if background:
        return BackgroundAlertSink(sink)
    return sink
