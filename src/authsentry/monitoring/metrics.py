"""Monitoring - assessment latency, risk levels, sweep alerts and detector errors."""

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from authsentry.common.constants import MonitoringConstants
from authsentry.data.schemas.alert import SweepReport
from authsentry.data.schemas.risk_assessment import RiskAssessment

logger = logging.getLogger(__name__)

# CloudWatch accepts at most 20 datums per put_metric_data call
CLOUDWATCH_MAX_BATCH = 20


class MetricType(str, Enum):
    ASSESSMENT_COUNT = "assessment_count"
    ASSESSMENT_LATENCY = "assessment_latency"
    RISK_SCORE = "risk_score"
    STORE_UNAVAILABLE = "store_unavailable"
    SWEEP_ALERTS = "sweep_alerts"
    SWEEP_DURATION = "sweep_duration"
    SWEEP_DETECTOR_ERROR = "sweep_detector_error"
    SWEEP_SKIPPED = "sweep_skipped"


@dataclass
class MetricPoint:
    metric_name: str
    value: float
    unit: str = "None"
    timestamp: Optional[datetime] = None
    dimensions: Optional[Dict[str, str]] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


class MetricsCollector:
    """Collects and publishes metrics to CloudWatch."""

    DEFAULT_REGION = "us-east-1"
    DEFAULT_NAMESPACE = "AuthSentry"

    def __init__(self, namespace: Optional[str] = None, region: Optional[str] = None,
                 aws_profile: Optional[str] = None,
                 batch_size: int = MonitoringConstants.DEFAULT_BATCH_SIZE,
                 client=None):
        self.namespace = namespace or os.environ.get("CLOUDWATCH_NAMESPACE", self.DEFAULT_NAMESPACE)
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.batch_size = batch_size
        self.metric_buffer: List[MetricPoint] = []
        self._lock = threading.Lock()

        if client is not None:
            self.cloudwatch = client
        elif aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.cloudwatch = session.client("cloudwatch", region_name=self.region)
        else:
            self.cloudwatch = boto3.client("cloudwatch", region_name=self.region)

        logger.info(f"Initialized MetricsCollector: namespace={self.namespace}")

    def record_metric(self, metric: MetricPoint) -> None:
        """Buffer a metric point; flushes once the batch is full."""
        with self._lock:
            self.metric_buffer.append(metric)
            full = len(self.metric_buffer) >= self.batch_size

        if full:
            self.flush()

    def record_assessment(self, assessment: RiskAssessment, latency_ms: float) -> None:
        """Record metrics for one risk assessment.

        Args:
            assessment: The produced assessment
            latency_ms: End-to-end assess_risk latency in milliseconds
        """
        self.record_metric(MetricPoint(
            metric_name=MetricType.ASSESSMENT_COUNT.value,
            value=1.0,
            unit="Count",
            dimensions={"level": assessment.level.value},
        ))

        self.record_metric(MetricPoint(
            metric_name=MetricType.RISK_SCORE.value,
            value=assessment.score,
            unit="None",
        ))

        self.record_metric(MetricPoint(
            metric_name=MetricType.ASSESSMENT_LATENCY.value,
            value=latency_ms,
            unit="Milliseconds",
        ))

        if latency_ms > MonitoringConstants.ASSESSMENT_LATENCY_WARNING_MS:
            logger.warning(f"Slow risk assessment: {latency_ms:.1f}ms")

    def record_store_unavailable(self, store_name: str) -> None:
        self.record_metric(MetricPoint(
            metric_name=MetricType.STORE_UNAVAILABLE.value,
            value=1.0,
            unit="Count",
            dimensions={"store": store_name},
        ))

    def record_sweep(self, report: SweepReport) -> None:
        """Record metrics for one sweep run.

        Args:
            report: The finished sweep report
        """
        if report.skipped:
            self.record_metric(MetricPoint(
                metric_name=MetricType.SWEEP_SKIPPED.value,
                value=1.0,
                unit="Count",
            ))
            return

        counts: Dict[str, int] = {}
        for alert in report.alerts:
            counts[alert.kind.value] = counts.get(alert.kind.value, 0) + 1

        for kind, count in counts.items():
            self.record_metric(MetricPoint(
                metric_name=MetricType.SWEEP_ALERTS.value,
                value=float(count),
                unit="Count",
                dimensions={"kind": kind},
            ))

        for detector in report.errors:
            self.record_metric(MetricPoint(
                metric_name=MetricType.SWEEP_DETECTOR_ERROR.value,
                value=1.0,
                unit="Count",
                dimensions={"detector": detector},
            ))

        self.record_metric(MetricPoint(
            metric_name=MetricType.SWEEP_DURATION.value,
            value=report.duration_ms,
            unit="Milliseconds",
        ))

    def flush(self) -> None:
        """Flush buffered metrics to CloudWatch.

        Raises:
            IOError: If CloudWatch write fails
        """
        with self._lock:
            if not self.metric_buffer:
                return
            pending = list(self.metric_buffer)
            self.metric_buffer.clear()

        metric_data = []
        for metric in pending:
            metric_dict = {
                "MetricName": metric.metric_name,
                "Value": metric.value,
                "Unit": metric.unit,
                "Timestamp": metric.timestamp,
            }

            if metric.dimensions:
                metric_dict["Dimensions"] = [
                    {"Name": k, "Value": str(v)}
                    for k, v in metric.dimensions.items()
                ]

            metric_data.append(metric_dict)

        try:
            for i in range(0, len(metric_data), CLOUDWATCH_MAX_BATCH):
                self.cloudwatch.put_metric_data(
                    Namespace=self.namespace,
                    MetricData=metric_data[i:i + CLOUDWATCH_MAX_BATCH],
                )
        except ClientError as e:
            logger.error(f"Failed to publish metrics: {e}")
            raise IOError(f"CloudWatch write failed: {e}") from e

        logger.debug(f"Published {len(pending)} metrics to CloudWatch")

    def shutdown(self) -> None:
        """Flush remaining metrics on shutdown."""
        self.flush()
