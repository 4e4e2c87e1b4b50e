"""Monitoring - CloudWatch metrics for assessments and sweeps."""

from authsentry.monitoring.metrics import MetricPoint, MetricsCollector, MetricType

__all__ = ["MetricPoint", "MetricsCollector", "MetricType"]
