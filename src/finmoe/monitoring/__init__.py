"""Metrics collection."""

from finmoe.monitoring.metrics import MetricPoint, MetricsCollector, MetricType

__all__ = ["MetricPoint", "MetricsCollector", "MetricType"]
