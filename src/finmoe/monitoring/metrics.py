"""Monitoring - track decision latency, verdicts, agent errors, routing fallbacks, backoffs."""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from finmoe.common.constants import MonitoringConstants

logger = logging.getLogger(__name__)


class MetricType(str, Enum):
    DECISION_LATENCY = "decision_latency"
    VERDICT = "verdict"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_FAILED = "request_failed"
    AGENT_ERROR_RATE = "agent_error_rate"
    ROUTING_FALLBACK = "routing_fallback"
    RATE_LIMIT_BACKOFF = "rate_limit_backoff"


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
    """Collects pipeline metrics and optionally publishes them to CloudWatch.

    Running totals back ``summary()`` whether or not publishing is on.
    The CloudWatch client is only created when ``publish`` is true.
    """

    DEFAULT_REGION = "us-east-1"

    def __init__(self, namespace: Optional[str] = None, region: Optional[str] = None,
                 publish: bool = False, aws_profile: Optional[str] = None,
                 batch_size: int = MonitoringConstants.DEFAULT_BATCH_SIZE):
        self.namespace = namespace or os.environ.get(
            "CLOUDWATCH_NAMESPACE", MonitoringConstants.DEFAULT_NAMESPACE
        )
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.publish = publish
        self.batch_size = batch_size
        self.metric_buffer: List[MetricPoint] = []
        self._aws_profile = aws_profile
        self._cloudwatch = None

        self._completed = 0
        self._failed = 0
        self._total_latency = 0.0
        self._verdicts: Dict[str, int] = {}
        self._agent_errors: Dict[str, int] = {}
        self._routing_fallbacks = 0
        self._backoffs = 0

        logger.info(f"Initialized MetricsCollector: namespace={self.namespace}, publish={publish}")

    @property
    def cloudwatch(self):
        if self._cloudwatch is None:
            if self._aws_profile:
                session = boto3.Session(profile_name=self._aws_profile)
                self._cloudwatch = session.client("cloudwatch", region_name=self.region)
            else:
                self._cloudwatch = boto3.client("cloudwatch", region_name=self.region)
        return self._cloudwatch

    def record_metric(self, metric: MetricPoint) -> None:
        """Buffer a metric point; flushes when the batch is full."""
        if not self.publish:
            return
        self.metric_buffer.append(metric)

        if len(self.metric_buffer) >= self.batch_size:
            self.flush()

    def record_decision(self, request_id: str, verdict: Optional[str], latency_seconds: float) -> None:
        """Record a completed request.

        Args:
            request_id: Request ID
            verdict: Final verdict, or None when no decision was reached
            latency_seconds: Time from dispatch to completion
        """
        self._completed += 1
        self._total_latency += latency_seconds
        verdict_label = verdict or "none"
        self._verdicts[verdict_label] = self._verdicts.get(verdict_label, 0) + 1

        self.record_metric(MetricPoint(
            metric_name=MetricType.DECISION_LATENCY.value,
            value=latency_seconds * 1000.0,
            unit="Milliseconds",
        ))
        self.record_metric(MetricPoint(
            metric_name=MetricType.VERDICT.value,
            value=1.0,
            unit="Count",
            dimensions={"verdict": verdict_label},
        ))
        logger.debug(f"Recorded decision metrics for {request_id}")

    def record_request_failed(self, request_id: str, error_type: str) -> None:
        self._failed += 1
        self.record_metric(MetricPoint(
            metric_name=MetricType.REQUEST_FAILED.value,
            value=1.0,
            unit="Count",
            dimensions={"error_type": error_type},
        ))
        logger.debug(f"Recorded failure metrics for {request_id}")

    def record_agent_error(self, agent_name: str, error_type: str) -> None:
        """Record an expert failure.

        Args:
            agent_name: Worker id that errored
            error_type: Exception class name
        """
        self._agent_errors[agent_name] = self._agent_errors.get(agent_name, 0) + 1
        self.record_metric(MetricPoint(
            metric_name=MetricType.AGENT_ERROR_RATE.value,
            value=1.0,
            unit="Count",
            dimensions={
                "agent": agent_name,
                "error_type": error_type,
            },
        ))

    def record_routing_fallback(self, reason: str) -> None:
        self._routing_fallbacks += 1
        self.record_metric(MetricPoint(
            metric_name=MetricType.ROUTING_FALLBACK.value,
            value=1.0,
            unit="Count",
            dimensions={"reason": reason},
        ))

    def record_backoff(self, seconds: float) -> None:
        self._backoffs += 1
        self.record_metric(MetricPoint(
            metric_name=MetricType.RATE_LIMIT_BACKOFF.value,
            value=seconds,
            unit="Seconds",
        ))

    def summary(self) -> Dict[str, Any]:
        """Aggregate view: success rate, average response time and counts."""
        total = self._completed + self._failed
        return {
            "total_requests": total,
            "completed": self._completed,
            "failed": self._failed,
            "success_rate": round(self._completed / total, 4) if total else 0.0,
            "avg_response_time": round(self._total_latency / self._completed, 3) if self._completed else 0.0,
            "verdicts": dict(self._verdicts),
            "agent_errors": dict(self._agent_errors),
            "routing_fallbacks": self._routing_fallbacks,
            "rate_limit_backoffs": self._backoffs,
        }

    def flush(self) -> None:
        """Flush buffered metrics to CloudWatch.

        Publishing failures are logged and the buffer is dropped; metrics
        never fail a request.
        """
        if not self.metric_buffer:
            return

        metric_data = []
        for metric in self.metric_buffer:
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
            # CloudWatch allows max 20 metrics per request
            for i in range(0, len(metric_data), 20):
                batch = metric_data[i:i + 20]
                self.cloudwatch.put_metric_data(
                    Namespace=self.namespace,
                    MetricData=batch,
                )
            logger.debug(f"Published {len(metric_data)} metrics to CloudWatch")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish metrics: {e}")
        finally:
            self.metric_buffer.clear()

    def shutdown(self) -> None:
        """Flush remaining metrics on shutdown."""
        self.flush()
