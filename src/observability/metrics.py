"""
Prometheus metrics collection for the feedback auto-responder

This module provides metrics instrumentation for monitoring review
processing, vendor API health, and storage health.

Metrics live on an explicitly constructed FeedbackMetrics handle with its
own registry; components receive the handle at construction time instead
of reaching for module-level collectors.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


# Processed review statuses
STATUS_ANSWERED = "answered"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

# Vendor API label
API_WB = "wb"


class FeedbackMetrics:
    """
    Metrics handle for review processing.

    Each instance owns a CollectorRegistry, so independent instances (one per
    process, or one per test) never collide on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics handle.

        Args:
            registry: Registry to register collectors in (a fresh one if None)
        """
        self.registry = registry or CollectorRegistry()

        # Tenants with a running scheduler
        self.active_users = Gauge(
            name="feedback_bot_active_users_total",
            documentation="Total number of active users with configured services",
            registry=self.registry,
        )

        self.processed_feedbacks = Counter(
            name="feedback_bot_processed_feedbacks_total",
            documentation="Total number of processed feedbacks",
            labelnames=["user_id", "status"],  # status: answered, skipped, failed
            registry=self.registry,
        )

        self.rate_limit_hits = Counter(
            name="feedback_bot_rate_limit_hits_total",
            documentation="Total number of requests delayed by the outbound rate limiter",
            labelnames=["user_id"],
            registry=self.registry,
        )

        self.database_errors = Counter(
            name="feedback_bot_database_errors_total",
            documentation="Total number of database errors",
            labelnames=["operation"],  # operation: exists, save, get_config, save_config
            registry=self.registry,
        )

        self.api_errors = Counter(
            name="feedback_bot_api_errors_total",
            documentation="Total number of API errors",
            labelnames=["api", "operation"],  # operation: fetch, answer
            registry=self.registry,
        )

        self.cycle_duration_seconds = Histogram(
            name="feedback_bot_cycle_duration_seconds",
            documentation="Time spent in one processing cycle in seconds",
            labelnames=["user_id"],
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0],
            registry=self.registry,
        )

    def set_active_users(self, count: int) -> None:
        self.active_users.set(count)

    def record_processed(self, tenant_id: int | str, status: str, value: int = 1) -> None:
        """
        Record processed reviews for a tenant.

        Args:
            tenant_id: Tenant identifier
            status: One of answered, skipped, failed
            value: Amount to increment (zero is a no-op)
        """
        if value <= 0:
            return
        self.processed_feedbacks.labels(user_id=str(tenant_id), status=status).inc(value)

    def record_rate_limit_hit(self, tenant_id: int | str | None) -> None:
        self.rate_limit_hits.labels(user_id=str(tenant_id) if tenant_id is not None else "").inc()

    def record_database_error(self, operation: str) -> None:
        self.database_errors.labels(operation=operation).inc()

    def record_api_error(self, operation: str, api: str = API_WB) -> None:
        self.api_errors.labels(api=api, operation=operation).inc()

    def observe_cycle_duration(self, tenant_id: int | str, duration_seconds: float) -> None:
        self.cycle_duration_seconds.labels(user_id=str(tenant_id)).observe(duration_seconds)

    def get_value(self, name: str, labels: Optional[dict] = None) -> float:
        """
        Read a sample value from this handle's registry (0.0 if absent).

        Args:
            name: Sample name, e.g. "feedback_bot_api_errors_total"
            labels: Label values of the sample
        """
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def generate(self) -> bytes:
        """
        Generate Prometheus metrics in text format

        Returns:
            Metrics in Prometheus text format
        """
        return generate_latest(self.registry)


def get_content_type() -> str:
    """
    Get content type for Prometheus metrics

    Returns:
        Content type string
    """
    return CONTENT_TYPE_LATEST


def start_metrics_server(metrics: FeedbackMetrics, port: Optional[int] = None):
    """
    Start HTTP server for Prometheus metrics

    Args:
        metrics: Metrics handle whose registry is exposed
        port: Port to listen on (defaults to env var METRICS_PORT or 8080)

    Returns:
        Tuple of (server, thread) so the caller can shut the server down
    """
    # Lazy import: HTTP server only needed when the metrics endpoint is enabled
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8080"))
    return start_http_server(metrics_port, registry=metrics.registry)
