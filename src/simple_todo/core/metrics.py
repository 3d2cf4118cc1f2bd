"""
Prometheus metrics collection.

In-memory counters and histograms on a per-app registry; Prometheus
handles storage.
"""

import time
from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for the Simple Todo API.

    Each collector owns its registry so several apps (e.g. in tests) can
    coexist in one process.
    """

    def __init__(self, version: str = "1.0.0", registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.service_info = Info(
            "simple_todo_service",
            "Simple Todo API service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": version,
            "service": "simple-todo-api",
        })

        # Request metrics
        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        # Auth metrics
        self.auth_operations_total = Counter(
            "auth_operations_total",
            "Authentication operations by outcome",
            ["operation", "outcome"],
            registry=self.registry,
        )

        self.rate_limited_total = Counter(
            "rate_limited_requests_total",
            "Requests rejected by the rate limiter",
            ["scope"],
            registry=self.registry,
        )

        # Audit metrics
        self.audit_events_total = Counter(
            "audit_events_total",
            "Audit log entries written",
            ["action", "sink"],
            registry=self.registry,
        )

        self.audit_failures_total = Counter(
            "audit_failures_total",
            "Audit log writes that failed and were dropped",
            ["sink"],
            registry=self.registry,
        )

        # Provider metrics
        self.provider_requests_total = Counter(
            "provider_requests_total",
            "Calls made to the hosted auth provider",
            ["operation", "outcome"],
            registry=self.registry,
        )

        self.provider_request_duration = Histogram(
            "provider_request_duration_seconds",
            "Hosted auth provider call duration in seconds",
            ["operation"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        self.uptime_seconds = Gauge(
            "uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )

        self._start_time = time.time()

    def record_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_seconds: float
    ) -> None:
        """Record HTTP request metrics."""
        self.requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self.request_duration.labels(
            method=method,
            endpoint=endpoint
        ).observe(duration_seconds)

    def record_auth_operation(self, operation: str, outcome: str) -> None:
        """Record a register/login/recover/reset/logout outcome."""
        self.auth_operations_total.labels(operation=operation, outcome=outcome).inc()

    def record_rate_limited(self, scope: str) -> None:
        self.rate_limited_total.labels(scope=scope).inc()

    def record_audit_event(self, action: str, sink: str) -> None:
        self.audit_events_total.labels(action=action, sink=sink).inc()

    def record_audit_failure(self, sink: str) -> None:
        self.audit_failures_total.labels(sink=sink).inc()

    def record_provider_call(self, operation: str, outcome: str, duration_seconds: float) -> None:
        """Record a hosted provider call."""
        self.provider_requests_total.labels(operation=operation, outcome=outcome).inc()
        self.provider_request_duration.labels(operation=operation).observe(duration_seconds)

    def update_uptime(self) -> None:
        self.uptime_seconds.set(time.time() - self._start_time)
