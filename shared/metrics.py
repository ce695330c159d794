"""
Shared metrics configuration for the Signed Request Guard.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_guard_metrics()

    def _setup_guard_metrics(self):
        """Set up signature and governance metrics."""
        self._metrics["signature_verifications_total"] = Counter(
            "signature_verifications_total",
            "Total signature verifications",
            ["outcome", "reason"],
            registry=self.registry
        )

        self._metrics["signature_verification_duration_seconds"] = Histogram(
            "signature_verification_duration_seconds",
            "Signature verification duration in seconds",
            buckets=(0.0005, 0.001, 0.002, 0.005, 0.010, 0.050),
            registry=self.registry
        )

        self._metrics["governance_decisions_total"] = Counter(
            "governance_decisions_total",
            "Total governance decisions",
            ["endpoint", "decision"],
            registry=self.registry
        )

        self._metrics["in_flight_requests"] = Gauge(
            "in_flight_requests",
            "Admitted requests that have not been released",
            ["endpoint"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_verification(self, outcome: str, reason: str):
        """Record a signature verification outcome."""
        self._metrics["signature_verifications_total"].labels(outcome=outcome, reason=reason).inc()

    def record_governance_decision(self, endpoint: str, decision: str):
        """Record an admission decision."""
        self._metrics["governance_decisions_total"].labels(endpoint=endpoint, decision=decision).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            if operation_name in self._metrics:
                metric = self._metrics[operation_name]
                if labels:
                    metric = metric.labels(**labels)
                metric.observe(duration)

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).set(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
