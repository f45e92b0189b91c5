"""
Shared metrics configuration for the TreeShop access gateway.
"""

from prometheus_client import Counter, Gauge, Histogram, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Callable, Optional
import threading


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns a registry so several apps can live in one process
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

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

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "gateway":
            self._setup_gateway_metrics()

    def _setup_gateway_metrics(self):
        """Set up gateway-specific metrics."""
        self._metrics["rate_limit_decisions_total"] = Counter(
            "rate_limit_decisions_total",
            "Rate limit decisions by outcome",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["rate_limit_tracked_keys"] = Gauge(
            "rate_limit_tracked_keys",
            "Client keys currently held in the quota table",
            registry=self.registry
        )

        self._metrics["rate_limit_evictions_total"] = Counter(
            "rate_limit_evictions_total",
            "Expired quota records evicted by the sweeper",
            registry=self.registry
        )

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

    def record_rate_limit_decision(self, allowed: bool):
        """Count an allow/deny decision from the gate."""
        metric = self._metrics.get("rate_limit_decisions_total")
        if metric is not None:
            metric.labels(outcome="allowed" if allowed else "denied").inc()

    def track_keys(self, source: Callable[[], int]):
        """Report the quota table size, read from ``source`` at scrape time."""
        metric = self._metrics.get("rate_limit_tracked_keys")
        if metric is not None:
            metric.set_function(source)

    def record_evictions(self, count: int):
        metric = self._metrics.get("rate_limit_evictions_total")
        if metric is not None and count > 0:
            metric.inc(count)

    def render(self) -> bytes:
        """Render the registry in Prometheus text exposition format."""
        with self._lock:
            return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
