"""
Shared metrics configuration for the permissions engine.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import Counter, Histogram, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for permission checks."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up permission metrics."""
        with self._lock:
            self._metrics["permission_checks_total"] = Counter(
                "permission_checks_total",
                "Total permission checks",
                ["decision"],
                registry=self.registry
            )

            self._metrics["permission_check_duration_seconds"] = Histogram(
                "permission_check_duration_seconds",
                "Permission check duration in seconds",
                registry=self.registry
            )

            self._metrics["condition_failures_total"] = Counter(
                "condition_failures_total",
                "Total grants removed by a failing condition",
                ["condition_type"],
                registry=self.registry
            )

            # Error metrics
            self._metrics["errors_total"] = Counter(
                "errors_total",
                "Total errors",
                ["error_type", "service"],
                registry=self.registry
            )

    def record_permission_check(self, allowed: bool, duration: float):
        """Record the outcome and latency of one permission check."""
        decision = "allow" if allowed else "deny"
        self._metrics["permission_checks_total"].labels(decision=decision).inc()
        self._metrics["permission_check_duration_seconds"].observe(duration)

    def record_condition_failure(self, condition_type: str):
        """Record a grant removed by a failing condition."""
        self._metrics["condition_failures_total"].labels(condition_type=condition_type).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
