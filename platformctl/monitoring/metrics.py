#!/usr/bin/env python3
"""
Prometheus metrics for platformctl.

The heartbeat reports per container health here and the starters report
how long containers took to come up. Metrics live in a registry owned by
the manager instance so several platforms (or tests) can coexist in one
process.
"""

import logging
from typing import Dict, Any, List, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

STARTUP_BUCKETS = (1, 5, 10, 30, 60, 120, 300, 600)


class MetricsManager:
    """
    Creates and updates the platform's Prometheus metrics.

    Attributes:
        metrics (Dict[str, Any]): Registered metrics by short name.
        prefix (str): Prefix for all metric names.
        registry (CollectorRegistry): Registry the metrics are exported from.
    """

    def __init__(self, prefix: str = "platformctl", registry: Optional[CollectorRegistry] = None):
        self.metrics = {}  # type: Dict[str, Any]
        self.prefix = prefix
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger("platformctl.metrics")

        self.create_gauge('container_healthy', 'Last health check result (1 healthy, 0 unhealthy)', ['container'])
        self.create_counter('heartbeat_rounds', 'Completed heartbeat rounds')
        self.create_counter(
            'health_threshold_breaches', 'Consecutive failure threshold breaches', ['container']
        )
        self.create_histogram(
            'container_startup_seconds', 'Time from start request to readiness', ['kind'], STARTUP_BUCKETS
        )

    def start_server(self, port: int = 9100) -> None:
        """
        Start the Prometheus metrics HTTP server.

        Args:
            port: HTTP port to listen on
        """
        self.logger.info(f"Starting Prometheus metrics server on port {port}")
        start_http_server(port, registry=self.registry)

    def _full_name(self, name: str) -> str:
        return f"{self.prefix}_{name}"

    def create_counter(self, name: str, description: str, labels: Optional[List[str]] = None) -> Counter:
        counter = Counter(self._full_name(name), description, labels or [], registry=self.registry)
        self.metrics[name] = counter
        self.logger.debug(f"Created counter {self._full_name(name)}")
        return counter

    def create_gauge(self, name: str, description: str, labels: Optional[List[str]] = None) -> Gauge:
        gauge = Gauge(self._full_name(name), description, labels or [], registry=self.registry)
        self.metrics[name] = gauge
        self.logger.debug(f"Created gauge {self._full_name(name)}")
        return gauge

    def create_histogram(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ) -> Histogram:
        kwargs = {"buckets": buckets} if buckets else {}
        histogram = Histogram(
            self._full_name(name), description, labels or [], registry=self.registry, **kwargs
        )
        self.metrics[name] = histogram
        self.logger.debug(f"Created histogram {self._full_name(name)}")
        return histogram

    def get_metric(self, name: str) -> Optional[Any]:
        return self.metrics.get(name)

    def record_health(self, container: str, healthy: bool) -> None:
        self.metrics['container_healthy'].labels(container=container).set(1 if healthy else 0)

    def record_heartbeat_round(self) -> None:
        self.metrics['heartbeat_rounds'].inc()

    def record_threshold_breach(self, container: str) -> None:
        self.metrics['health_threshold_breaches'].labels(container=container).inc()

    def observe_startup(self, kind: str, seconds: float) -> None:
        self.metrics['container_startup_seconds'].labels(kind=kind).observe(seconds)

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Current value of a sample, e.g. sample('heartbeat_rounds_total')."""
        return self.registry.get_sample_value(self._full_name(name), labels or {})
