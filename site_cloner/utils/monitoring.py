"""
Prometheus metrics for clone jobs.
"""

import logging
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class CrawlerMonitor:
    """
    Per-job metrics kept in their own CollectorRegistry so concurrent jobs
    never share counters.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.registry = registry or CollectorRegistry()

        self.resources_fetched = Counter(
            'site_cloner_resources_fetched_total',
            'Resources fetched and written to the mirror',
            ['kind'],
            registry=self.registry
        )
        self.fetch_failures = Counter(
            'site_cloner_fetch_failures_total',
            'Resources omitted from the mirror',
            ['kind', 'error_type'],
            registry=self.registry
        )
        self.bytes_written = Counter(
            'site_cloner_bytes_written_total',
            'Bytes written to the mirror',
            registry=self.registry
        )
        self.response_time = Histogram(
            'site_cloner_response_time_seconds',
            'Response time for HTTP requests',
            registry=self.registry
        )
        self.frontier_size = Gauge(
            'site_cloner_frontier_size',
            'Pages in the current depth layer',
            registry=self.registry
        )
        self.depth = Gauge(
            'site_cloner_depth',
            'Depth layer currently being processed',
            registry=self.registry
        )

    def start_server(self, port: int):
        """Expose this registry over HTTP."""
        start_http_server(port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {port}")

    def record_fetched(self, kind: str, size: int, response_time: float):
        self.resources_fetched.labels(kind=kind).inc()
        self.bytes_written.inc(size)
        self.response_time.observe(response_time)

    def record_failure(self, kind: str, error_type: str):
        self.fetch_failures.labels(kind=kind, error_type=error_type).inc()

    def update_layer(self, depth: int, frontier_size: int):
        self.depth.set(depth)
        self.frontier_size.set(frontier_size)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of one sample, 0.0 if it was never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return value or 0.0
