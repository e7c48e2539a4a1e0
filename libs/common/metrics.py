"""Metrics collection for the search gateway.

Provides a thin convenience wrapper around ``prometheus_client`` so the
gateway records HTTP, federated search and per-domain backend metrics with
consistent label sets.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per collector (can be injected for tests)
- Domain labels are the three logical domains, never physical index ids
- HTTP endpoint labels are route templates, so unmatched paths share one label
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection for gateway services.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.search_requests = Counter(
            'search_requests_total',
            'Total federated search requests partitioned by outcome',
            ['outcome'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'search_duration_seconds',
            'Federated search duration',
            ['domain_count'],
            registry=self.registry
        )

        self.domain_queries = Counter(
            'search_domain_queries_total',
            'Total per-domain backend queries partitioned by outcome',
            ['domain', 'outcome'],
            registry=self.registry
        )

        self.domain_query_duration = Histogram(
            'search_domain_query_duration_seconds',
            'Per-domain backend query duration',
            ['domain'],
            registry=self.registry
        )

        self.partial_failures = Counter(
            'search_partial_failures_total',
            'Requests answered with at least one failed domain',
            registry=self.registry
        )

        self.domain_queries_in_flight = Gauge(
            'search_domain_queries_in_flight',
            'Backend queries currently outstanding per domain',
            ['domain'],
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_search(self, outcome: str, domain_count: int, duration: float) -> None:
        """Record one federated search (``ok``, ``partial`` or an error code)."""
        self.search_requests.labels(outcome=outcome).inc()
        self.search_duration.labels(domain_count=str(domain_count)).observe(duration)
        if outcome == "partial":
            self.partial_failures.inc()

    def record_domain_query(self, domain: str, outcome: str, duration: float) -> None:
        """Record one backend call for one domain."""
        self.domain_queries.labels(domain=domain, outcome=outcome).inc()
        self.domain_query_duration.labels(domain=domain).observe(duration)

    def track_domain_query(self, domain: str) -> Gauge:
        """Per-domain in-flight gauge; wrap a backend call in ``.track_inprogress()``."""
        return self.domain_queries_in_flight.labels(domain=domain)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create the metrics collector for a service.

    Returns a process-wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
