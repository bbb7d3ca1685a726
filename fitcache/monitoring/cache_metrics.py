"""
Cache Metrics Collector

Prometheus metrics for the freshness cache: read classifications, loads,
optimistic writes and invalidations, labelled per domain.
Each collector owns its registry so independent caches never share series.
"""

from typing import Callable, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
import structlog

from ..domain.cache.value_objects import Freshness

logger = structlog.get_logger(__name__)


class CacheMetricsCollector:
    """
    Prometheus-compatible cache metrics.

    Features:
    - Read classification counters (fresh / stale / missing)
    - Load outcomes and load duration histogram
    - Optimistic mutation and invalidation counters
    - In-flight load gauge
    """

    def __init__(self, enabled: bool = True, registry: Optional[CollectorRegistry] = None):
        self.enabled = enabled
        self.registry = registry or CollectorRegistry()

        self.prom_reads_total = Counter(
            "fitcache_reads_total",
            "Total number of cache reads by classification",
            ["domain", "classification"],
            registry=self.registry,
        )

        self.prom_loads_total = Counter(
            "fitcache_loads_total",
            "Total number of loader invocations by outcome",
            ["domain", "success"],
            registry=self.registry,
        )

        self.prom_load_duration_seconds = Histogram(
            "fitcache_load_duration_seconds",
            "Loader execution time in seconds",
            ["domain"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        self.prom_optimistic_mutations_total = Counter(
            "fitcache_optimistic_mutations_total",
            "Total number of optimistic updates applied",
            ["domain"],
            registry=self.registry,
        )

        self.prom_invalidations_total = Counter(
            "fitcache_invalidations_total",
            "Total number of explicit invalidations",
            ["domain"],
            registry=self.registry,
        )

        self.prom_loads_in_flight = Gauge(
            "fitcache_loads_in_flight",
            "Number of loads currently in flight",
            registry=self.registry,
        )

    def record_read(self, domain: str, classification: Freshness) -> None:
        if not self.enabled:
            return
        self.prom_reads_total.labels(
            domain=domain, classification=classification.value
        ).inc()

    def track_in_flight(self, count: Callable[[], int]) -> None:
        """Sample the number of outstanding loads at scrape time."""
        self.prom_loads_in_flight.set_function(count)

    def record_load(
        self, domain: str, duration_seconds: float, error: Optional[BaseException]
    ) -> None:
        if not self.enabled:
            return
        self.prom_loads_total.labels(
            domain=domain, success=str(error is None).lower()
        ).inc()
        self.prom_load_duration_seconds.labels(domain=domain).observe(
            duration_seconds
        )
        if error is not None:
            logger.debug(
                "Recorded failed load",
                domain=domain,
                duration_seconds=duration_seconds,
                error_type=type(error).__name__,
            )

    def record_optimistic(self, domain: str) -> None:
        if self.enabled:
            self.prom_optimistic_mutations_total.labels(domain=domain).inc()

    def record_invalidation(self, domain: str) -> None:
        if self.enabled:
            self.prom_invalidations_total.labels(domain=domain).inc()

    def sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Current value of one sample, 0.0 if never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return value or 0.0

    def export(self) -> bytes:
        """Prometheus text exposition of every metric."""
        return generate_latest(self.registry)
