"""
Cache Manager Service

High-level cache service that orchestrates the domain registry and the
domain services: stale-while-revalidate reads, single-flight loading,
optimistic mutation, invalidation and subscriptions.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import structlog
from opentelemetry import trace

from ...constants import APP_NAME, APP_VERSION
from ...core.config import Settings, get_settings
from ...domain.cache.domain_services import (
    CacheInvalidationService,
    EntryPublisher,
    LoadCoordinator,
    OptimisticMutator,
    SingleFlightGuard,
)
from ...domain.cache.entities import (
    CacheDomain,
    CacheEntry,
    Comparator,
    MutationIntent,
    ReadResult,
    Subscriber,
    Transform,
)
from ...domain.cache.exceptions import ConfigurationError, LoadError
from ...domain.cache.repository_interfaces import Clock, Loader
from ...domain.cache.value_objects import DomainSnapshot, Freshness, FreshnessPolicy
from ...infrastructure.registry import CacheRegistry
from ...monitoring.cache_metrics import CacheMetricsCollector

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``subscribe``; cancel it when the screen unmounts."""

    manager: "CacheManager"
    domain: str
    callback: Subscriber

    def cancel(self) -> bool:
        return self.manager.unsubscribe(self.domain, self.callback)


class CacheManager:
    """
    High-level cache management service.

    Provides the interface screens use: read, subscribe, mutate_optimistic
    and invalidate. Every entry write goes through the registry's install
    gate via the loader, the optimistic mutator or the invalidator.
    """

    def __init__(
        self,
        registry: Optional[CacheRegistry] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
        metrics: Optional[CacheMetricsCollector] = None,
    ):
        self.settings = settings or get_settings()
        self.clock: Clock = clock or time.monotonic
        self.registry = registry or CacheRegistry(
            default_policy=self.settings.default_policy,
            policy_for=self.settings.policy_for,
        )
        self.metrics = metrics or CacheMetricsCollector(
            enabled=self.settings.CACHE_METRICS_ENABLED
        )
        self.metrics.track_in_flight(
            lambda: sum(1 for domain in self.registry if domain.is_in_flight())
        )

        self.publisher = EntryPublisher(self.registry)
        self.guard = SingleFlightGuard(self.registry)
        self.loads = LoadCoordinator(
            self.registry,
            self.guard,
            self.publisher,
            self.clock,
            observer=self.metrics.record_load,
        )
        self.mutator = OptimisticMutator(self.registry, self.publisher, self.clock)
        self.invalidation_service = CacheInvalidationService(
            self.registry, self.publisher
        )

    def now(self) -> float:
        return self.clock()

    # Domain Registration

    def register(
        self,
        name: str,
        loader: Optional[Loader] = None,
        policy: Optional[FreshnessPolicy] = None,
        comparator: Optional[Comparator] = None,
    ) -> CacheDomain:
        """
        Register a domain's loader, policy and comparator.

        Args:
            name: Domain name
            loader: Async callable returning the domain's canonical value
            policy: Freshness policy (resolved from settings if omitted)
            comparator: Structural equality used for change detection

        Returns:
            The registered domain
        """
        return self.registry.register(name, loader, policy, comparator)

    # Read Path

    def classify(self, name: str, now: Optional[float] = None) -> Freshness:
        """Classify a domain without touching counters or starting loads."""
        stamp = self.clock() if now is None else now
        return self.registry.domain(name).classify(stamp)

    def peek(self, name: str) -> Optional[CacheEntry[Any]]:
        """Current entry for ``name``, regardless of freshness."""
        domain = self.registry.get(name)
        return domain.entry if domain else None

    def is_loading(self, name: str) -> bool:
        domain = self.registry.get(name)
        return bool(domain and domain.is_in_flight())

    def in_flight(self, name: str) -> Optional["asyncio.Task[Any]"]:
        """The outstanding load for ``name``, if any."""
        if name not in self.registry:
            return None
        return self.guard.in_flight(name)

    def has_loader(self, name: str) -> bool:
        domain = self.registry.get(name)
        return bool(domain and domain.loader is not None)

    async def read(self, name: str, now: Optional[float] = None) -> ReadResult[Any]:
        """
        Stale-while-revalidate read.

        FRESH serves the cached value. STALE serves the cached value and
        starts a background revalidation. MISSING awaits the in-flight load
        (or starts one) and serves its result.

        Args:
            name: Domain name
            now: Classification time (defaults to the clock)

        Returns:
            Classification observed at read time and the served value

        Raises:
            LoadError: If a blocking (MISSING) load fails
        """
        with tracer.start_as_current_span("cache_manager.read") as span:
            span.set_attribute("domain", name)

            stamp = self.clock() if now is None else now
            domain = self.registry.domain(name)
            classification = domain.classify(stamp)
            domain.stats.record_read(classification)
            self.metrics.record_read(name, classification)
            span.set_attribute("classification", classification.value)

            if classification is Freshness.FRESH:
                return ReadResult(name, classification, domain.entry.value)

            if classification is Freshness.STALE:
                if domain.loader is not None:
                    started = self.loads.revalidate(name)
                    span.set_attribute("revalidation_started", started)
                return ReadResult(name, classification, domain.entry.value)

            if domain.loader is None:
                logger.debug("Read of missing domain without loader", domain=name)
                return ReadResult(name, classification, None)

            span.set_attribute("joined_in_flight", domain.is_in_flight())
            try:
                value = await self.loads.load(name)
            except LoadError as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            return ReadResult(name, classification, value, loaded=True)

    def revalidate(self, name: str) -> bool:
        """Start a background load unless one is in flight or no loader exists."""
        if not self.has_loader(name):
            return False
        return self.loads.revalidate(name)

    # Subscriptions

    def subscribe(self, name: str, callback: Subscriber) -> Subscription:
        """Receive every change event for ``name``."""
        self.registry.domain(name).add_subscriber(callback)
        return Subscription(self, name, callback)

    def unsubscribe(self, name: str, callback: Subscriber) -> bool:
        domain = self.registry.get(name)
        if domain is None:
            return False
        return domain.remove_subscriber(callback)

    # Write Path

    def mutate_optimistic(
        self,
        domains: Sequence[str],
        transform: Union[Transform, Mapping[str, Transform]],
        now: Optional[float] = None,
    ) -> List[str]:
        """
        Apply a local, unacknowledged update to one or more domains.

        Args:
            domains: Domains affected by the user action
            transform: One pure function for all domains, or a mapping of
                domain name to its own pure function; an empty domain is
                populated from ``transform(None)``
            now: Timestamp for the provisional entries

        Returns:
            Domains that were updated

        Raises:
            ConfigurationError: If a transform mapping misses a listed domain
        """
        if isinstance(transform, Mapping):
            for name in domains:
                if name not in transform:
                    raise ConfigurationError(
                        f"No optimistic transform given for domain '{name}'",
                        domain=name,
                    )
            intent = MutationIntent(
                transforms={name: transform[name] for name in domains}
            )
        else:
            intent = MutationIntent.uniform(domains, transform)
        return self.apply(intent, now=now)

    def apply(self, intent: MutationIntent, now: Optional[float] = None) -> List[str]:
        applied = self.mutator.apply(intent, now=now)
        for name in applied:
            self.metrics.record_optimistic(name)
        return applied

    def invalidate(
        self,
        domains: Sequence[str],
        revalidate: bool = False,
        reason: str = "write",
    ) -> List[str]:
        """
        Mark domains explicitly stale without discarding their values.

        Args:
            domains: Domains to invalidate
            revalidate: Also start background loads for the invalidated domains
            reason: Reason for invalidation (for logging)

        Returns:
            Domains that held a value and were invalidated
        """
        invalidated = self.invalidation_service.invalidate(domains, reason=reason)
        for name in invalidated:
            self.metrics.record_invalidation(name)
            if revalidate:
                self.revalidate(name)
        return invalidated

    # Monitoring

    def stats(self, name: str, now: Optional[float] = None) -> DomainSnapshot:
        stamp = self.clock() if now is None else now
        return DomainSnapshot(**self.registry.domain(name).describe(stamp))

    def snapshot(self, now: Optional[float] = None) -> List[DomainSnapshot]:
        stamp = self.clock() if now is None else now
        return [DomainSnapshot(**domain.describe(stamp)) for domain in self.registry]

    def health_check(self) -> Dict[str, Any]:
        """Summarise cache state for diagnostics."""
        snapshots = self.snapshot()
        by_class: Dict[str, int] = {state.value: 0 for state in Freshness}
        for snap in snapshots:
            by_class[snap.classification.value] += 1

        failures = sum(snap.load_failures for snap in snapshots)
        return {
            "status": "healthy",
            "service": APP_NAME,
            "version": APP_VERSION,
            "environment": self.settings.ENVIRONMENT,
            "domains": len(snapshots),
            "classifications": by_class,
            "loads_in_flight": sum(1 for snap in snapshots if snap.in_flight),
            "loads": sum(snap.loads for snap in snapshots),
            "load_failures": failures,
            "hit_rate": {snap.domain: snap.hit_rate for snap in snapshots},
        }
