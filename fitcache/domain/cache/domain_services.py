"""
Cache Domain Services

Business logic services for the freshness cache.
Single-flight loading, optimistic mutation, invalidation and change
publication, orchestrated over the domain repository.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from opentelemetry import trace

from .entities import CacheDomain, CacheEntry, DomainEvent, MutationIntent
from .exceptions import ConfigurationError, LoadError
from .repository_interfaces import Clock, DomainRepository
from .value_objects import EventKind, Freshness, WriteSource

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

LoadObserver = Callable[[str, float, Optional[BaseException]], None]


class EntryPublisher:
    """
    Installs entries and fans the change out to subscribers.

    Values structurally equal to the one already cached are installed
    silently: subscribers are not notified. The exception is an entry that
    was invalidated, whose subscribers get a REVALIDATED event so they can
    drop the STALE marker.
    """

    def __init__(self, repository: DomainRepository):
        self.repository = repository

    def publish(
        self,
        name: str,
        entry: CacheEntry[Any],
        source: WriteSource,
        kind: EventKind,
    ) -> bool:
        """Install ``entry`` and notify subscribers; returns True if notified."""
        domain = self.repository.domain(name)
        previous = self.repository.install(name, entry, source)

        if (
            kind is not EventKind.INVALIDATED
            and previous is not None
            and domain.same_value(previous.value, entry.value)
        ):
            if not previous.explicitly_stale:
                domain.stats.suppressed_notifications += 1
                logger.debug(
                    f"Suppressed unchanged {kind.value} notification for {name}",
                    extra={"domain": name, "source": source.value},
                )
                return False
            # Subscribers were told STALE; only the classification changed.
            kind = EventKind.REVALIDATED

        classification = (
            Freshness.STALE if kind is EventKind.INVALIDATED else Freshness.FRESH
        )
        self.notify(domain, DomainEvent(name, kind, classification, entry.value))
        return True

    def notify(self, domain: CacheDomain, event: DomainEvent) -> None:
        """Deliver an event to every subscriber of ``domain``.

        A failing subscriber is logged and does not stop delivery to the rest.
        """
        for callback in list(domain.subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Cache subscriber raised",
                    extra={"domain": domain.name, "event": event.kind.value},
                )
        domain.stats.notifications += 1


class SingleFlightGuard:
    """
    At most one outstanding load per domain.

    ``release`` is unconditional and must run on every load outcome.
    """

    def __init__(self, repository: DomainRepository):
        self.repository = repository

    def acquire(self, name: str) -> bool:
        """Return True if a load is already in flight for ``name``."""
        return self.repository.domain(name).is_in_flight()

    def attach(self, name: str, task: "asyncio.Task[Any]") -> None:
        self.repository.domain(name).in_flight = task

    def in_flight(self, name: str) -> Optional["asyncio.Task[Any]"]:
        domain = self.repository.domain(name)
        return domain.in_flight if domain.is_in_flight() else None

    def release(self, name: str) -> None:
        self.repository.domain(name).in_flight = None


class LoadCoordinator:
    """
    Runs domain loaders under the single-flight guard.

    A successful result is installed unconditionally, superseding any
    optimistic value present. Failures leave the entry untouched.
    """

    def __init__(
        self,
        repository: DomainRepository,
        guard: SingleFlightGuard,
        publisher: EntryPublisher,
        clock: Clock,
        observer: Optional[LoadObserver] = None,
    ):
        self.repository = repository
        self.guard = guard
        self.publisher = publisher
        self.clock = clock
        self.observer = observer
        self._background: Set["asyncio.Task[Any]"] = set()

    def start(self, name: str) -> "asyncio.Task[Any]":
        """Return the in-flight load for ``name``, starting one if needed."""
        if self.guard.acquire(name):
            return self.guard.in_flight(name)

        domain = self.repository.domain(name)
        if domain.loader is None:
            raise ConfigurationError(
                f"No loader registered for domain '{name}'", domain=name
            )

        task = asyncio.get_running_loop().create_task(
            self._run(domain), name=f"fitcache-load:{name}"
        )
        self.guard.attach(name, task)
        task.add_done_callback(self._retrieve_outcome)
        return task

    async def load(self, name: str) -> Any:
        """Blocking load: await the shared task, surfacing LoadError."""
        task = self.start(name)
        # A cancelled waiter must not cancel the load shared with other readers.
        return await asyncio.shield(task)

    def revalidate(self, name: str) -> bool:
        """Background load; returns False if one was already in flight."""
        if self.guard.acquire(name):
            return False
        task = self.start(name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def _run(self, domain: CacheDomain) -> Any:
        name = domain.name
        started = time.perf_counter()
        with tracer.start_as_current_span("cache.load") as span:
            span.set_attribute("domain", name)
            try:
                value = await domain.loader(name)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                domain.stats.load_failures += 1
                domain.stats.last_failure_at = self.clock()
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                self._observe(name, started, e)
                raise LoadError(name, original_error=e) from e
            else:
                now = self.clock()
                domain.stats.loads += 1
                domain.stats.last_load_at = now
                notified = self.publisher.publish(
                    name,
                    CacheEntry.installed(value, now),
                    WriteSource.LOADER,
                    EventKind.LOADED,
                )
                span.set_attribute("notified", notified)
                self._observe(name, started, None)
                return value
            finally:
                self.guard.release(name)

    def _observe(
        self, name: str, started: float, error: Optional[BaseException]
    ) -> None:
        if self.observer is not None:
            self.observer(name, time.perf_counter() - started, error)

    @staticmethod
    def _retrieve_outcome(task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            details = getattr(error, "details", {})
            logger.warning(
                f"Cache load failed: {error}",
                extra={"domain": details.get("domain"), "error": str(error)},
            )


class OptimisticMutator:
    """
    Applies local, unacknowledged transforms before any remote round-trip.

    Transforms run against every targeted domain first and only then are
    the results installed, so a raising transform leaves every domain as it
    was. A domain with no entry is populated: its transform receives None.
    Loader results installed later always supersede these values.
    """

    def __init__(
        self, repository: DomainRepository, publisher: EntryPublisher, clock: Clock
    ):
        self.repository = repository
        self.publisher = publisher
        self.clock = clock

    def apply(self, intent: MutationIntent, now: Optional[float] = None) -> List[str]:
        """Apply ``intent``; returns the domains that were updated."""
        with tracer.start_as_current_span("cache.mutate_optimistic") as span:
            span.set_attribute("domain_count", len(intent.domains))
            stamp = self.clock() if now is None else now

            pending: Dict[str, Any] = {}
            for name, transform in intent.transforms.items():
                domain = self.repository.get(name)
                current = None
                if domain is not None and domain.entry is not None:
                    current = domain.entry.value
                else:
                    logger.debug(
                        f"Populating empty domain {name} optimistically",
                        extra={"domain": name},
                    )
                pending[name] = transform(current)

            for name, value in pending.items():
                self.repository.domain(name).stats.optimistic_mutations += 1
                self.publisher.publish(
                    name,
                    CacheEntry.installed(value, stamp),
                    WriteSource.OPTIMISTIC,
                    EventKind.OPTIMISTIC,
                )

            applied = list(pending)
            span.set_attribute("applied_count", len(applied))
            logger.info(
                f"Applied optimistic update to {len(applied)} domains",
                extra={"domains": applied},
            )
            return applied


class CacheInvalidationService:
    """
    Domain service for explicit invalidation.

    Marks entries stale without discarding their values, so the next read
    serves the old value and revalidates instead of blocking.
    """

    def __init__(self, repository: DomainRepository, publisher: EntryPublisher):
        self.repository = repository
        self.publisher = publisher

    def invalidate(self, names: Sequence[str], reason: str = "write") -> List[str]:
        """
        Invalidate the given domains.

        Args:
            names: Domains to mark stale
            reason: Reason for invalidation (for logging)

        Returns:
            Domains that held an entry and were marked stale
        """
        with tracer.start_as_current_span("cache.invalidate") as span:
            span.set_attribute("domain_count", len(names))
            span.set_attribute("reason", reason)

            invalidated: List[str] = []
            for name in names:
                domain = self.repository.domain(name)
                if domain.entry is None:
                    continue
                domain.stats.invalidations += 1
                self.publisher.publish(
                    name,
                    domain.entry.mark_stale(),
                    WriteSource.INVALIDATION,
                    EventKind.INVALIDATED,
                )
                invalidated.append(name)

            span.set_attribute("invalidated_count", len(invalidated))
            logger.info(
                f"Invalidated {len(invalidated)} cache domains",
                extra={"domains": invalidated, "reason": reason},
            )
            return invalidated
