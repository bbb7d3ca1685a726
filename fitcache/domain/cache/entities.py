"""
Cache Domain Entities

Core domain entities for the freshness cache.
Entries are immutable snapshots; a domain owns the current one plus its
in-flight load, subscribers and counters.
"""

from __future__ import annotations

import asyncio
import operator
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

from .exceptions import ConfigurationError
from .value_objects import DomainName, EventKind, Freshness, FreshnessPolicy

T = TypeVar("T")

Comparator = Callable[[Any, Any], bool]
Transform = Callable[[Any], Any]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """
    Immutable cache entry.

    Always replaced wholesale, never mutated field-by-field.
    """

    value: T
    fetched_at: float
    explicitly_stale: bool = False

    @classmethod
    def installed(cls, value: T, now: float) -> "CacheEntry[T]":
        """Create a fresh, non-stale entry stamped at ``now``."""
        return cls(value=value, fetched_at=now, explicitly_stale=False)

    def mark_stale(self) -> "CacheEntry[T]":
        """Copy of this entry with the invalidation marker set."""
        return replace(self, explicitly_stale=True)

    def age(self, now: float) -> float:
        return now - self.fetched_at


@dataclass
class DomainStats:
    """Per-domain counters, mirroring the per-screen hit/miss tallies."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    loads: int = 0
    load_failures: int = 0
    optimistic_mutations: int = 0
    invalidations: int = 0
    notifications: int = 0
    suppressed_notifications: int = 0
    last_load_at: Optional[float] = None
    last_failure_at: Optional[float] = None

    def record_read(self, classification: Freshness) -> None:
        if classification is Freshness.FRESH:
            self.hits += 1
        elif classification is Freshness.STALE:
            self.stale_hits += 1
        else:
            self.misses += 1


@dataclass(frozen=True)
class DomainEvent:
    """Change notification delivered to subscribers of one domain."""

    domain: str
    kind: EventKind
    classification: Freshness
    value: Any


Subscriber = Callable[[DomainEvent], None]


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of a read: classification at read time plus the served value."""

    domain: str
    classification: Freshness
    value: Optional[T]
    loaded: bool = False

    @property
    def has_value(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class MutationIntent:
    """
    Optimistic write intent.

    One user action may touch several domains; each domain gets its own
    transform so no mutable intermediate is shared between them.
    """

    transforms: Mapping[str, Transform]

    def __post_init__(self) -> None:
        if not self.transforms:
            raise ConfigurationError("Mutation intent must target at least one domain")
        for name, transform in self.transforms.items():
            DomainName(name)
            if not callable(transform):
                raise ConfigurationError(
                    "Mutation transform must be callable", domain=name
                )

    @classmethod
    def uniform(cls, domains: Sequence[str], transform: Transform) -> "MutationIntent":
        """Apply the same pure transform to every listed domain."""
        return cls(transforms={name: transform for name in domains})

    @property
    def domains(self) -> List[str]:
        return list(self.transforms)


@dataclass
class CacheDomain:
    """
    Named cache namespace.

    Holds zero-or-one entry, the in-flight load handle and its subscribers.
    The entry is written only through ``CacheRegistry.install``.
    """

    name: str
    policy: FreshnessPolicy
    loader: Optional[Callable[[str], Any]] = None
    comparator: Comparator = operator.eq
    entry: Optional[CacheEntry[Any]] = None
    in_flight: Optional[asyncio.Task] = field(default=None, repr=False)
    subscribers: List[Subscriber] = field(default_factory=list, repr=False)
    stats: DomainStats = field(default_factory=DomainStats)

    def __post_init__(self) -> None:
        DomainName(self.name)

    def classify(self, now: float) -> Freshness:
        return self.policy.classify(self.entry, now)

    def is_in_flight(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()

    def same_value(self, left: Any, right: Any) -> bool:
        """Structural equality through the domain comparator."""
        return bool(self.comparator(left, right))

    def add_subscriber(self, callback: Subscriber) -> None:
        if callback not in self.subscribers:
            self.subscribers.append(callback)

    def remove_subscriber(self, callback: Subscriber) -> bool:
        if callback in self.subscribers:
            self.subscribers.remove(callback)
            return True
        return False

    def describe(self, now: float) -> Dict[str, Any]:
        """Plain-dict view used by snapshots and logging."""
        return {
            "domain": self.name,
            "classification": self.classify(now),
            "has_value": self.entry is not None,
            "age_seconds": self.entry.age(now) if self.entry else None,
            "explicitly_stale": bool(self.entry and self.entry.explicitly_stale),
            "in_flight": self.is_in_flight(),
            "subscribers": len(self.subscribers),
            "hits": self.stats.hits,
            "stale_hits": self.stats.stale_hits,
            "misses": self.stats.misses,
            "loads": self.stats.loads,
            "load_failures": self.stats.load_failures,
        }
