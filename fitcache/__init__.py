"""
fitcache

Stale-while-revalidate cache with optimistic mutation and cross-screen
invalidation for the fitness tracker's aggregates.
"""

from .domain.cache.entities import CacheEntry, DomainEvent, MutationIntent, ReadResult
from .domain.cache.exceptions import CacheException, ConfigurationError, LoadError
from .domain.cache.value_objects import EventKind, Freshness, FreshnessPolicy
from .infrastructure.registry import CacheRegistry
from .services.cache.cache_manager import CacheManager, Subscription
from .services.cache.consumer_binding import ConsumerBinding, ViewState

__all__ = [
    "CacheEntry",
    "CacheException",
    "CacheManager",
    "CacheRegistry",
    "ConfigurationError",
    "ConsumerBinding",
    "DomainEvent",
    "EventKind",
    "Freshness",
    "FreshnessPolicy",
    "LoadError",
    "MutationIntent",
    "ReadResult",
    "Subscription",
    "ViewState",
]
