"""
In-Memory Cache Registry

Infrastructure implementation of the domain repository.
Holds every cache domain for the life of the process and is the single
write gate for entries; each ConsumerBinding receives it by injection
instead of reaching for module-level globals.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from opentelemetry import trace

from ..domain.cache.entities import CacheDomain, CacheEntry, Comparator
from ..domain.cache.exceptions import ConfigurationError, UnknownWriteSourceError
from ..domain.cache.repository_interfaces import DomainRepository, Loader
from ..domain.cache.value_objects import DomainName, FreshnessPolicy, WriteSource

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PolicyResolver = Callable[[str], FreshnessPolicy]


class CacheRegistry(DomainRepository):
    """In-memory map of named cache domains."""

    def __init__(
        self,
        default_policy: Optional[FreshnessPolicy] = None,
        policy_for: Optional[PolicyResolver] = None,
    ):
        self.default_policy = default_policy or FreshnessPolicy.seconds(5, 30)
        self._policy_for = policy_for
        self._domains: Dict[str, CacheDomain] = {}

    def _resolve_policy(self, name: str) -> FreshnessPolicy:
        if self._policy_for is not None:
            return self._policy_for(name)
        return self.default_policy

    def get(self, name: str) -> Optional[CacheDomain]:
        """Find domain by name without creating it."""
        return self._domains.get(name)

    def domain(self, name: str) -> CacheDomain:
        """Find domain by name, creating it lazily on first access."""
        existing = self._domains.get(name)
        if existing is not None:
            return existing

        DomainName(name)
        created = CacheDomain(name=name, policy=self._resolve_policy(name))
        self._domains[name] = created
        logger.debug(
            f"Created cache domain {name}",
            extra={"domain": name, "policy": str(created.policy)},
        )
        return created

    def register(
        self,
        name: str,
        loader: Optional[Loader] = None,
        policy: Optional[FreshnessPolicy] = None,
        comparator: Optional[Comparator] = None,
    ) -> CacheDomain:
        """Attach loader, policy and comparator to a domain.

        Registering a second, different loader for the same domain is a
        configuration error: one domain has one canonical source.
        """
        domain = self.domain(name)

        if loader is not None:
            if domain.loader is not None and domain.loader is not loader:
                raise ConfigurationError(
                    f"Domain '{name}' already has a loader", domain=name
                )
            domain.loader = loader
        if policy is not None:
            domain.policy = policy
        if comparator is not None:
            domain.comparator = comparator

        logger.info(
            f"Registered cache domain {name}",
            extra={
                "domain": name,
                "policy": str(domain.policy),
                "has_loader": domain.loader is not None,
            },
        )
        return domain

    def install(
        self, name: str, entry: CacheEntry[Any], source: WriteSource
    ) -> Optional[CacheEntry[Any]]:
        """Replace a domain's entry wholesale.

        Only loader success, optimistic mutation and invalidation may write.
        """
        if not isinstance(source, WriteSource):
            raise UnknownWriteSourceError(name, source)

        with tracer.start_as_current_span("cache.install") as span:
            span.set_attribute("domain", name)
            span.set_attribute("source", source.value)

            domain = self.domain(name)
            previous = domain.entry
            domain.entry = entry

            logger.debug(
                f"Installed entry for {name}",
                extra={
                    "domain": name,
                    "source": source.value,
                    "fetched_at": entry.fetched_at,
                    "explicitly_stale": entry.explicitly_stale,
                },
            )
            return previous

    def names(self) -> List[str]:
        return list(self._domains)

    def __iter__(self) -> Iterator[CacheDomain]:
        return iter(list(self._domains.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._domains

    def __len__(self) -> int:
        return len(self._domains)
