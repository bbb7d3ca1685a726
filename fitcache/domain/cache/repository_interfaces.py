"""
Cache Repository Interfaces

Abstract contracts between the cache domain and its collaborators:
the in-memory domain store, app-supplied loaders and the clock.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Protocol

from .entities import CacheDomain, CacheEntry, Comparator
from .value_objects import FreshnessPolicy, WriteSource


class Loader(Protocol):
    """App-supplied async function producing a domain's canonical value.

    Must not write any domain other than the one it was invoked for.
    """

    def __call__(self, domain: str) -> Awaitable[Any]: ...


Clock = Callable[[], float]


class DomainRepository(ABC):
    """
    Abstract store of cache domains.

    Defines the contract for domain lookup, registration and the single
    entry write gate.
    """

    @abstractmethod
    def get(self, name: str) -> Optional[CacheDomain]:
        """Find domain by name without creating it."""
        pass

    @abstractmethod
    def domain(self, name: str) -> CacheDomain:
        """Find domain by name, creating it lazily."""
        pass

    @abstractmethod
    def register(
        self,
        name: str,
        loader: Optional[Loader] = None,
        policy: Optional[FreshnessPolicy] = None,
        comparator: Optional[Comparator] = None,
    ) -> CacheDomain:
        """Attach loader, policy and comparator to a domain."""
        pass

    @abstractmethod
    def install(
        self, name: str, entry: CacheEntry[Any], source: WriteSource
    ) -> Optional[CacheEntry[Any]]:
        """Replace the domain entry; returns the previous entry."""
        pass

    @abstractmethod
    def names(self) -> List[str]:
        """List known domain names."""
        pass

    @abstractmethod
    def __iter__(self) -> Iterator[CacheDomain]:
        pass

    @abstractmethod
    def __contains__(self, name: object) -> bool:
        pass
