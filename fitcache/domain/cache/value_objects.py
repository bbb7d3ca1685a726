"""
Cache Value Objects

Immutable value objects for the cache domain.
Provides type safety and the freshness classification rule.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .entities import CacheEntry


class Freshness(str, Enum):
    """Freshness classification of a cached entry at a point in time."""

    MISSING = "missing"
    FRESH = "fresh"
    STALE = "stale"


class WriteSource(str, Enum):
    """The only code paths allowed to write a domain entry."""

    LOADER = "loader"
    OPTIMISTIC = "optimistic"
    INVALIDATION = "invalidation"


class EventKind(str, Enum):
    """Kinds of change delivered to domain subscribers."""

    LOADED = "loaded"
    OPTIMISTIC = "optimistic"
    INVALIDATED = "invalidated"
    REVALIDATED = "revalidated"


@dataclass(frozen=True)
class DomainName:
    """
    Immutable domain name value object.

    Domain names are plain identifiers such as ``today-totals`` or ``sleep``.
    """

    value: str

    NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:\-]*$")

    def __post_init__(self) -> None:
        """Validate domain name format."""
        if not self.value:
            raise ConfigurationError("Domain name cannot be empty")

        if len(self.value) > 120:
            raise ConfigurationError(
                "Domain name too long (max 120 characters)", domain=self.value
            )

        if any(char.isspace() for char in self.value):
            raise ConfigurationError(
                "Domain name cannot contain whitespace", domain=self.value
            )

        if not self.NAME_PATTERN.match(self.value):
            raise ConfigurationError("Invalid domain name format", domain=self.value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FreshnessPolicy:
    """
    Fresh/stale window pair for one domain.

    ``fresh_window <= stale_window`` always holds; anything else is a
    configuration error raised at construction time.
    """

    fresh_window: float
    stale_window: float

    def __post_init__(self) -> None:
        """Validate window values."""
        if self.fresh_window < 0 or self.stale_window < 0:
            raise ConfigurationError(
                "Freshness windows cannot be negative",
                fresh_window=self.fresh_window,
                stale_window=self.stale_window,
            )
        if self.fresh_window > self.stale_window:
            raise ConfigurationError(
                "fresh_window must not exceed stale_window",
                fresh_window=self.fresh_window,
                stale_window=self.stale_window,
            )

    @classmethod
    def seconds(cls, fresh: float, stale: float) -> "FreshnessPolicy":
        """Create policy from seconds."""
        return cls(float(fresh), float(stale))

    @classmethod
    def milliseconds(cls, fresh: float, stale: float) -> "FreshnessPolicy":
        """Create policy from milliseconds."""
        return cls(fresh / 1000.0, stale / 1000.0)

    # Screen presets
    @classmethod
    def today_totals(cls) -> "FreshnessPolicy":
        """Dashboard daily totals (5s fresh, 30s stale)."""
        return cls.seconds(5, 30)

    @classmethod
    def progress(cls) -> "FreshnessPolicy":
        """Progress charts (5s fresh, 30s stale)."""
        return cls.seconds(5, 30)

    @classmethod
    def sleep(cls) -> "FreshnessPolicy":
        """Sleep log history (5s fresh, 30s stale)."""
        return cls.seconds(5, 30)

    @classmethod
    def hydration(cls) -> "FreshnessPolicy":
        """Hydration intake (5s fresh, 30s stale)."""
        return cls.seconds(5, 30)

    @classmethod
    def weight(cls) -> "FreshnessPolicy":
        """Weight history changes rarely (60s fresh, 5min stale)."""
        return cls.seconds(60, 300)

    def classify(self, entry: Optional["CacheEntry"], now: float) -> Freshness:
        """Classify an entry at ``now``.

        Explicit invalidation always wins over elapsed time. Negative age
        (clock skew) is treated as FRESH.
        """
        if entry is None:
            return Freshness.MISSING

        if entry.explicitly_stale:
            return Freshness.STALE

        age = now - entry.fetched_at
        if age < self.fresh_window:
            return Freshness.FRESH
        if age < self.stale_window:
            return Freshness.STALE
        return Freshness.MISSING

    def __str__(self) -> str:
        return f"fresh<{self.fresh_window}s stale<{self.stale_window}s"


class DomainSnapshot(BaseModel):
    """Point-in-time view of one domain for monitoring."""

    domain: str = Field(..., description="Domain name")
    classification: Freshness = Field(..., description="Current freshness")
    has_value: bool = Field(..., description="Whether an entry is present")
    age_seconds: Optional[float] = Field(
        None, description="Seconds since the entry was installed"
    )
    explicitly_stale: bool = Field(False, description="Invalidation marker")
    in_flight: bool = Field(False, description="Whether a load is outstanding")
    subscribers: int = Field(0, description="Number of subscribers")
    hits: int = Field(0, description="Reads served FRESH")
    stale_hits: int = Field(0, description="Reads served STALE")
    misses: int = Field(0, description="Reads classified MISSING")
    loads: int = Field(0, description="Successful loads")
    load_failures: int = Field(0, description="Failed loads")

    @field_validator("subscribers", "hits", "stale_hits", "misses", "loads", "load_failures")
    @classmethod
    def validate_counts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Counts cannot be negative")
        return v

    @property
    def hit_rate(self) -> float:
        """Share of reads served without a blocking load."""
        total = self.hits + self.stale_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.stale_hits) / total
