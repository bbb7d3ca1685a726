"""
Unit tests for Cache Domain Models.

Tests value objects, entities and the freshness classification rule.
"""

import dataclasses

import pytest

from fitcache.domain.cache.entities import (
    CacheDomain,
    CacheEntry,
    DomainStats,
    MutationIntent,
    ReadResult,
)
from fitcache.domain.cache.exceptions import (
    CacheException,
    ConfigurationError,
    LoadError,
)
from fitcache.domain.cache.value_objects import (
    DomainName,
    DomainSnapshot,
    Freshness,
    FreshnessPolicy,
)


class TestDomainName:
    """Test DomainName value object."""

    def test_valid_names(self):
        """Test typical tracker domain names."""
        for name in ["today-totals", "sleep-logs", "progress:week", "weight_logs.v2"]:
            assert str(DomainName(name)) == name

    def test_invalid_name_empty(self):
        with pytest.raises(ConfigurationError, match="cannot be empty"):
            DomainName("")

    def test_invalid_name_whitespace(self):
        with pytest.raises(ConfigurationError, match="whitespace"):
            DomainName("today totals")

    def test_invalid_name_too_long(self):
        with pytest.raises(ConfigurationError, match="too long"):
            DomainName("a" * 121)

    def test_invalid_name_format(self):
        with pytest.raises(ConfigurationError, match="Invalid domain name"):
            DomainName("-leading-dash")


class TestFreshnessPolicy:
    """Test FreshnessPolicy classification."""

    @pytest.fixture
    def policy(self):
        return FreshnessPolicy.seconds(5, 30)

    def test_absent_entry_is_missing(self, policy):
        assert policy.classify(None, 100.0) is Freshness.MISSING

    @pytest.mark.parametrize(
        "age, expected",
        [
            (0.0, Freshness.FRESH),
            (4.999, Freshness.FRESH),
            (5.0, Freshness.STALE),
            (29.999, Freshness.STALE),
            (30.0, Freshness.MISSING),
            (3600.0, Freshness.MISSING),
        ],
    )
    def test_age_windows(self, policy, age, expected):
        """FRESH below F, STALE in [F, S), MISSING from S."""
        entry = CacheEntry.installed({"calories": 500}, now=10.0)
        assert policy.classify(entry, 10.0 + age) is expected

    def test_explicit_stale_wins_over_age(self, policy):
        """An invalidated entry is STALE even when young or very old."""
        entry = CacheEntry.installed({"calories": 500}, now=0.0).mark_stale()

        assert policy.classify(entry, 0.0) is Freshness.STALE
        assert policy.classify(entry, 1000.0) is Freshness.STALE

    def test_negative_age_is_fresh(self, policy):
        """Clock skew is tolerated rather than raising."""
        entry = CacheEntry.installed([], now=50.0)
        assert policy.classify(entry, 10.0) is Freshness.FRESH

    def test_equal_windows(self):
        """F == S leaves no STALE band."""
        policy = FreshnessPolicy.seconds(10, 10)
        entry = CacheEntry.installed(1, now=0.0)

        assert policy.classify(entry, 9.0) is Freshness.FRESH
        assert policy.classify(entry, 10.0) is Freshness.MISSING

    def test_fresh_greater_than_stale_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="must not exceed") as exc_info:
            FreshnessPolicy.seconds(60, 30)

        assert exc_info.value.error_code == "CACHE_CONFIGURATION_ERROR"
        assert exc_info.value.details == {"fresh_window": 60.0, "stale_window": 30.0}

    def test_negative_window_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="negative"):
            FreshnessPolicy.seconds(-1, 30)

    def test_milliseconds(self):
        policy = FreshnessPolicy.milliseconds(5000, 30000)
        assert policy == FreshnessPolicy.seconds(5, 30)

    def test_presets(self):
        """Test screen presets."""
        assert FreshnessPolicy.today_totals() == FreshnessPolicy.seconds(5, 30)
        assert FreshnessPolicy.progress().fresh_window == 5.0
        assert FreshnessPolicy.sleep().fresh_window == 5.0
        assert FreshnessPolicy.hydration().stale_window == 30.0
        assert FreshnessPolicy.weight() == FreshnessPolicy.seconds(60, 300)


class TestCacheEntry:
    """Test CacheEntry entity."""

    def test_installed_entry(self):
        entry = CacheEntry.installed({"calories": 500}, now=12.5)

        assert entry.value == {"calories": 500}
        assert entry.fetched_at == 12.5
        assert entry.explicitly_stale is False
        assert entry.age(20.0) == 7.5

    def test_entry_is_immutable(self):
        entry = CacheEntry.installed(1, now=0.0)

        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.value = 2

    def test_mark_stale_returns_copy(self):
        entry = CacheEntry.installed({"calories": 500}, now=3.0)
        stale = entry.mark_stale()

        assert stale is not entry
        assert stale.explicitly_stale is True
        assert stale.value == entry.value
        assert stale.fetched_at == entry.fetched_at
        assert entry.explicitly_stale is False

    def test_entries_compare_structurally(self):
        assert CacheEntry.installed([1, 2], 1.0) == CacheEntry.installed([1, 2], 1.0)


class TestMutationIntent:
    """Test MutationIntent entity."""

    def test_uniform_intent(self):
        add = lambda totals: {**totals, "calories": totals["calories"] + 200}
        intent = MutationIntent.uniform(["today-totals", "progress"], add)

        assert intent.domains == ["today-totals", "progress"]
        assert intent.transforms["progress"] is add

    def test_per_domain_transforms(self):
        intent = MutationIntent(
            transforms={"sleep-logs": lambda logs: logs, "today-totals": dict}
        )
        assert set(intent.domains) == {"sleep-logs", "today-totals"}

    def test_empty_intent_rejected(self):
        with pytest.raises(ConfigurationError, match="at least one domain"):
            MutationIntent(transforms={})

    def test_non_callable_transform_rejected(self):
        with pytest.raises(ConfigurationError, match="callable"):
            MutationIntent(transforms={"today-totals": 200})

    def test_invalid_domain_name_rejected(self):
        with pytest.raises(ConfigurationError):
            MutationIntent.uniform(["bad name"], lambda v: v)


class TestCacheDomain:
    """Test CacheDomain entity."""

    @pytest.fixture
    def domain(self):
        return CacheDomain(name="today-totals", policy=FreshnessPolicy.seconds(5, 30))

    def test_new_domain_is_missing(self, domain):
        assert domain.entry is None
        assert domain.classify(0.0) is Freshness.MISSING
        assert domain.is_in_flight() is False

    def test_subscribers_are_unique(self, domain):
        callback = lambda event: None

        domain.add_subscriber(callback)
        domain.add_subscriber(callback)

        assert domain.subscribers == [callback]
        assert domain.remove_subscriber(callback) is True
        assert domain.remove_subscriber(callback) is False

    def test_default_comparator_is_structural(self, domain):
        assert domain.same_value({"calories": 1}, {"calories": 1}) is True
        assert domain.same_value({"calories": 1}, {"calories": 2}) is False

    def test_custom_comparator(self):
        domain = CacheDomain(
            name="sleep-logs",
            policy=FreshnessPolicy.sleep(),
            comparator=lambda a, b: len(a) == len(b),
        )
        assert domain.same_value([1, 2], [3, 4]) is True

    def test_invalid_name(self):
        with pytest.raises(ConfigurationError):
            CacheDomain(name="", policy=FreshnessPolicy.sleep())

    def test_describe(self, domain):
        domain.entry = CacheEntry.installed({"calories": 500}, now=1.0)
        domain.stats.record_read(Freshness.FRESH)
        domain.stats.record_read(Freshness.MISSING)

        described = domain.describe(4.0)

        assert described["classification"] is Freshness.FRESH
        assert described["age_seconds"] == 3.0
        assert described["hits"] == 1
        assert described["misses"] == 1


class TestDomainStats:
    """Test DomainStats counters."""

    def test_record_read(self):
        stats = DomainStats()
        stats.record_read(Freshness.FRESH)
        stats.record_read(Freshness.STALE)
        stats.record_read(Freshness.STALE)
        stats.record_read(Freshness.MISSING)

        assert (stats.hits, stats.stale_hits, stats.misses) == (1, 2, 1)


class TestDomainSnapshot:
    """Test DomainSnapshot model."""

    def test_hit_rate(self):
        snapshot = DomainSnapshot(
            domain="today-totals",
            classification=Freshness.FRESH,
            has_value=True,
            hits=3,
            stale_hits=1,
            misses=4,
        )
        assert snapshot.hit_rate == 0.5

    def test_hit_rate_without_reads(self):
        snapshot = DomainSnapshot(
            domain="today-totals", classification=Freshness.MISSING, has_value=False
        )
        assert snapshot.hit_rate == 0.0

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            DomainSnapshot(
                domain="today-totals",
                classification=Freshness.MISSING,
                has_value=False,
                misses=-1,
            )


class TestReadResult:
    def test_has_value(self):
        assert ReadResult("x", Freshness.MISSING, None).has_value is False
        assert ReadResult("x", Freshness.FRESH, 0).has_value is True


class TestExceptions:
    """Test cache exception hierarchy."""

    def test_load_error_chains_original(self):
        original = ConnectionError("supabase unreachable")
        error = LoadError("today-totals", original_error=original)

        assert isinstance(error, CacheException)
        assert error.__cause__ is original
        assert error.domain == "today-totals"
        assert error.error_code == "CACHE_LOAD_ERROR"
        assert error.details["original_error_type"] == "ConnectionError"
        assert "today-totals" in str(error)

    def test_configuration_error_details(self):
        error = ConfigurationError("bad", domain="weight-logs")
        assert error.details == {"domain": "weight-logs"}
        assert error.message == "bad"
