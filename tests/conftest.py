"""
Main pytest configuration for fitcache tests.

Fixtures and helpers shared by unit and integration tests: a controllable
clock, controllable loaders and isolated managers.
"""

import asyncio
import os
from typing import Any, List

import pytest

# Set test environment variables before importing fitcache modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

from fitcache.core.config import Settings
from fitcache.infrastructure.registry import CacheRegistry
from fitcache.services.cache.cache_manager import CacheManager


class FakeClock:
    """Deterministic clock; advance it explicitly."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now

    def set(self, value: float) -> float:
        self.now = value
        return self.now


class ControlledLoader:
    """Loader whose calls stay pending until the test resolves them."""

    def __init__(self):
        self.calls: List[str] = []
        self._pending: List["asyncio.Future[Any]"] = []

    async def __call__(self, domain: str) -> Any:
        self.calls.append(domain)
        future = asyncio.get_running_loop().create_future()
        self._pending.append(future)
        return await future

    @property
    def pending(self) -> int:
        return len(self._pending)

    def resolve(self, value: Any) -> None:
        self._pending.pop(0).set_result(value)

    def reject(self, error: BaseException) -> None:
        self._pending.pop(0).set_exception(error)


class SequenceLoader:
    """Loader returning the given values in order, immediately."""

    def __init__(self, *values: Any):
        self.values = list(values)
        self.calls: List[str] = []

    async def __call__(self, domain: str) -> Any:
        self.calls.append(domain)
        value = self.values.pop(0)
        if isinstance(value, BaseException):
            raise value
        return value


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run until they block on something real."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    """Fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def registry(settings):
    """Fresh registry per test."""
    return CacheRegistry(
        default_policy=settings.default_policy, policy_for=settings.policy_for
    )


@pytest.fixture
def manager(registry, clock, settings):
    """Cache manager over the per-test registry and fake clock."""
    return CacheManager(registry=registry, clock=clock, settings=settings)


@pytest.fixture
def controlled_loader():
    return ControlledLoader()


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
