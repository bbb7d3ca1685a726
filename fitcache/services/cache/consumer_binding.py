"""
Consumer Binding

Per-screen integration point. A screen owns one binding per domain it
shows; activating the binding classifies the domain, hydrates the view
from cache, triggers background or blocking loads and keeps the view in
sync with writes made anywhere else while the screen stays mounted.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

import structlog

from ...domain.cache.entities import DomainEvent
from ...domain.cache.exceptions import LoadError
from ...domain.cache.value_objects import EventKind, Freshness
from .cache_manager import CacheManager, Subscription

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ViewState:
    """What the screen is currently showing for one domain."""

    value: Any = None
    classification: Freshness = Freshness.MISSING
    loading: bool = False
    error: Optional[LoadError] = None


ViewCallback = Callable[[ViewState], None]


class ConsumerBinding:
    """
    Binds one screen to one cache domain.

    The view callback only fires when the view state actually changes;
    values are compared with the domain's structural comparator, so a
    reload that returns identical data never causes a re-render.
    """

    def __init__(
        self,
        manager: CacheManager,
        domain: str,
        on_change: Optional[ViewCallback] = None,
        revalidate_on_invalidate: bool = False,
    ):
        self.manager = manager
        self.domain = domain
        self.on_change = on_change
        self.revalidate_on_invalidate = revalidate_on_invalidate
        self._state = ViewState()
        self._subscription: Optional[Subscription] = None

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def active(self) -> bool:
        return self._subscription is not None

    async def activate(self, now: Optional[float] = None) -> ViewState:
        """
        Run the read path for a screen becoming active.

        Raises:
            LoadError: If the domain was MISSING and its blocking load failed
        """
        if self._subscription is None:
            self._subscription = self.manager.subscribe(self.domain, self._on_event)

        classification = self.manager.classify(self.domain, now)
        if classification is Freshness.MISSING and self.manager.has_loader(self.domain):
            self._update(replace(self._state, loading=True, error=None))

        try:
            result = await self.manager.read(self.domain, now)
        except LoadError as e:
            logger.warning(
                "Screen load failed", domain=self.domain, error=str(e)
            )
            self._update(replace(self._state, loading=False, error=e))
            raise

        shown = Freshness.FRESH if result.loaded else result.classification
        self._update(ViewState(value=result.value, classification=shown))
        if shown is Freshness.STALE:
            self._follow_revalidation()
        return self._state

    def deactivate(self) -> None:
        """Stop listening; any in-flight load still completes into the cache."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_event(self, event: DomainEvent) -> None:
        if event.kind is EventKind.INVALIDATED:
            self._update(replace(self._state, classification=Freshness.STALE))
            if self.revalidate_on_invalidate:
                self.manager.revalidate(self.domain)
            return

        if event.kind is EventKind.REVALIDATED:
            self._update(replace(self._state, classification=event.classification))
            return

        self._update(
            ViewState(value=event.value, classification=event.classification)
        )

    def _follow_revalidation(self) -> None:
        """Drop the STALE marker once a background reload lands.

        An identical reload produces no event, so the binding watches the
        in-flight load itself.
        """
        task = self.manager.in_flight(self.domain)
        if task is not None:
            task.add_done_callback(self._on_revalidated)

    def _on_revalidated(self, task: "asyncio.Task[Any]") -> None:
        if not self.active or task.cancelled() or task.exception() is not None:
            return
        self._update(
            replace(self._state, classification=self.manager.classify(self.domain))
        )

    def _same_value(self, left: Any, right: Any) -> bool:
        if left is None or right is None:
            return left is right
        return self.manager.registry.domain(self.domain).same_value(left, right)

    def _update(self, new: ViewState) -> None:
        old = self._state
        if (
            self._same_value(old.value, new.value)
            and old.classification is new.classification
            and old.loading == new.loading
            and old.error is new.error
        ):
            return

        self._state = new
        if self.on_change is not None:
            self.on_change(new)
