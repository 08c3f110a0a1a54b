from __future__ import annotations

import logging
import time
from typing import Iterable, Protocol, TypeVar

from ..backend.base import Backend
from ..geo.ranking import rank
from .config import DEFAULT_FEED_CONFIG, FeedConfig
from .models import FeedFilter, FeedItem, LoaderState

logger = logging.getLogger(__name__)


class _Identified(Protocol):
    @property
    def id(self) -> str: ...


T = TypeVar("T", bound=_Identified)


def merge_owner_and_personal_sets(owner_items: Iterable[T], personal_items: Iterable[T]) -> list[T]:
    """
    Union two scoped result sets keyed by ``id``.

    Owner-scoped rows go in first and personal-scoped rows overwrite them,
    so when a business user booked at their own venue the personal copy is
    the one kept. The result order carries no meaning.
    """
    merged: dict[str, T] = {}
    for item in owner_items:
        merged[item.id] = item
    for item in personal_items:
        merged[item.id] = item
    return list(merged.values())


class PaginatedFeedLoader:
    """
    Page-cursor state over the discovery feed.

    One loader belongs to one screen (or one session in the HTTP layer).
    Overlapping ``load_next_page`` calls are dropped rather than queued,
    and every response is checked against a request sequence number so a
    slow response cannot overwrite the result of a newer reload.
    """

    merge_owner_and_personal_sets = staticmethod(merge_owner_and_personal_sets)

    def __init__(self, backend: Backend, config: FeedConfig = DEFAULT_FEED_CONFIG) -> None:
        self.backend = backend
        self.page_size = config.page_size
        self.filter = FeedFilter()
        self.page = 0
        self.has_more = False
        self.state = LoaderState.idle
        self._items: list[FeedItem] = []
        self._in_flight = False
        self._sequence = 0
        self._loaded = False

    def _settled_state(self) -> LoaderState:
        if not self._loaded:
            return LoaderState.idle
        return LoaderState.ready if self.has_more else LoaderState.exhausted

    @property
    def items(self) -> list[FeedItem]:
        return list(self._items)

    @property
    def is_loading(self) -> bool:
        return self._in_flight or self.state == LoaderState.loading

    async def _fetch(self, limit: int, offset: int, feed_filter: FeedFilter) -> list[FeedItem]:
        start_time = time.time()
        raw = await self.backend.fetch_feed_page(
            limit,
            offset,
            origin=feed_filter.origin,
            radius_km=feed_filter.radius_km,
            category=feed_filter.category_restriction,
        )
        elapsed_ms = round((time.time() - start_time) * 1000, 1)
        logger.info(
            "Fetched feed page: limit=%s offset=%s returned=%s in %sms",
            limit, offset, len(raw), elapsed_ms,
        )
        return raw

    def _rank(self, raw: list[FeedItem], feed_filter: FeedFilter) -> list[FeedItem]:
        return rank(raw, feed_filter.origin, feed_filter.radius_km, feed_filter.category_restriction)

    async def load_first_page(
        self,
        page_size: int | None = None,
        filter_context: FeedFilter | None = None,
    ) -> list[FeedItem]:
        """Reset the cursor and replace the held items with a fresh first page."""
        page_size = page_size or self.page_size
        filter_context = filter_context or FeedFilter()

        self._sequence += 1
        sequence = self._sequence
        self.state = LoaderState.loading

        try:
            raw = await self._fetch(page_size, 0, filter_context)
        except Exception:
            if sequence == self._sequence:
                self.state = self._settled_state()
            raise

        if sequence != self._sequence:
            logger.debug("Discarding stale first page (request %s, latest %s)", sequence, self._sequence)
            return self.items

        self.page_size = page_size
        self.filter = filter_context
        self.page = 0
        self._loaded = True
        self._items = self._rank(raw, filter_context)
        self.has_more = len(raw) == page_size
        self.state = LoaderState.ready if self.has_more else LoaderState.exhausted
        return self.items

    async def load_next_page(self) -> list[FeedItem]:
        """
        Append the next page and return just the appended items.

        Does nothing, without calling the backend, while another load is
        running or once the feed is exhausted.
        """
        if self.is_loading or not self.has_more:
            return []

        self._in_flight = True
        self._sequence += 1
        sequence = self._sequence
        next_page = self.page + 1
        feed_filter = self.filter
        self.state = LoaderState.loading_more

        try:
            raw = await self._fetch(self.page_size, next_page * self.page_size, feed_filter)
        except Exception:
            if sequence == self._sequence:
                self.state = self._settled_state()
            raise
        finally:
            self._in_flight = False

        if sequence != self._sequence:
            logger.debug("Discarding stale page %s (request %s, latest %s)", next_page, sequence, self._sequence)
            return []

        if not raw:
            self.has_more = False
            self.state = LoaderState.exhausted
            return []

        ranked = self._rank(raw, feed_filter)
        self._items = self._items + ranked
        self.page = next_page
        self.has_more = len(raw) == self.page_size
        self.state = LoaderState.ready if self.has_more else LoaderState.exhausted
        return ranked
