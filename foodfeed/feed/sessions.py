from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable

from .loader import PaginatedFeedLoader

logger = logging.getLogger(__name__)


class LoaderRegistry:
    """
    Per-session feed loaders, bounded in both size and idle time.

    Entries idle for longer than ``ttl_seconds`` are swept on every access,
    and once more than ``max_loaders`` remain the least recently used ones
    are evicted. An evicted session simply starts from a fresh loader.
    """

    def __init__(
        self,
        max_loaders: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_loaders = max_loaders
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[PaginatedFeedLoader, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, last_used) in self._entries.items() if now - last_used >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self.max_loaders:
            self._entries.popitem(last=False)
        if expired:
            logger.debug("Dropped %s idle feed loaders, %s left", len(expired), len(self._entries))

    def get_or_create(self, key: str, factory: Callable[[], PaginatedFeedLoader]) -> PaginatedFeedLoader:
        now = self._clock()
        entry = self._entries.pop(key, None)
        if entry is not None and now - entry[1] < self.ttl_seconds:
            loader = entry[0]
        else:
            loader = factory()
        self._entries[key] = (loader, now)
        self._sweep(now)
        return loader

    def discard(self, key: str | None) -> None:
        if key is not None:
            self._entries.pop(key, None)
