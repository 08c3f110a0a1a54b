from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from foodfeed.bookings.models import BookingRecord, BookingStatus
from foodfeed.errors import TransientNetworkFailure
from foodfeed.feed.config import FeedConfig
from foodfeed.feed.loader import PaginatedFeedLoader, merge_owner_and_personal_sets
from foodfeed.feed.models import Coordinate, FeedFilter, FeedItem, LoaderState

START = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _items(count, prefix="v", start=0):
    return [
        FeedItem(id=f"{prefix}-{n}", category="Italian", created_at=START - timedelta(hours=n))
        for n in range(start, start + count)
    ]


class FakeFeedBackend:
    """Serves ``total`` items in pages and records every fetch."""

    def __init__(self, total=25, prefix="v"):
        self.rows = _items(total, prefix)
        self.calls = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def fetch_feed_page(self, limit, offset, origin=None, radius_km=None, category=None):
        self.calls.append({"limit": limit, "offset": offset, "category": category})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.rows[offset:offset + limit]


def _loader(backend, page_size=10):
    return PaginatedFeedLoader(backend, FeedConfig(page_size=page_size))


# ── first page ───────────────────────────────────────────────────────────


def test_initial_state_is_idle():
    loader = _loader(FakeFeedBackend())
    assert loader.state == LoaderState.idle
    assert loader.items == []
    assert not loader.has_more


def test_first_page_full_means_more():
    backend = FakeFeedBackend(total=25)
    loader = _loader(backend)

    items = asyncio.run(loader.load_first_page())

    assert len(items) == 10
    assert loader.has_more
    assert loader.state == LoaderState.ready
    assert loader.page == 0
    assert backend.calls == [{"limit": 10, "offset": 0, "category": None}]


def test_short_page_exhausts_and_next_page_is_noop():
    backend = FakeFeedBackend(total=7)
    loader = _loader(backend)

    asyncio.run(loader.load_first_page(10))
    assert not loader.has_more
    assert loader.state == LoaderState.exhausted

    assert asyncio.run(loader.load_next_page()) == []
    assert len(backend.calls) == 1
    assert len(loader.items) == 7


def test_all_sentinel_is_not_sent_as_category():
    backend = FakeFeedBackend()
    loader = _loader(backend)
    asyncio.run(loader.load_first_page(10, FeedFilter(category="All")))
    asyncio.run(loader.load_first_page(10, FeedFilter(category="Thai")))
    assert [c["category"] for c in backend.calls] == [None, "Thai"]


def test_reload_replaces_items_and_resets_page():
    backend = FakeFeedBackend(total=25)
    loader = _loader(backend)

    async def scenario():
        await loader.load_first_page()
        await loader.load_next_page()
        return await loader.load_first_page()

    items = asyncio.run(scenario())
    assert [i.id for i in items] == [f"v-{n}" for n in range(10)]
    assert loader.page == 0
    assert backend.calls[-1]["offset"] == 0


# ── next page ────────────────────────────────────────────────────────────


def test_next_page_appends_and_advances():
    backend = FakeFeedBackend(total=25)
    loader = _loader(backend)

    async def scenario():
        await loader.load_first_page()
        second = await loader.load_next_page()
        third = await loader.load_next_page()
        return second, third

    second, third = asyncio.run(scenario())

    assert [c["offset"] for c in backend.calls] == [0, 10, 20]
    assert [i.id for i in second] == [f"v-{n}" for n in range(10, 20)]
    assert len(third) == 5
    assert len(loader.items) == 25
    assert loader.page == 2
    assert loader.state == LoaderState.exhausted


def test_empty_next_page_exhausts_without_advancing():
    backend = FakeFeedBackend(total=10)
    loader = _loader(backend)

    async def scenario():
        await loader.load_first_page()
        return await loader.load_next_page()

    assert asyncio.run(scenario()) == []
    assert loader.page == 0
    assert not loader.has_more
    assert loader.state == LoaderState.exhausted


def test_concurrent_next_page_calls_fetch_once():
    backend = FakeFeedBackend(total=25)
    loader = _loader(backend)

    async def scenario():
        await loader.load_first_page()
        backend.gate = asyncio.Event()
        first = asyncio.create_task(loader.load_next_page())
        await asyncio.sleep(0)
        assert loader.is_loading
        assert loader.state == LoaderState.loading_more
        second = await loader.load_next_page()
        backend.gate.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert second == []
    assert len(first) == 10
    assert [c["offset"] for c in backend.calls] == [0, 10]


def test_failed_next_page_leaves_items_untouched():
    backend = FakeFeedBackend(total=25)
    loader = _loader(backend)
    asyncio.run(loader.load_first_page())
    before = loader.items

    backend.error = TransientNetworkFailure("offline")
    with pytest.raises(TransientNetworkFailure):
        asyncio.run(loader.load_next_page())

    assert loader.items == before
    assert loader.page == 0
    assert loader.has_more
    assert loader.state == LoaderState.ready
    assert not loader.is_loading

    backend.error = None
    assert len(asyncio.run(loader.load_next_page())) == 10


def test_failed_first_load_returns_to_idle():
    backend = FakeFeedBackend()
    backend.error = TransientNetworkFailure("offline")
    loader = _loader(backend)
    with pytest.raises(TransientNetworkFailure):
        asyncio.run(loader.load_first_page())
    assert loader.state == LoaderState.idle
    assert loader.items == []


# ── stale responses ──────────────────────────────────────────────────────


class SlowThenFastBackend(FakeFeedBackend):
    """The first request waits on ``gate``; later ones answer at once."""

    def __init__(self):
        super().__init__(total=25)
        self.gate = asyncio.Event()

    async def fetch_feed_page(self, limit, offset, origin=None, radius_km=None, category=None):
        self.calls.append({"limit": limit, "offset": offset, "category": category})
        if len(self.calls) == 1:
            await self.gate.wait()
            return _items(limit, prefix="stale")
        return self.rows[offset:offset + limit]


def test_stale_reload_does_not_overwrite_newer_one():
    async def scenario():
        backend = SlowThenFastBackend()
        loader = _loader(backend)
        slow = asyncio.create_task(loader.load_first_page(10, FeedFilter(category="Thai")))
        await asyncio.sleep(0)
        fresh = await loader.load_first_page(10, FeedFilter(category="Italian"))
        backend.gate.set()
        await slow
        return loader, fresh

    loader, fresh = asyncio.run(scenario())

    assert [i.id for i in loader.items] == [i.id for i in fresh]
    assert all(i.id.startswith("v-") for i in loader.items)
    assert loader.filter.category == "Italian"


def test_pages_are_ranked_by_distance_independently():
    origin = Coordinate(latitude=12.9716, longitude=77.5946)
    rows = [
        FeedItem(id="far", created_at=START, latitude=12.2958, longitude=76.6394),
        FeedItem(id="near", created_at=START, latitude=12.9716, longitude=77.5946),
        FeedItem(id="mid", created_at=START, latitude=12.9352, longitude=77.6245),
        FeedItem(id="nearest", created_at=START, latitude=12.9716, longitude=77.5946),
    ]
    backend = FakeFeedBackend()
    backend.rows = rows
    loader = _loader(backend, page_size=2)

    async def scenario():
        await loader.load_first_page(2, FeedFilter(origin=origin, radius_km=500))
        await loader.load_next_page()

    asyncio.run(scenario())
    assert [i.id for i in loader.items] == ["near", "far", "nearest", "mid"]


# ── merge ────────────────────────────────────────────────────────────────


def test_merge_prefers_personal_copy():
    owner = [
        BookingRecord(id="b-1", status=BookingStatus.confirmed),
        BookingRecord(id="b-2", status=BookingStatus.pending),
    ]
    personal = [
        BookingRecord(id="b-1", status=BookingStatus.cancelled),
        BookingRecord(id="b-3", status=BookingStatus.pending),
    ]
    merged = {b.id: b for b in merge_owner_and_personal_sets(owner, personal)}

    assert set(merged) == {"b-1", "b-2", "b-3"}
    assert merged["b-1"].status == BookingStatus.cancelled


def test_merge_is_exposed_on_loader():
    assert PaginatedFeedLoader.merge_owner_and_personal_sets([], []) == []
