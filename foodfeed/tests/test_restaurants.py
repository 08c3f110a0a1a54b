from __future__ import annotations

import asyncio

import pytest

from foodfeed.auth.models import AuthUser
from foodfeed.backend.memory import InMemoryBackend
from foodfeed.errors import NotFound
from foodfeed.feed.models import Coordinate
from foodfeed.restaurants.models import Restaurant
from foodfeed.restaurants.service import matches_text, restaurant_detail, search_restaurants

BENGALURU = Coordinate(latitude=12.9716, longitude=77.5946)
ALICE = AuthUser(id="u-alice", name="Alice Diner")


@pytest.fixture
def backend():
    return InMemoryBackend.seeded()


def _restaurant(restaurant_id, name="Place", cuisine="Italian", lat=None, lng=None):
    return Restaurant(id=restaurant_id, name=name, cuisine=cuisine, latitude=lat, longitude=lng)


def test_matches_text_on_name_or_cuisine():
    pasta = _restaurant("r", name="Pasta Palace", cuisine="Italian")
    assert matches_text(pasta, "palace")
    assert matches_text(pasta, "ITAL")
    assert matches_text(pasta, "  ")
    assert matches_text(pasta, None)
    assert not matches_text(pasta, "sushi")


def test_restaurant_from_row_drops_drafts_and_orders_videos():
    row = {
        "id": "r-1",
        "name": "Test Kitchen",
        "cuisine": "Thai",
        "latitude": float("nan"),
        "videos": [
            {"id": "old", "created_at": "2024-01-01T00:00:00+00:00", "status": "published"},
            {"id": "new", "created_at": "2024-02-01T00:00:00+00:00", "status": "published"},
            {"id": "hidden", "created_at": "2024-03-01T00:00:00+00:00", "status": "draft"},
        ],
    }
    restaurant = Restaurant.from_row(row)

    assert [v.id for v in restaurant.videos] == ["new", "old"]
    assert restaurant.videos[0].category == "Thai"
    assert restaurant.latitude is None
    assert restaurant.coordinate is None


def test_memory_lists_active_restaurants_with_videos(backend):
    restaurants = asyncio.run(backend.fetch_restaurants())
    by_id = {r.id: r for r in restaurants}

    assert "r-closed" not in by_id
    assert [v.id for v in by_id["r-spice"].videos] == ["v-4"]
    assert len(asyncio.run(backend.fetch_restaurants(limit=2))) == 2


def test_memory_restaurant_lookup(backend):
    assert asyncio.run(backend.fetch_restaurant("r-curry")).name == "Curry Leaf"
    with pytest.raises(NotFound):
        asyncio.run(backend.fetch_restaurant("r-closed"))
    with pytest.raises(NotFound):
        asyncio.run(backend.fetch_restaurant("r-missing"))


def test_search_keeps_unlocated_restaurants_within_radius(backend):
    results = asyncio.run(search_restaurants(backend, origin=BENGALURU, radius_km=10))
    assert [r.restaurant.id for r in results] == ["r-spice", "r-pasta", "r-dumpling"]
    assert results[1].distance_label.endswith("km")
    assert results[2].distance_km is None


def test_search_combines_text_and_category(backend):
    results = asyncio.run(search_restaurants(backend, query="leaf", category="indian"))
    assert [r.restaurant.id for r in results] == ["r-curry"]
    assert asyncio.run(search_restaurants(backend, query="leaf", category="italian")) == []


def test_detail_for_anonymous_and_signed_in(backend):
    anonymous = asyncio.run(restaurant_detail(backend, "r-spice"))
    assert anonymous.favorited is False
    assert anonymous.favorites_count == 0
    assert [b.name for b in anonymous.badges] == ["Local Favorite"]

    alice = backend.as_user(ALICE)
    asyncio.run(alice.toggle_favorite("r-spice"))
    detail = asyncio.run(restaurant_detail(alice, "r-spice"))
    assert detail.favorited is True
    assert detail.favorites_count == 1
