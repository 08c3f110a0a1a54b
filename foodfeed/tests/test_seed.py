import asyncio

import pytest

from foodfeed.backend.memory import InMemoryBackend
from foodfeed.backend.seed import load_seed
from foodfeed.errors import NotAuthenticated, NotFound


def test_load_seed_types():
    tables = load_seed()
    restaurants = {r["id"]: r for r in tables["restaurants"]}

    assert restaurants["r-spice"]["latitude"] == 12.9716
    assert isinstance(restaurants["r-spice"]["review_count"], int)
    assert restaurants["r-dumpling"]["latitude"] is None
    assert restaurants["r-closed"]["is_active"] is False
    assert restaurants["r-spice"]["is_active"] is True

    booking = next(b for b in tables["bookings"] if b["id"] == "b-5")
    assert booking["booking_date"] is None
    assert booking["party_size"] == 2


def test_missing_seed_dir_gives_empty_tables(tmp_path):
    tables = load_seed(tmp_path)
    assert tables["videos"] == []


def test_seeded_passwords_are_hashed():
    backend = InMemoryBackend.seeded()
    profile = backend._db["profiles"][0]
    assert "password" not in profile
    assert profile["password_hash"].startswith("$2")

    user = asyncio.run(backend.sign_in("ALICE@example.com ", "alice123"))
    assert user.id == "u-alice"
    assert not user.is_business


@pytest.mark.parametrize("email, password", [("alice@example.com", "nope"), ("nobody@example.com", "x")])
def test_sign_in_failures(email, password):
    with pytest.raises(NotAuthenticated):
        asyncio.run(InMemoryBackend.seeded().sign_in(email, password))


def test_feed_hides_drafts_and_inactive_restaurants():
    backend = InMemoryBackend.seeded()
    items = asyncio.run(backend.fetch_feed_page(10, 0))

    assert [i.id for i in items] == ["v-1", "v-2", "v-3", "v-4", "v-7"]
    assert asyncio.run(backend.fetch_feed_page(2, 4))[0].id == "v-7"
    with pytest.raises(NotFound):
        asyncio.run(backend.fetch_feed_item("v-5"))


def test_categories_exclude_inactive():
    categories = asyncio.run(InMemoryBackend.seeded().list_categories())
    assert categories == ["Chinese", "Italian", "North Indian", "South Indian"]
