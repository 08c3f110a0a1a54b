import math
from datetime import datetime, timezone

import pytest

from foodfeed.feed.models import Coordinate, FeedItem
from foodfeed.geo.distance import UNKNOWN_DISTANCE_LABEL, describe_distance, distance_km, format_distance
from foodfeed.geo.ranking import matches_category, rank

BENGALURU = Coordinate(latitude=12.9716, longitude=77.5946)

POINTS = [
    (12.9716, 77.5946),
    (12.2958, 76.6394),
    (51.5074, -0.1278),
    (-33.8688, 151.2093),
    (0.0, 0.0),
    (89.9, 179.9),
]


def _item(item_id, lat=None, lng=None, category="Italian"):
    return FeedItem(
        id=item_id,
        category=category,
        latitude=lat,
        longitude=lng,
        created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


# ── distance ─────────────────────────────────────────────────────────────


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_distance_is_symmetric(a, b):
    assert distance_km(*a, *b) == pytest.approx(distance_km(*b, *a))


@pytest.mark.parametrize("point", POINTS)
def test_distance_to_self_is_zero(point):
    assert distance_km(*point, *point) == 0


def test_distance_known_value():
    # London to Paris is roughly 344 km
    assert distance_km(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343.5, abs=1.0)


def test_distance_nan_propagates():
    assert math.isnan(distance_km(float("nan"), 0.0, 1.0, 1.0))


@pytest.mark.parametrize(
    "km, label",
    [
        (0.0, "0m"),
        (0.85, "850m"),
        (0.9996, "1000m"),
        (1.0, "1.0km"),
        (3.44, "3.4km"),
        (3.45, "3.5km"),
        (9.99, "10.0km"),
        (10.0, "10km"),
        (27.4, "27km"),
        (27.5, "28km"),
    ],
)
def test_format_distance(km, label):
    assert format_distance(km) == label


@pytest.mark.parametrize("km", [math.nan, math.inf, -math.inf])
def test_format_distance_non_finite_gets_placeholder(km):
    assert format_distance(km) == UNKNOWN_DISTANCE_LABEL


def test_describe_distance():
    assert describe_distance(12.9716, 77.5946, None, 77.6) == (None, None)
    assert describe_distance(12.9716, 77.5946, 12.9716, 77.5946) == (0.0, "0m")
    km, label = describe_distance(12.9716, 77.5946, 12.2958, 76.6394)
    assert label == format_distance(km)


def test_describe_distance_with_nan_coordinate():
    assert describe_distance(math.nan, 77.5946, 12.9716, 77.5946) == (None, UNKNOWN_DISTANCE_LABEL)


# ── category ─────────────────────────────────────────────────────────────


def test_category_substring_match_is_case_insensitive():
    item = _item("a", category="North Indian")
    assert matches_category(item, "indian")
    assert matches_category(item, "INDIAN")
    assert not matches_category(item, "Chinese")


@pytest.mark.parametrize("sentinel", [None, "", "all", "All", "  ALL "])
def test_all_sentinel_matches_everything(sentinel):
    assert matches_category(_item("a", category="Thai"), sentinel)


# ── rank ─────────────────────────────────────────────────────────────────


def test_rank_without_origin_only_filters_by_category():
    items = [_item("a", 1, 1, "Thai"), _item("b", category="Italian"), _item("c", 0, 0, "Thai")]
    ranked = rank(items, None, 5, "thai")
    assert [i.id for i in ranked] == ["a", "c"]


def test_rank_orders_by_distance():
    far = _item("far", 12.2958, 76.6394)
    near = _item("near", 12.9352, 77.6245)
    here = _item("here", 12.9716, 77.5946)
    ranked = rank([far, near, here], BENGALURU, None, None)
    assert [i.id for i in ranked] == ["here", "near", "far"]


def test_radius_filter_keeps_exactly_items_within_radius():
    items = [
        _item("here", 12.9716, 77.5946),
        _item("near", 12.9352, 77.6245),
        _item("far", 12.2958, 76.6394),
        _item("london", 51.5074, -0.1278),
    ]
    for radius in (1, 10, 200, 10000):
        ranked = {i.id for i in rank(items, BENGALURU, radius, None)}
        expected = {
            i.id
            for i in items
            if distance_km(BENGALURU.latitude, BENGALURU.longitude, i.latitude, i.longitude) <= radius
        }
        assert ranked == expected


def test_items_without_coordinates_survive_any_radius():
    unknown = _item("unknown")
    half_known = _item("half", lat=12.0)
    ranked = rank([_item("london", 51.5074, -0.1278), unknown, half_known], BENGALURU, 0.001, None)
    assert [i.id for i in ranked] == ["unknown", "half"]


def test_zero_latitude_counts_as_known():
    equator = _item("equator", 0.0, 77.5946)
    assert rank([equator], BENGALURU, 100, None) == []


def test_items_without_coordinates_keep_relative_order():
    items = [_item("x"), _item("y"), _item("z")]
    assert [i.id for i in rank(items, BENGALURU, 50, None)] == ["x", "y", "z"]


def test_rank_does_not_mutate_input():
    items = [_item("far", 12.2958, 76.6394), _item("here", 12.9716, 77.5946)]
    rank(items, BENGALURU, None, None)
    assert [i.id for i in items] == ["far", "here"]
