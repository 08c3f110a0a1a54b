from __future__ import annotations

import logging

from ..backend.base import Backend
from ..feed.models import Coordinate
from ..geo.distance import describe_distance
from ..geo.ranking import rank
from .models import Restaurant, RestaurantDetail, RestaurantOut

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 50


def matches_text(restaurant: Restaurant, query: str | None) -> bool:
    """Case-insensitive substring match on name or cuisine; blank matches all."""
    needle = (query or "").strip().lower()
    if not needle:
        return True
    return needle in restaurant.name.lower() or needle in restaurant.cuisine.lower()


def _restaurant_out(restaurant: Restaurant, origin: Coordinate | None) -> RestaurantOut:
    distance, label = None, None
    if origin is not None:
        distance, label = describe_distance(
            origin.latitude, origin.longitude, restaurant.latitude, restaurant.longitude
        )
    return RestaurantOut(restaurant=restaurant, distance_km=distance, distance_label=label)


async def search_restaurants(
    backend: Backend,
    query: str | None = None,
    category: str | None = None,
    origin: Coordinate | None = None,
    radius_km: float | None = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> list[RestaurantOut]:
    """
    Active restaurants matching ``query`` and ``category``, nearest first
    when ``origin`` is given. Restaurants without a location are kept and
    hold their place in the backend's order.
    """
    restaurants = await backend.fetch_restaurants(limit)
    matching = [r for r in restaurants if matches_text(r, query)]
    ranked = rank(matching, origin, radius_km, category)
    logger.debug("Restaurant search %r/%r: %s of %s", query, category, len(ranked), len(restaurants))
    return [_restaurant_out(r, origin) for r in ranked]


async def restaurant_detail(backend: Backend, restaurant_id: str) -> RestaurantDetail:
    restaurant = await backend.fetch_restaurant(restaurant_id)
    return RestaurantDetail(
        restaurant=restaurant,
        badges=await backend.fetch_restaurant_badges(restaurant_id),
        favorites_count=await backend.restaurant_favorites_count(restaurant_id),
        favorited=await backend.is_restaurant_favorited(restaurant_id),
    )
