from __future__ import annotations

from functools import cmp_to_key
from typing import Iterable, Protocol, TypeVar

from ..feed.models import ALL_CATEGORIES, Coordinate
from .distance import distance_km


class Placed(Protocol):
    """Anything with a cuisine category and an optional location."""

    @property
    def category(self) -> str: ...

    @property
    def latitude(self) -> float | None: ...

    @property
    def longitude(self) -> float | None: ...


T = TypeVar("T", bound=Placed)


def _distance_from(origin: Coordinate, item: Placed) -> float | None:
    if item.latitude is None or item.longitude is None:
        return None
    return distance_km(origin.latitude, origin.longitude, item.latitude, item.longitude)


def matches_category(item: Placed, category_filter: str | None) -> bool:
    """Loose, case-insensitive substring match ("Indian" matches "North Indian")."""
    if category_filter is None:
        return True
    needle = category_filter.strip().lower()
    if not needle or needle == ALL_CATEGORIES:
        return True
    return needle in (item.category or "").lower()


def rank(
    items: Iterable[T],
    origin: Coordinate | None,
    radius_km: float | None,
    category_filter: str | None,
) -> list[T]:
    """
    Filter feed items (or restaurants) by category and radius, then order
    them by distance.

    Items without coordinates are never dropped by the radius filter and
    compare equal to every other item while sorting, so they keep their
    position relative to the surrounding input order.
    """
    candidates = [item for item in items if matches_category(item, category_filter)]

    if origin is None:
        return candidates

    distances = {id(item): _distance_from(origin, item) for item in candidates}

    if radius_km is not None:
        candidates = [
            item
            for item in candidates
            if distances[id(item)] is None or distances[id(item)] <= radius_km
        ]

    def _compare(a: T, b: T) -> int:
        dist_a = distances[id(a)]
        dist_b = distances[id(b)]
        if dist_a is None or dist_b is None:
            return 0
        if dist_a < dist_b:
            return -1
        if dist_a > dist_b:
            return 1
        return 0

    return sorted(candidates, key=cmp_to_key(_compare))
