from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALL_CATEGORIES = "all"


def finite_or_none(value: Any) -> Any:
    """NaN and infinite coordinates mean the location is unknown."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class FeedItem(BaseModel):
    """One published restaurant video as returned by a feed page."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: str = ""
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime
    restaurant_id: str | None = None
    restaurant_name: str | None = None
    title: str = ""
    description: str | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    likes_count: int = 0
    comments_count: int = 0
    views_count: int = 0

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def drop_non_finite(cls, value: Any) -> Any:
        return finite_or_none(value)

    @property
    def coordinate(self) -> Coordinate | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "FeedItem":
        """Build from a ``videos`` row with its ``restaurants`` row embedded."""
        restaurant = row.get("restaurants") or {}
        restaurant_id = row.get("restaurant_id") or restaurant.get("id")
        return cls(
            id=str(row["id"]),
            category=restaurant.get("cuisine") or row.get("cuisine") or "",
            latitude=restaurant.get("latitude"),
            longitude=restaurant.get("longitude"),
            created_at=row["created_at"],
            restaurant_id=None if restaurant_id is None else str(restaurant_id),
            restaurant_name=restaurant.get("name"),
            title=row.get("title") or "",
            description=row.get("description"),
            video_url=row.get("video_url"),
            thumbnail_url=row.get("thumbnail_url"),
            likes_count=row.get("likes_count") or 0,
            comments_count=row.get("comments_count") or 0,
            views_count=row.get("views_count") or 0,
        )


class FeedFilter(BaseModel):
    """Everything a feed query is scoped by, besides the page cursor."""

    model_config = ConfigDict(frozen=True)

    origin: Coordinate | None = None
    radius_km: float | None = Field(default=None, gt=0)
    category: str | None = None

    @property
    def category_restriction(self) -> str | None:
        """The category to filter on, or ``None`` for the "all" sentinel."""
        if self.category is None:
            return None
        value = self.category.strip()
        if not value or value.lower() == ALL_CATEGORIES:
            return None
        return value


class LoaderState(str, Enum):
    idle = "idle"
    loading = "loading"
    ready = "ready"
    loading_more = "loading_more"
    exhausted = "exhausted"


# ── API payloads ─────────────────────────────────────────────────────────


class FeedReloadRequest(BaseModel):
    lat: float | None = Field(default=None, ge=-90.0, le=90.0)
    lng: float | None = Field(default=None, ge=-180.0, le=180.0)
    radius_km: float | None = Field(default=None, gt=0, le=20000)
    category: str | None = Field(default=None, description='Cuisine filter, "All" for none')
    page_size: int | None = Field(default=None, ge=1, le=50)

    def to_filter(self) -> FeedFilter:
        origin = None
        if self.lat is not None and self.lng is not None:
            origin = Coordinate(latitude=self.lat, longitude=self.lng)
        return FeedFilter(origin=origin, radius_km=self.radius_km, category=self.category)


class FeedItemOut(BaseModel):
    item: FeedItem
    distance_km: float | None = None
    distance_label: str | None = None
    views_label: str


class FeedPageResponse(BaseModel):
    items: list[FeedItemOut]
    has_more: bool
    state: LoaderState
    page: int
