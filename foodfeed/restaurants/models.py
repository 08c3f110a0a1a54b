from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..engagement.models import Badge
from ..feed.models import Coordinate, FeedItem, finite_or_none


class Restaurant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    cuisine: str = ""
    description: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    owner_id: str | None = None
    is_active: bool = True
    rating: float | None = None
    review_count: int = 0
    price_range: str | None = None
    image_url: str | None = None
    videos: list[FeedItem] = Field(default_factory=list)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def drop_non_finite(cls, value: Any) -> Any:
        return finite_or_none(value)

    @property
    def category(self) -> str:
        return self.cuisine

    @property
    def coordinate(self) -> Coordinate | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Restaurant":
        """Build from a ``restaurants`` row, with or without embedded ``videos``."""
        plain = {key: value for key, value in row.items() if key != "videos"}
        videos = [
            FeedItem.from_row({**video, "restaurant_id": row["id"], "restaurants": plain})
            for video in row.get("videos") or []
            if video.get("status", "published") == "published"
        ]
        videos.sort(key=lambda item: item.created_at, reverse=True)
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            cuisine=row.get("cuisine") or "",
            description=row.get("description"),
            address=row.get("address"),
            city=row.get("city"),
            country=row.get("country"),
            latitude=row.get("latitude"),
            longitude=row.get("longitude"),
            owner_id=None if row.get("owner_id") is None else str(row["owner_id"]),
            is_active=bool(row.get("is_active", True)),
            rating=row.get("rating"),
            review_count=row.get("review_count") or 0,
            price_range=row.get("price_range"),
            image_url=row.get("image_url"),
            videos=videos,
        )


# ── API payloads ─────────────────────────────────────────────────────────


class RestaurantOut(BaseModel):
    restaurant: Restaurant
    distance_km: float | None = None
    distance_label: str | None = None


class RestaurantDetail(BaseModel):
    restaurant: Restaurant
    badges: list[Badge]
    favorites_count: int
    favorited: bool
