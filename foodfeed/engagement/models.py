from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class LikeState(BaseModel):
    video_id: str
    liked: bool
    likes_count: int


class FavoriteState(BaseModel):
    restaurant_id: str
    favorited: bool


class RestaurantSummary(BaseModel):
    id: str
    name: str
    cuisine: str = ""
    city: str | None = None
    country: str | None = None
    rating: float | None = None
    review_count: int = 0
    price_range: str | None = None
    image_url: str | None = None
    favorited_at: datetime | None = None


class Badge(BaseModel):
    id: str
    name: str
    icon: str | None = None
    color: str | None = None
    description: str | None = None
    awarded_at: datetime
