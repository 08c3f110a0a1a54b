from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Review(BaseModel):
    id: str
    restaurant_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str
    images: list[str] = Field(default_factory=list)
    author_name: str | None = None
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Review":
        profile = row.get("profiles") or {}
        return cls(
            id=str(row["id"]),
            restaurant_id=str(row["restaurant_id"]),
            user_id=str(row["user_id"]),
            rating=row["rating"],
            comment=row.get("comment") or "",
            images=row.get("images") or [],
            author_name=profile.get("name"),
            created_at=row["created_at"],
        )


class ReviewCreate(BaseModel):
    """
    Deliberately loose: rating and comment are checked by
    :func:`foodfeed.reviews.service.validate_review` so the caller gets a
    single, readable validation message.
    """

    restaurant_id: str = Field(..., min_length=1)
    rating: int
    comment: str = ""
    images: list[str] = Field(default_factory=list)
