from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CommentAuthor(BaseModel):
    id: str
    name: str = ""
    avatar_url: str | None = None


class CommentNode(BaseModel):
    id: str
    video_id: str | None = None
    parent_id: str | None = None
    depth: int = Field(default=0, ge=0)
    text: str
    author: CommentAuthor | None = None
    created_at: datetime
    replies: list[CommentNode] = Field(default_factory=list)
    pending: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CommentNode":
        profile = row.get("profiles") or {}
        author = None
        if profile or row.get("user_id"):
            author = CommentAuthor(
                id=str(profile.get("id") or row.get("user_id")),
                name=profile.get("name") or "",
                avatar_url=profile.get("avatar_url"),
            )
        parent_id = row.get("parent_id")
        return cls(
            id=str(row["id"]),
            video_id=None if row.get("video_id") is None else str(row["video_id"]),
            parent_id=None if parent_id is None else str(parent_id),
            depth=row.get("depth") or 0,
            text=row.get("text") or "",
            author=author,
            created_at=row["created_at"],
        )


class CommentCreate(BaseModel):
    text: str = Field(..., max_length=2000)
    parent_id: str | None = None


class CommentThreadResponse(BaseModel):
    video_id: str
    comments: list[CommentNode]
    total: int
