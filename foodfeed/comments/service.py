from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from ..backend.base import Backend
from ..errors import ValidationFailure
from ..optimistic import OptimisticUpdate
from .models import CommentAuthor, CommentNode
from .tree import build_comment_tree, next_depth

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 2000


def validate_comment_text(text: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationFailure("Comment cannot be empty")
    if len(cleaned) > MAX_COMMENT_LENGTH:
        raise ValidationFailure(f"Comment must be at most {MAX_COMMENT_LENGTH} characters")
    return cleaned


class CommentThread:
    """
    The comments of one video as a screen holds them.

    ``flat`` is the newest-first list from the backend; ``tree`` threads
    it on demand. Posting inserts a pending comment right away and
    removes it again if the backend rejects it.
    """

    def __init__(self, backend: Backend, video_id: str) -> None:
        self.backend = backend
        self.video_id = video_id
        self.flat: list[CommentNode] = []

    @property
    def tree(self) -> list[CommentNode]:
        return build_comment_tree(self.flat)

    def _set_flat(self, comments: list[CommentNode]) -> None:
        self.flat = comments

    async def refresh(self) -> list[CommentNode]:
        self.flat = await self.backend.fetch_comments_flat(self.video_id)
        return self.tree

    async def post(self, text: str, parent_id: str | None = None) -> CommentNode:
        text = validate_comment_text(text)
        user = self.backend.require_user()

        parent = next((c for c in self.flat if c.id == parent_id), None) if parent_id else None
        placeholder = CommentNode(
            id=f"pending-{uuid.uuid4().hex[:8]}",
            video_id=self.video_id,
            parent_id=parent_id,
            depth=next_depth(parent.depth) if parent else 0,
            text=text,
            author=CommentAuthor(id=user.id, name=user.name),
            created_at=datetime.now(timezone.utc),
            pending=True,
        )

        update = OptimisticUpdate(read=lambda: self.flat, write=self._set_flat)
        update.apply_local([placeholder, *self.flat])
        created = await update.commit_remote(
            lambda: self.backend.post_comment(self.video_id, text, parent_id)
        )

        self.flat = [created if c.id == placeholder.id else c for c in self.flat]
        logger.info("Comment %s posted on %s by %s", created.id, self.video_id, user.id)
        return created
