from __future__ import annotations

import logging

from ..backend.base import Backend
from ..optimistic import OptimisticUpdate
from .models import FavoriteState, LikeState

logger = logging.getLogger(__name__)


async def current_like_state(backend: Backend, video_id: str) -> LikeState:
    item = await backend.fetch_feed_item(video_id)
    return LikeState(video_id=video_id, liked=await backend.is_liked(video_id), likes_count=item.likes_count)


async def toggle_like(backend: Backend, state: LikeState) -> LikeState:
    """
    Flip ``state`` locally, then on the backend.

    On failure ``state`` is restored and the error re-raised. On success
    the backend's answer wins if it disagrees with the local guess.
    """
    before_liked, before_count = state.liked, state.likes_count

    def _write(value: tuple[bool, int]) -> None:
        state.liked, state.likes_count = value

    update = OptimisticUpdate(read=lambda: (state.liked, state.likes_count), write=_write)
    update.apply_local((not before_liked, max(0, before_count + (-1 if before_liked else 1))))
    liked = await update.commit_remote(lambda: backend.toggle_like(state.video_id))

    if liked != state.liked:
        logger.info("Like state for %s reconciled with backend: %s", state.video_id, liked)
        delta = int(liked) - int(before_liked)
        _write((liked, max(0, before_count + delta)))
    return state


async def toggle_favorite(backend: Backend, state: FavoriteState) -> FavoriteState:
    def _write(value: bool) -> None:
        state.favorited = value

    update = OptimisticUpdate(read=lambda: state.favorited, write=_write)
    update.apply_local(not state.favorited)
    state.favorited = await update.commit_remote(lambda: backend.toggle_favorite(state.restaurant_id))
    return state
