"""
Optimistic local mutations with rollback.

A screen-side value is changed immediately, the remote call is issued,
and if that call fails the value goes back to exactly what it was before
the local change. On success the caller may reconcile with whatever the
server returned.

    update = OptimisticUpdate(read=lambda: state.liked, write=state.set_liked)
    update.apply_local(True)
    await update.commit_remote(lambda: backend.toggle_like(video_id))
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class OptimisticPhase(str, Enum):
    idle = "idle"
    applied = "applied"
    committed = "committed"
    rolled_back = "rolled_back"


class OptimisticUpdate(Generic[T]):
    def __init__(self, read: Callable[[], T], write: Callable[[T], None]) -> None:
        self._read = read
        self._write = write
        self._snapshot: T | None = None
        self.phase = OptimisticPhase.idle

    def apply_local(self, value: T) -> None:
        if self.phase == OptimisticPhase.applied:
            raise RuntimeError("optimistic update already applied")
        self._snapshot = self._read()
        self._write(value)
        self.phase = OptimisticPhase.applied

    async def commit_remote(self, call: Callable[[], Awaitable[R]]) -> R:
        """Run the remote call; roll back and re-raise if it fails."""
        if self.phase != OptimisticPhase.applied:
            raise RuntimeError("apply_local() must run before commit_remote()")
        try:
            result = await call()
        except Exception:
            logger.warning("Remote call failed, rolling back optimistic change", exc_info=True)
            self.rollback_local()
            raise
        self.phase = OptimisticPhase.committed
        return result

    def rollback_local(self) -> None:
        if self.phase != OptimisticPhase.applied:
            return
        self._write(self._snapshot)  # type: ignore[arg-type]
        self.phase = OptimisticPhase.rolled_back
