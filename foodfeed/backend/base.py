from __future__ import annotations

from abc import ABC, abstractmethod

from ..auth.models import AuthUser
from ..bookings.models import BookingCreate, BookingRecord, BookingStatus
from ..comments.models import CommentNode
from ..engagement.models import Badge, RestaurantSummary
from ..errors import NotAuthenticated
from ..feed.models import Coordinate, FeedItem
from ..notifications.models import Notification
from ..restaurants.models import Restaurant
from ..reviews.models import Review, ReviewCreate


class Backend(ABC):
    """
    Contract of the hosted backend the service talks to.

    Instances are bound to at most one signed-in user; :meth:`as_user`
    returns a sibling bound to another user and sharing the same
    connection resources.
    """

    def __init__(self, user: AuthUser | None = None) -> None:
        self.user = user

    @abstractmethod
    def as_user(self, user: AuthUser | None) -> "Backend":
        ...

    def require_user(self) -> AuthUser:
        if self.user is None:
            raise NotAuthenticated("Not authenticated")
        return self.user

    async def aclose(self) -> None:
        return None

    # ── auth ────────────────────────────────────────────────────────────

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthUser:
        ...

    # ── feed ────────────────────────────────────────────────────────────

    @abstractmethod
    async def fetch_feed_page(
        self,
        limit: int,
        offset: int,
        origin: Coordinate | None = None,
        radius_km: float | None = None,
        category: str | None = None,
    ) -> list[FeedItem]:
        """Return at most ``limit`` items, newest first; fewer means last page."""

    @abstractmethod
    async def fetch_feed_item(self, item_id: str) -> FeedItem:
        ...

    @abstractmethod
    async def list_categories(self) -> list[str]:
        ...

    # ── bookings ────────────────────────────────────────────────────────

    @abstractmethod
    async def fetch_bookings_for_owner(self, owner_id: str) -> list[BookingRecord]:
        ...

    @abstractmethod
    async def fetch_bookings_for_user(self, user_id: str) -> list[BookingRecord]:
        ...

    @abstractmethod
    async def create_booking(self, booking: BookingCreate) -> BookingRecord:
        ...

    @abstractmethod
    async def mutate_booking_status(self, booking_id: str, new_status: BookingStatus) -> BookingRecord:
        ...

    # ── comments & likes ────────────────────────────────────────────────

    @abstractmethod
    async def fetch_comments_flat(self, feed_item_id: str) -> list[CommentNode]:
        """Un-threaded comments, newest first."""

    @abstractmethod
    async def post_comment(self, feed_item_id: str, text: str, parent_id: str | None = None) -> CommentNode:
        ...

    @abstractmethod
    async def toggle_like(self, video_id: str) -> bool:
        """Flip the current user's like and return the resulting state."""

    @abstractmethod
    async def is_liked(self, video_id: str) -> bool:
        ...

    # ── restaurants ─────────────────────────────────────────────────────

    @abstractmethod
    async def fetch_restaurants(self, limit: int = 50) -> list[Restaurant]:
        """Active restaurants with their published videos embedded."""

    @abstractmethod
    async def fetch_restaurant(self, restaurant_id: str) -> Restaurant:
        """One active restaurant, videos newest first; NotFound otherwise."""

    @abstractmethod
    async def fetch_restaurant_badges(self, restaurant_id: str) -> list[Badge]:
        ...

    @abstractmethod
    async def is_restaurant_favorited(self, restaurant_id: str) -> bool:
        """False when nobody is signed in."""

    @abstractmethod
    async def restaurant_favorites_count(self, restaurant_id: str) -> int:
        ...

    @abstractmethod
    async def toggle_favorite(self, restaurant_id: str) -> bool:
        ...

    @abstractmethod
    async def fetch_favorites(self) -> list[RestaurantSummary]:
        ...

    @abstractmethod
    async def fetch_reviews(self, restaurant_id: str) -> list[Review]:
        ...

    @abstractmethod
    async def create_review(self, review: ReviewCreate) -> Review:
        ...

    # ── notifications & badges ──────────────────────────────────────────

    @abstractmethod
    async def fetch_notifications(self) -> list[Notification]:
        ...

    @abstractmethod
    async def unread_notification_count(self) -> int:
        ...

    @abstractmethod
    async def mark_notification_read(self, notification_id: str) -> None:
        ...

    @abstractmethod
    async def fetch_user_badges(self, user_id: str) -> list[Badge]:
        ...

    # ── storage ─────────────────────────────────────────────────────────

    @abstractmethod
    async def upload_media(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` unmodified and return its public URL."""
