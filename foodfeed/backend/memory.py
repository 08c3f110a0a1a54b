from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import bcrypt

from ..auth.models import AccountType, AuthUser
from ..bookings.models import BookingCreate, BookingRecord, BookingStatus
from ..comments.models import CommentNode
from ..comments.tree import next_depth
from ..engagement.models import Badge, RestaurantSummary
from ..errors import NotAuthenticated, NotAuthorized, NotFound, ValidationFailure
from ..feed.models import Coordinate, FeedItem
from ..notifications.models import Notification
from ..restaurants.models import Restaurant
from ..reviews.models import Review, ReviewCreate
from .base import Backend
from .seed import load_seed

logger = logging.getLogger(__name__)

_TABLES = (
    "profiles", "restaurants", "videos", "bookings", "comments",
    "reviews", "notifications", "user_badges", "restaurant_badges", "likes", "favorites",
)
_REVIEWABLE = {BookingStatus.confirmed.value, BookingStatus.completed.value}


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class InMemoryBackend(Backend):
    """
    Process-local stand-in for the hosted backend.

    Rows are kept as plain dicts in the same shape the REST API returns
    them, including embedded ``restaurants`` / ``profiles`` objects, and
    pass through the same ``from_row`` normalisation as real responses.
    Row-level rules the hosted database enforces (ownership checks,
    review eligibility, notification triggers) are reproduced here.
    """

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None, user: AuthUser | None = None) -> None:
        super().__init__(user)
        self._db = tables if tables is not None else {}
        for table in _TABLES:
            self._db.setdefault(table, [])

    @classmethod
    def seeded(cls, tables: dict[str, list[dict[str, Any]]] | None = None) -> "InMemoryBackend":
        """Build from the bundled seed CSVs, hashing the demo passwords."""
        data = tables if tables is not None else load_seed()
        for profile in data.get("profiles", []):
            plain = profile.pop("password", None)
            if plain and not profile.get("password_hash"):
                profile["password_hash"] = _hash_password(plain)
        backend = cls(data)
        logger.info(
            "In-memory backend seeded: %s",
            ", ".join(f"{table}={len(rows)}" for table, rows in backend._db.items()),
        )
        return backend

    def as_user(self, user: AuthUser | None) -> "InMemoryBackend":
        return InMemoryBackend(self._db, user=user)

    # ── row helpers ─────────────────────────────────────────────────────

    def _find(self, table: str, row_id: str) -> dict[str, Any] | None:
        return next((row for row in self._db[table] if str(row.get("id")) == str(row_id)), None)

    def _get(self, table: str, row_id: str, what: str) -> dict[str, Any]:
        row = self._find(table, row_id)
        if row is None:
            raise NotFound(f"{what} not found")
        return row

    def _profile_embed(self, user_id: str | None) -> dict[str, Any] | None:
        profile = self._find("profiles", user_id) if user_id else None
        if profile is None:
            return None
        return {"id": profile["id"], "name": profile.get("name"), "avatar_url": profile.get("avatar_url")}

    def _booking_row(self, booking: dict[str, Any]) -> dict[str, Any]:
        restaurant = self._find("restaurants", booking["restaurant_id"]) or {}
        return {
            **booking,
            "restaurants": {
                "id": restaurant.get("id"),
                "name": restaurant.get("name"),
                "owner_id": restaurant.get("owner_id"),
            },
            "profiles": self._profile_embed(booking.get("user_id")),
        }

    def _notify(self, user_id: str | None, kind: str, title: str, message: str, data: dict[str, Any]) -> None:
        if not user_id:
            return
        self._db["notifications"].append({
            "id": _new_id("n"),
            "user_id": user_id,
            "type": kind,
            "title": title,
            "message": message,
            "data": data,
            "read": False,
            "created_at": _now(),
        })

    # ── auth ────────────────────────────────────────────────────────────

    async def sign_in(self, email: str, password: str) -> AuthUser:
        profile = next(
            (p for p in self._db["profiles"] if (p.get("email") or "").lower() == email.strip().lower()),
            None,
        )
        hashed = (profile or {}).get("password_hash")
        if not hashed or not _verify_password(password, hashed):
            raise NotAuthenticated("Invalid credentials")
        return AuthUser(
            id=profile["id"],
            name=profile.get("name") or "",
            email=profile.get("email"),
            account_type=AccountType(profile.get("account_type") or "user"),
        )

    # ── feed ────────────────────────────────────────────────────────────

    def _published_rows(self, category: str | None = None) -> list[dict[str, Any]]:
        rows = []
        for video in self._db["videos"]:
            if video.get("status") != "published":
                continue
            restaurant = self._find("restaurants", video.get("restaurant_id"))
            if not restaurant or not restaurant.get("is_active"):
                continue
            if category and category.lower() not in (restaurant.get("cuisine") or "").lower():
                continue
            rows.append({**video, "restaurants": restaurant})
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return rows

    async def fetch_feed_page(
        self,
        limit: int,
        offset: int,
        origin: Coordinate | None = None,
        radius_km: float | None = None,
        category: str | None = None,
    ) -> list[FeedItem]:
        rows = self._published_rows(category)[offset:offset + limit]
        return [FeedItem.from_row(row) for row in rows]

    async def fetch_feed_item(self, item_id: str) -> FeedItem:
        row = next((r for r in self._published_rows() if r["id"] == item_id), None)
        if row is None:
            raise NotFound("Video not found or restaurant is inactive")
        return FeedItem.from_row(row)

    async def list_categories(self) -> list[str]:
        return sorted({
            r["cuisine"] for r in self._db["restaurants"] if r.get("is_active") and r.get("cuisine")
        })

    # ── bookings ────────────────────────────────────────────────────────

    async def fetch_bookings_for_owner(self, owner_id: str) -> list[BookingRecord]:
        user = self.require_user()
        if owner_id != user.id:
            raise NotAuthorized("Cannot read another owner's bookings")
        owned = {r["id"] for r in self._db["restaurants"] if r.get("owner_id") == owner_id}
        rows = [self._booking_row(b) for b in self._db["bookings"] if b.get("restaurant_id") in owned]
        rows.sort(key=lambda row: (row.get("booking_date") or "", row.get("booking_time") or ""))
        return [BookingRecord.from_row(row) for row in rows]

    async def fetch_bookings_for_user(self, user_id: str) -> list[BookingRecord]:
        user = self.require_user()
        if user_id != user.id:
            raise NotAuthorized("Cannot read another user's bookings")
        rows = [self._booking_row(b) for b in self._db["bookings"] if b.get("user_id") == user_id]
        rows.sort(key=lambda row: row.get("created_at") or "", reverse=True)
        return [BookingRecord.from_row(row) for row in rows]

    async def create_booking(self, booking: BookingCreate) -> BookingRecord:
        user = self.require_user()
        restaurant = self._get("restaurants", booking.restaurant_id, "Restaurant")
        if not restaurant.get("is_active"):
            raise NotFound("Restaurant not found")

        row = {
            "id": _new_id("b"),
            "restaurant_id": booking.restaurant_id,
            "user_id": user.id,
            "booking_date": booking.booking_date.isoformat(),
            "booking_time": booking.booking_time,
            "party_size": booking.party_size,
            "status": BookingStatus.pending.value,
            "special_requests": booking.special_requests,
            "created_at": _now(),
        }
        record = BookingRecord.from_row(self._booking_row(row))
        if record.booking_instant is None:
            raise ValidationFailure("Booking needs a valid date and time")

        self._db["bookings"].append(row)
        self._notify(
            restaurant.get("owner_id"), "booking_request", "New booking",
            f"{user.name or 'A guest'} requested a table for {booking.party_size}",
            {"booking_id": row["id"]},
        )
        logger.info("Booking %s created by %s", row["id"], user.id)
        return record

    async def mutate_booking_status(self, booking_id: str, new_status: BookingStatus) -> BookingRecord:
        user = self.require_user()
        booking = self._get("bookings", booking_id, "Booking")
        restaurant = self._find("restaurants", booking["restaurant_id"]) or {}
        if user.id not in (booking.get("user_id"), restaurant.get("owner_id")):
            raise NotAuthorized("Not authorized to update this booking")

        booking["status"] = BookingStatus(new_status).value
        if user.id != booking.get("user_id"):
            self._notify(
                booking.get("user_id"), f"booking_{booking['status']}", "Booking updated",
                f"{restaurant.get('name', 'The restaurant')} marked your booking {booking['status']}",
                {"booking_id": booking_id},
            )
        logger.info("Booking %s set to %s by %s", booking_id, booking["status"], user.id)
        return BookingRecord.from_row(self._booking_row(booking))

    # ── comments & likes ────────────────────────────────────────────────

    async def fetch_comments_flat(self, feed_item_id: str) -> list[CommentNode]:
        rows = [
            {**c, "profiles": self._profile_embed(c.get("user_id"))}
            for c in self._db["comments"]
            if c.get("video_id") == feed_item_id
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [CommentNode.from_row(row) for row in rows]

    async def post_comment(self, feed_item_id: str, text: str, parent_id: str | None = None) -> CommentNode:
        user = self.require_user()
        video = self._get("videos", feed_item_id, "Video")
        depth = 0
        if parent_id:
            depth = next_depth(self._get("comments", parent_id, "Parent comment").get("depth"))

        row = {
            "id": _new_id("c"),
            "video_id": feed_item_id,
            "user_id": user.id,
            "parent_id": parent_id,
            "depth": depth,
            "text": text,
            "created_at": _now(),
        }
        self._db["comments"].append(row)
        video["comments_count"] = (video.get("comments_count") or 0) + 1
        return CommentNode.from_row({**row, "profiles": self._profile_embed(user.id)})

    async def toggle_like(self, video_id: str) -> bool:
        user = self.require_user()
        video = self._get("videos", video_id, "Video")
        likes = self._db["likes"]
        existing = next((like for like in likes if like["video_id"] == video_id and like["user_id"] == user.id), None)
        if existing:
            likes.remove(existing)
            video["likes_count"] = max(0, (video.get("likes_count") or 0) - 1)
            return False
        likes.append({"id": _new_id("l"), "video_id": video_id, "user_id": user.id, "created_at": _now()})
        video["likes_count"] = (video.get("likes_count") or 0) + 1
        return True

    async def is_liked(self, video_id: str) -> bool:
        if self.user is None:
            return False
        return any(like["video_id"] == video_id and like["user_id"] == self.user.id for like in self._db["likes"])

    # ── restaurants ─────────────────────────────────────────────────────

    def _restaurant_row(self, restaurant: dict[str, Any]) -> dict[str, Any]:
        videos = [v for v in self._db["videos"] if v.get("restaurant_id") == restaurant["id"]]
        return {**restaurant, "videos": videos}

    async def fetch_restaurants(self, limit: int = 50) -> list[Restaurant]:
        active = [r for r in self._db["restaurants"] if r.get("is_active")][:limit]
        return [Restaurant.from_row(self._restaurant_row(r)) for r in active]

    async def fetch_restaurant(self, restaurant_id: str) -> Restaurant:
        restaurant = self._get("restaurants", restaurant_id, "Restaurant")
        if not restaurant.get("is_active"):
            raise NotFound("Restaurant not found")
        return Restaurant.from_row(self._restaurant_row(restaurant))

    async def fetch_restaurant_badges(self, restaurant_id: str) -> list[Badge]:
        rows = sorted(
            (b for b in self._db["restaurant_badges"] if b.get("restaurant_id") == restaurant_id),
            key=lambda b: b["awarded_at"],
            reverse=True,
        )
        return [Badge(**row) for row in rows]

    async def is_restaurant_favorited(self, restaurant_id: str) -> bool:
        if self.user is None:
            return False
        return any(
            f["restaurant_id"] == restaurant_id and f["user_id"] == self.user.id for f in self._db["favorites"]
        )

    async def restaurant_favorites_count(self, restaurant_id: str) -> int:
        return sum(1 for f in self._db["favorites"] if f["restaurant_id"] == restaurant_id)

    async def toggle_favorite(self, restaurant_id: str) -> bool:
        user = self.require_user()
        self._get("restaurants", restaurant_id, "Restaurant")
        favorites = self._db["favorites"]
        existing = next(
            (f for f in favorites if f["restaurant_id"] == restaurant_id and f["user_id"] == user.id), None,
        )
        if existing:
            favorites.remove(existing)
            return False
        favorites.append({"id": _new_id("f"), "restaurant_id": restaurant_id, "user_id": user.id, "created_at": _now()})
        return True

    async def fetch_favorites(self) -> list[RestaurantSummary]:
        user = self.require_user()
        rows = sorted(
            (f for f in self._db["favorites"] if f["user_id"] == user.id),
            key=lambda f: f["created_at"],
            reverse=True,
        )
        summaries = []
        for favorite in rows:
            restaurant = self._find("restaurants", favorite["restaurant_id"])
            if restaurant is None:
                continue
            summaries.append(RestaurantSummary(
                id=restaurant["id"],
                name=restaurant.get("name") or "",
                cuisine=restaurant.get("cuisine") or "",
                city=restaurant.get("city"),
                country=restaurant.get("country"),
                rating=restaurant.get("rating"),
                review_count=restaurant.get("review_count") or 0,
                price_range=restaurant.get("price_range"),
                image_url=restaurant.get("image_url"),
                favorited_at=favorite["created_at"],
            ))
        return summaries

    async def fetch_reviews(self, restaurant_id: str) -> list[Review]:
        rows = [
            {**r, "profiles": self._profile_embed(r.get("user_id"))}
            for r in self._db["reviews"]
            if r.get("restaurant_id") == restaurant_id
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [Review.from_row(row) for row in rows]

    async def create_review(self, review: ReviewCreate) -> Review:
        user = self.require_user()
        restaurant = self._get("restaurants", review.restaurant_id, "Restaurant")

        visited = any(
            b.get("restaurant_id") == review.restaurant_id
            and b.get("user_id") == user.id
            and b.get("status") in _REVIEWABLE
            for b in self._db["bookings"]
        )
        if not visited:
            raise NotAuthorized("You can only review restaurants after you have visited with a confirmed booking")
        if restaurant.get("owner_id") == user.id:
            raise NotAuthorized("You cannot review your own restaurant")
        if any(r.get("restaurant_id") == review.restaurant_id and r.get("user_id") == user.id for r in self._db["reviews"]):
            raise ValidationFailure("You have already reviewed this restaurant")

        row = {
            "id": _new_id("rv"),
            "restaurant_id": review.restaurant_id,
            "user_id": user.id,
            "rating": review.rating,
            "comment": review.comment.strip(),
            "images": list(review.images),
            "created_at": _now(),
        }
        self._db["reviews"].append(row)

        ratings = [r["rating"] for r in self._db["reviews"] if r.get("restaurant_id") == review.restaurant_id]
        restaurant["rating"] = round(sum(ratings) / len(ratings), 1)
        restaurant["review_count"] = len(ratings)
        return Review.from_row({**row, "profiles": self._profile_embed(user.id)})

    # ── notifications & badges ──────────────────────────────────────────

    async def fetch_notifications(self) -> list[Notification]:
        user = self.require_user()
        rows = sorted(
            (n for n in self._db["notifications"] if n.get("user_id") == user.id),
            key=lambda n: n["created_at"],
            reverse=True,
        )
        return [Notification(**{**n, "data": n.get("data") or {}}) for n in rows]

    async def unread_notification_count(self) -> int:
        if self.user is None:
            return 0
        return sum(1 for n in self._db["notifications"] if n.get("user_id") == self.user.id and not n.get("read"))

    async def mark_notification_read(self, notification_id: str) -> None:
        user = self.require_user()
        notification = self._get("notifications", notification_id, "Notification")
        if notification.get("user_id") != user.id:
            raise NotFound("Notification not found")
        notification["read"] = True

    async def fetch_user_badges(self, user_id: str) -> list[Badge]:
        rows = sorted(
            (b for b in self._db["user_badges"] if b.get("user_id") == user_id),
            key=lambda b: b["awarded_at"],
            reverse=True,
        )
        return [Badge(**row) for row in rows]

    # ── storage ─────────────────────────────────────────────────────────

    async def upload_media(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self.require_user()
        media = self._db.setdefault("media", [])
        media.append({"id": f"{bucket}/{path}", "content_type": content_type, "data": data})
        return f"memory://{bucket}/{path}"
