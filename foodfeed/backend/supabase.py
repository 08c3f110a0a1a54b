from __future__ import annotations

import logging
from typing import Any

import httpx

from ..auth.models import AccountType, AuthUser
from ..bookings.models import BookingCreate, BookingRecord, BookingStatus
from ..comments.models import CommentNode
from ..comments.tree import next_depth
from ..engagement.models import Badge, RestaurantSummary
from ..errors import (
    NotAuthenticated,
    NotAuthorized,
    NotFound,
    TransientNetworkFailure,
    ValidationFailure,
)
from ..feed.models import Coordinate, FeedItem
from ..notifications.models import Notification
from ..restaurants.models import Restaurant
from ..reviews.models import Review, ReviewCreate
from .base import Backend
from .config import DEFAULT_BACKEND_CONFIG, BackendConfig

logger = logging.getLogger(__name__)

_VIDEO_SELECT = (
    "*,restaurants!inner(id,name,cuisine,price_range,city,country,rating,"
    "address,latitude,longitude,owner_id,is_active,image_url)"
)
_BOOKING_SELECT = "*,restaurants(id,name,owner_id),profiles(name)"
_OWNER_BOOKING_SELECT = "*,restaurants!inner(id,name,owner_id),profiles(name)"
_COMMENT_SELECT = "id,video_id,user_id,parent_id,depth,text,created_at,profiles(id,name,avatar_url)"
_FAVORITE_SELECT = (
    "restaurant_id,created_at,restaurants(id,name,cuisine,city,country,rating,"
    "review_count,image_url,price_range)"
)
_RESTAURANT_SELECT = "*,videos(*)"
_BADGE_SELECT = "*,badge_definitions(name,icon,color,description)"
_SINGLE = {"Accept": "application/vnd.pgrst.object+json"}
_RETURN_ROW = {"Prefer": "return=representation"}

# Postgres error codes PostgREST passes through
_UNIQUE_VIOLATION = "23505"
_CHECK_VIOLATION = "23514"
_NO_ROWS = "PGRST116"
_INVALID_LOGIN = {"invalid_grant", "invalid_credentials"}


def _badge(row: dict[str, Any]) -> Badge:
    return Badge(
        id=str(row["id"]),
        awarded_at=row["awarded_at"],
        **(row.get("badge_definitions") or {"name": ""}),
    )


class SupabaseBackend(Backend):
    """Backend adapter speaking to Supabase's REST, auth and storage endpoints."""

    def __init__(
        self,
        config: BackendConfig = DEFAULT_BACKEND_CONFIG,
        user: AuthUser | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(user)
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.supabase_url,
            timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
        )

    def as_user(self, user: AuthUser | None) -> "SupabaseBackend":
        return SupabaseBackend(self.config, user=user, client=self._client)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
            logger.info("Supabase client closed")

    # ── transport ───────────────────────────────────────────────────────

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        token = (self.user.access_token if self.user else None) or self.config.supabase_anon_key
        headers = {
            "apikey": self.config.supabase_anon_key,
            "Authorization": f"Bearer {token}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                content=content,
                headers=self._headers(headers),
            )
        except httpx.TransportError as exc:
            logger.warning("Backend request %s %s failed", method, path, exc_info=True)
            raise TransientNetworkFailure(f"Backend unreachable: {exc}") from exc

        if response.status_code >= 400:
            self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        code = str(body.get("code", "")) if isinstance(body, dict) else ""
        message = (body.get("message") if isinstance(body, dict) else None) or response.text

        logger.warning("Backend returned %s (%s): %s", response.status_code, code or "-", message)
        if isinstance(body, dict) and ({body.get("error"), body.get("error_code")} & _INVALID_LOGIN):
            raise NotAuthenticated("Invalid credentials")
        if response.status_code == 401:
            raise NotAuthenticated(message)
        if response.status_code == 403:
            raise NotAuthorized(message)
        if response.status_code == 404 or code == _NO_ROWS:
            raise NotFound(message)
        if code == _UNIQUE_VIOLATION:
            raise ValidationFailure("Already exists")
        if code == _CHECK_VIOLATION:
            raise ValidationFailure("Invalid data")
        raise TransientNetworkFailure(f"Backend error {response.status_code}: {message}")

    async def _select(self, table: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self._request("GET", f"/rest/v1/{table}", params=params)
        return response.json() or []

    async def _select_one(self, table: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("GET", f"/rest/v1/{table}", params=params, headers=_SINGLE)
        return response.json()

    async def _insert_one(self, table: str, row: dict[str, Any], select: str = "*") -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"select": select},
            json=row,
            headers={**_RETURN_ROW, **_SINGLE},
        )
        return response.json()

    # ── auth ────────────────────────────────────────────────────────────

    async def sign_in(self, email: str, password: str) -> AuthUser:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = response.json()
        account = session.get("user") or {}
        user = AuthUser(id=str(account["id"]), email=account.get("email"), access_token=session["access_token"])

        profile = await self.as_user(user)._select_one(
            "profiles", {"id": f"eq.{user.id}", "select": "id,name,account_type"}
        )
        return user.model_copy(update={
            "name": profile.get("name") or "",
            "account_type": AccountType(profile.get("account_type") or "user"),
        })

    # ── feed ────────────────────────────────────────────────────────────

    async def fetch_feed_page(
        self,
        limit: int,
        offset: int,
        origin: Coordinate | None = None,
        radius_km: float | None = None,
        category: str | None = None,
    ) -> list[FeedItem]:
        # Radius and distance ordering are applied by the caller; the
        # backend only scopes by publication status and cuisine.
        params: dict[str, Any] = {
            "select": _VIDEO_SELECT,
            "status": "eq.published",
            "restaurants.is_active": "eq.true",
            "order": "created_at.desc",
            "offset": offset,
            "limit": limit,
        }
        if category:
            params["restaurants.cuisine"] = f"ilike.*{category}*"
        rows = await self._select("videos", params)
        return [FeedItem.from_row(row) for row in rows]

    async def fetch_feed_item(self, item_id: str) -> FeedItem:
        row = await self._select_one("videos", {
            "select": _VIDEO_SELECT,
            "id": f"eq.{item_id}",
            "status": "eq.published",
        })
        if not (row.get("restaurants") or {}).get("is_active"):
            raise NotFound("Video not found or restaurant is inactive")
        return FeedItem.from_row(row)

    async def list_categories(self) -> list[str]:
        rows = await self._select("restaurants", {"select": "cuisine", "is_active": "eq.true"})
        return sorted({row["cuisine"] for row in rows if row.get("cuisine")})

    # ── bookings ────────────────────────────────────────────────────────

    async def fetch_bookings_for_owner(self, owner_id: str) -> list[BookingRecord]:
        self.require_user()
        rows = await self._select("bookings", {
            "select": _OWNER_BOOKING_SELECT,
            "restaurants.owner_id": f"eq.{owner_id}",
            "order": "booking_date.asc,booking_time.asc",
        })
        return [BookingRecord.from_row(row) for row in rows]

    async def fetch_bookings_for_user(self, user_id: str) -> list[BookingRecord]:
        self.require_user()
        rows = await self._select("bookings", {
            "select": _BOOKING_SELECT,
            "user_id": f"eq.{user_id}",
            "order": "created_at.desc",
        })
        return [BookingRecord.from_row(row) for row in rows]

    async def create_booking(self, booking: BookingCreate) -> BookingRecord:
        user = self.require_user()
        row = await self._insert_one("bookings", {
            "restaurant_id": booking.restaurant_id,
            "user_id": user.id,
            "booking_date": booking.booking_date.isoformat(),
            "booking_time": booking.booking_time,
            "party_size": booking.party_size,
            "special_requests": booking.special_requests,
            "status": BookingStatus.pending.value,
        }, select=_BOOKING_SELECT)
        logger.info("Booking %s created by %s", row.get("id"), user.id)
        return BookingRecord.from_row(row)

    async def mutate_booking_status(self, booking_id: str, new_status: BookingStatus) -> BookingRecord:
        user = self.require_user()
        current = BookingRecord.from_row(
            await self._select_one("bookings", {"select": _BOOKING_SELECT, "id": f"eq.{booking_id}"})
        )
        if user.id not in (current.user_id, current.owner_id):
            raise NotAuthorized("Not authorized to update this booking")

        response = await self._request(
            "PATCH",
            "/rest/v1/bookings",
            params={"id": f"eq.{booking_id}", "select": _BOOKING_SELECT},
            json={"status": BookingStatus(new_status).value},
            headers={**_RETURN_ROW, **_SINGLE},
        )
        logger.info("Booking %s set to %s by %s", booking_id, new_status, user.id)
        return BookingRecord.from_row(response.json())

    # ── comments & likes ────────────────────────────────────────────────

    async def fetch_comments_flat(self, feed_item_id: str) -> list[CommentNode]:
        rows = await self._select("comments", {
            "select": _COMMENT_SELECT,
            "video_id": f"eq.{feed_item_id}",
            "order": "created_at.desc",
        })
        return [CommentNode.from_row(row) for row in rows]

    async def post_comment(self, feed_item_id: str, text: str, parent_id: str | None = None) -> CommentNode:
        user = self.require_user()
        depth = 0
        if parent_id:
            parent = await self._select_one("comments", {"select": "depth", "id": f"eq.{parent_id}"})
            depth = next_depth(parent.get("depth"))

        row = await self._insert_one("comments", {
            "video_id": feed_item_id,
            "user_id": user.id,
            "text": text,
            "parent_id": parent_id,
            "depth": depth,
        }, select="*,profiles(id,name,avatar_url)")
        return CommentNode.from_row(row)

    async def toggle_like(self, video_id: str) -> bool:
        user = self.require_user()
        existing = await self._select("likes", {
            "select": "id", "video_id": f"eq.{video_id}", "user_id": f"eq.{user.id}",
        })
        if existing:
            await self._request("DELETE", "/rest/v1/likes", params={"id": f"eq.{existing[0]['id']}"})
            return False
        await self._insert_one("likes", {"video_id": video_id, "user_id": user.id})
        return True

    async def is_liked(self, video_id: str) -> bool:
        if self.user is None:
            return False
        rows = await self._select("likes", {
            "select": "id", "video_id": f"eq.{video_id}", "user_id": f"eq.{self.user.id}",
        })
        return bool(rows)

    # ── restaurants ─────────────────────────────────────────────────────

    async def fetch_restaurants(self, limit: int = 50) -> list[Restaurant]:
        rows = await self._select("restaurants", {
            "select": _RESTAURANT_SELECT,
            "is_active": "eq.true",
            "limit": limit,
        })
        return [Restaurant.from_row(row) for row in rows]

    async def fetch_restaurant(self, restaurant_id: str) -> Restaurant:
        row = await self._select_one("restaurants", {
            "select": _RESTAURANT_SELECT,
            "id": f"eq.{restaurant_id}",
            "is_active": "eq.true",
        })
        return Restaurant.from_row(row)

    async def fetch_restaurant_badges(self, restaurant_id: str) -> list[Badge]:
        rows = await self._select("restaurant_badges", {
            "select": _BADGE_SELECT,
            "restaurant_id": f"eq.{restaurant_id}",
            "order": "awarded_at.desc",
        })
        return [_badge(row) for row in rows]

    async def is_restaurant_favorited(self, restaurant_id: str) -> bool:
        if self.user is None:
            return False
        rows = await self._select("favorites", {
            "select": "id",
            "restaurant_id": f"eq.{restaurant_id}",
            "user_id": f"eq.{self.user.id}",
            "limit": 1,
        })
        return bool(rows)

    async def restaurant_favorites_count(self, restaurant_id: str) -> int:
        response = await self._request(
            "POST",
            "/rest/v1/rpc/get_restaurant_favorites_count",
            json={"p_restaurant_id": restaurant_id},
        )
        return int(response.json() or 0)

    async def toggle_favorite(self, restaurant_id: str) -> bool:
        user = self.require_user()
        scope = {"restaurant_id": f"eq.{restaurant_id}", "user_id": f"eq.{user.id}"}
        existing = await self._select("favorites", {"select": "id", **scope})
        if existing:
            await self._request("DELETE", "/rest/v1/favorites", params=scope)
            return False
        await self._insert_one("favorites", {"restaurant_id": restaurant_id, "user_id": user.id})
        return True

    async def fetch_favorites(self) -> list[RestaurantSummary]:
        user = self.require_user()
        rows = await self._select("favorites", {
            "select": _FAVORITE_SELECT,
            "user_id": f"eq.{user.id}",
            "order": "created_at.desc",
        })
        return [
            RestaurantSummary(
                **{**(row.get("restaurants") or {}), "id": str(row["restaurant_id"])},
                favorited_at=row.get("created_at"),
            )
            for row in rows
        ]

    async def fetch_reviews(self, restaurant_id: str) -> list[Review]:
        rows = await self._select("reviews", {
            "select": "*,profiles(name,avatar_url)",
            "restaurant_id": f"eq.{restaurant_id}",
            "order": "created_at.desc",
        })
        return [Review.from_row(row) for row in rows]

    async def create_review(self, review: ReviewCreate) -> Review:
        user = self.require_user()
        visited = await self._select("bookings", {
            "select": "id",
            "restaurant_id": f"eq.{review.restaurant_id}",
            "user_id": f"eq.{user.id}",
            "status": "in.(confirmed,completed)",
            "limit": 1,
        })
        if not visited:
            raise NotAuthorized("You can only review restaurants after you have visited with a confirmed booking")

        restaurant = await self._select_one("restaurants", {
            "select": "owner_id", "id": f"eq.{review.restaurant_id}",
        })
        if str(restaurant.get("owner_id")) == user.id:
            raise NotAuthorized("You cannot review your own restaurant")

        try:
            row = await self._insert_one("reviews", {
                "restaurant_id": review.restaurant_id,
                "user_id": user.id,
                "rating": review.rating,
                "comment": review.comment.strip(),
                "images": review.images,
            }, select="*,profiles(name,avatar_url)")
        except ValidationFailure as exc:
            if exc.message == "Already exists":
                raise ValidationFailure("You have already reviewed this restaurant") from exc
            raise
        return Review.from_row(row)

    # ── notifications & badges ──────────────────────────────────────────

    async def fetch_notifications(self) -> list[Notification]:
        user = self.require_user()
        rows = await self._select("notifications", {
            "select": "*", "user_id": f"eq.{user.id}", "order": "created_at.desc",
        })
        return [Notification(**{**row, "id": str(row["id"]), "user_id": str(row["user_id"])}) for row in rows]

    async def unread_notification_count(self) -> int:
        if self.user is None:
            return 0
        response = await self._request(
            "HEAD",
            "/rest/v1/notifications",
            params={"select": "id", "user_id": f"eq.{self.user.id}", "read": "eq.false"},
            headers={"Prefer": "count=exact"},
        )
        # Content-Range: 0-4/5 or */0
        content_range = response.headers.get("content-range", "*/0")
        total = content_range.rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0

    async def mark_notification_read(self, notification_id: str) -> None:
        user = self.require_user()
        # RLS filters silently, so an unknown or foreign id updates zero rows
        response = await self._request(
            "PATCH", "/rest/v1/notifications",
            params={"id": f"eq.{notification_id}", "user_id": f"eq.{user.id}", "select": "id"},
            json={"read": True},
            headers=_RETURN_ROW,
        )
        if not response.json():
            raise NotFound("Notification not found")

    async def fetch_user_badges(self, user_id: str) -> list[Badge]:
        rows = await self._select("user_badges", {
            "select": _BADGE_SELECT,
            "user_id": f"eq.{user_id}",
            "order": "awarded_at.desc",
        })
        return [_badge(row) for row in rows]

    # ── storage ─────────────────────────────────────────────────────────

    async def upload_media(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self.require_user()
        await self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{path}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        return f"{self.config.supabase_url}/storage/v1/object/public/{bucket}/{path}"
