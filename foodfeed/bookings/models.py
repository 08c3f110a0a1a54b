from __future__ import annotations

import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    no_show = "no_show"


class ViewerRole(str, Enum):
    owner = "owner"
    customer = "customer"


class BookingWindow(str, Enum):
    upcoming = "upcoming"
    past = "past"


def _normalize_time(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime("%H:%M")
    raw = str(value).strip()
    if not raw:
        return None
    # Postgres ``time`` columns come back as HH:MM:SS
    try:
        parsed = time.fromisoformat(raw)
    except ValueError:
        logger.warning("Ignoring unparseable booking time %r", raw)
        return None
    return parsed.strftime("%H:%M")


def _normalize_date(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        logger.warning("Ignoring unparseable booking date %r", raw)
        return None


class BookingRecord(BaseModel):
    """
    Canonical booking shape.

    Rows arrive as ``booking_date``/``booking_time`` from some queries and
    as ``date``/``time`` from others; :meth:`from_row` collapses both.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    booking_date: date | None = None
    booking_time: str | None = None
    party_size: int = Field(default=1, ge=1)
    status: BookingStatus = BookingStatus.pending
    restaurant_id: str | None = None
    restaurant_name: str | None = None
    owner_id: str | None = None
    user_id: str | None = None
    customer_name: str | None = None
    special_requests: str | None = None
    created_at: datetime | None = None

    @field_validator("booking_time", mode="before")
    @classmethod
    def normalize_booking_time(cls, value: Any) -> str | None:
        return _normalize_time(value)

    @field_validator("booking_date", mode="before")
    @classmethod
    def normalize_booking_date(cls, value: Any) -> date | None:
        return _normalize_date(value)

    @property
    def booking_instant(self) -> datetime | None:
        """Date and time combined as a naive local datetime, no tz conversion."""
        if self.booking_date is None or self.booking_time is None:
            return None
        return datetime.combine(self.booking_date, time.fromisoformat(self.booking_time))

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BookingRecord":
        restaurant = row.get("restaurants") or {}
        profile = row.get("profiles") or {}
        return cls(
            id=str(row["id"]),
            booking_date=row.get("booking_date") or row.get("date") or None,
            booking_time=row.get("booking_time") or row.get("time") or None,
            party_size=row.get("party_size") or 1,
            status=row.get("status") or BookingStatus.pending,
            restaurant_id=_str_or_none(row.get("restaurant_id") or restaurant.get("id")),
            restaurant_name=row.get("restaurantName") or restaurant.get("name"),
            owner_id=_str_or_none(row.get("owner_id") or restaurant.get("owner_id")),
            user_id=_str_or_none(row.get("user_id")),
            customer_name=profile.get("name"),
            special_requests=row.get("special_requests"),
            created_at=row.get("created_at"),
        )


def _str_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


# ── API payloads ─────────────────────────────────────────────────────────


class BookingCreate(BaseModel):
    restaurant_id: str = Field(..., min_length=1)
    booking_date: date
    booking_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    party_size: int = Field(..., ge=1, le=50)
    special_requests: str | None = Field(default=None, max_length=500)

    @field_validator("booking_time")
    @classmethod
    def check_clock_time(cls, value: str) -> str:
        time.fromisoformat(value)
        return value


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingsResponse(BaseModel):
    viewer_role: ViewerRole
    upcoming: list[BookingRecord]
    past: list[BookingRecord]
    upcoming_count: int
    past_count: int
