from __future__ import annotations

import logging
from datetime import datetime

from ..backend.base import Backend
from ..feed.loader import PaginatedFeedLoader
from .classifier import partition, viewer_role_for
from .models import BookingCreate, BookingRecord, BookingsResponse, BookingStatus

logger = logging.getLogger(__name__)


async def load_bookings(backend: Backend) -> list[BookingRecord]:
    """
    Every booking the signed-in user should see.

    Business accounts get the bookings made at their restaurant plus the
    ones they made elsewhere as a guest, de-duplicated by id.
    """
    user = backend.require_user()
    personal = await backend.fetch_bookings_for_user(user.id)
    if not user.is_business:
        return personal

    owned = await backend.fetch_bookings_for_owner(user.id)
    merged = PaginatedFeedLoader.merge_owner_and_personal_sets(owned, personal)
    logger.info(
        "Merged bookings for %s: owner=%s personal=%s unique=%s",
        user.id, len(owned), len(personal), len(merged),
    )
    return merged


async def bookings_overview(backend: Backend, now: datetime | None = None) -> BookingsResponse:
    user = backend.require_user()
    role = viewer_role_for(user.is_business)
    upcoming, past = partition(await load_bookings(backend), now, role)
    return BookingsResponse(
        viewer_role=role,
        upcoming=upcoming,
        past=past,
        upcoming_count=len(upcoming),
        past_count=len(past),
    )


async def create_booking(backend: Backend, booking: BookingCreate) -> BookingRecord:
    backend.require_user()
    return await backend.create_booking(booking)


async def update_booking_status(backend: Backend, booking_id: str, status: BookingStatus) -> BookingRecord:
    backend.require_user()
    return await backend.mutate_booking_status(booking_id, status)
