from __future__ import annotations

from datetime import datetime
from typing import Iterable

from .models import BookingRecord, BookingStatus, BookingWindow, ViewerRole

OWNER_ACTIVE_STATUSES = frozenset({BookingStatus.pending, BookingStatus.confirmed})
CUSTOMER_CLOSED_STATUSES = frozenset({BookingStatus.cancelled, BookingStatus.completed})


def _local_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now()
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def classify(
    booking: BookingRecord,
    now: datetime | None,
    viewer_role: ViewerRole,
) -> BookingWindow | None:
    """
    Place a booking in the upcoming or past window.

    Returns ``None`` when the booking has no date or no time; such
    bookings show up in neither list.
    """
    instant = booking.booking_instant
    if instant is None:
        return None

    is_future = instant >= _local_now(now)
    if ViewerRole(viewer_role) == ViewerRole.owner:
        upcoming = is_future and booking.status in OWNER_ACTIVE_STATUSES
    else:
        upcoming = is_future and booking.status not in CUSTOMER_CLOSED_STATUSES

    return BookingWindow.upcoming if upcoming else BookingWindow.past


def partition(
    bookings: Iterable[BookingRecord],
    now: datetime | None,
    viewer_role: ViewerRole,
) -> tuple[list[BookingRecord], list[BookingRecord]]:
    """Split into ``(upcoming, past)``: soonest first, then most recent first."""
    now = _local_now(now)
    upcoming: list[BookingRecord] = []
    past: list[BookingRecord] = []
    for booking in bookings:
        window = classify(booking, now, viewer_role)
        if window == BookingWindow.upcoming:
            upcoming.append(booking)
        elif window == BookingWindow.past:
            past.append(booking)

    upcoming.sort(key=lambda b: b.booking_instant)
    past.sort(key=lambda b: b.booking_instant, reverse=True)
    return upcoming, past


def viewer_role_for(is_business: bool) -> ViewerRole:
    """Business accounts read every booking, personal ones included, as the owner."""
    return ViewerRole.owner if is_business else ViewerRole.customer
