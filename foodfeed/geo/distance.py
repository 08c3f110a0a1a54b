from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
UNKNOWN_DISTANCE_LABEL = "--"


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Haversine distance in kilometres between two points given in degrees.

    Inputs are not validated. A NaN coordinate yields NaN rather than an
    error, and callers that compare against a radius will see the
    comparison fail.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_distance(km: float) -> str:
    """
    Return ``"850m"`` below 1 km, ``"3.4km"`` below 10 km, else ``"27km"``.

    NaN and infinite distances get ``UNKNOWN_DISTANCE_LABEL``.
    """
    if not math.isfinite(km):
        return UNKNOWN_DISTANCE_LABEL
    if km < 1:
        return f"{_round_half_up(km * 1000)}m"
    if km < 10:
        return f"{_round_half_up(km * 10) / 10:.1f}km"
    return f"{_round_half_up(km)}km"


def describe_distance(
    origin_lat: float,
    origin_lng: float,
    latitude: float | None,
    longitude: float | None,
) -> tuple[float | None, str | None]:
    """
    Rounded kilometres and a label for one item, ``(None, None)`` when the
    item has no location. A distance that is not finite keeps no number
    but still gets the placeholder label.
    """
    if latitude is None or longitude is None:
        return None, None
    km = distance_km(origin_lat, origin_lng, latitude, longitude)
    if not math.isfinite(km):
        return None, UNKNOWN_DISTANCE_LABEL
    return round(km, 2), format_distance(km)
