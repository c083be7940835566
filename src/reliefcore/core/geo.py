from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from math import asin, cos, radians, sin, sqrt
from typing import Protocol

"""
Geospatial helpers.

We keep a tiny geometry layer here so tracking and routing can do distance/ETA
calculations without pulling in heavier GIS dependencies. Everything is pure.
"""

EARTH_RADIUS_KM = 6371.0
DEFAULT_AVERAGE_SPEED_KMH = 25.0


class LatLng(Protocol):
    """Anything with decimal-degree `lat`/`lng` attributes."""

    lat: float
    lng: float


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


def distance_km(a: LatLng, b: LatLng) -> float:
    """Compute great-circle (Haversine) distance in kilometers between two points."""
    lat1 = radians(a.lat)
    lng1 = radians(a.lng)
    lat2 = radians(b.lat)
    lng2 = radians(b.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, h)))


def travel_minutes(distance: float, speed_kmh: float) -> float:
    """Minutes needed to cover `distance` km at a constant `speed_kmh`."""
    if speed_kmh <= 0:
        raise ValueError("speed_kmh must be > 0")
    return max(0.0, float(distance)) / float(speed_kmh) * 60.0


def estimate_arrival(
    origin: LatLng | None,
    destination: LatLng,
    average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
    *,
    now: datetime | None = None,
) -> datetime | None:
    """Return `now + distance / speed` as an aware UTC datetime.

    Returns None when `origin` is unknown (no fix yet) or the speed is not positive;
    both are normal states for a caller, not errors.
    """
    if origin is None or average_speed_kmh <= 0:
        return None
    start = now or datetime.now(timezone.utc)
    hours = distance_km(origin, destination) / float(average_speed_kmh)
    return start + timedelta(hours=hours)
