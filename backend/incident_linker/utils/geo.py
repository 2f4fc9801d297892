"""Shared geodesic and temporal proximity utilities.

Every function here is total: invalid input yields ``0.0`` (proximity) or
``math.inf`` (distance / delta) instead of raising, so the scoring hot path
never needs exception handling.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

_EARTH_RADIUS_KM: float = 6371.0  # Earth mean radius in kilometres
_KM_PER_DEGREE_LAT: float = 111.32


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    """True iff both are finite numbers in range and not the (0, 0) "unknown" sentinel."""
    for value in (lat, lon):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
    if lat < -90 or lat > 90 or lon < -180 or lon > 180:
        return False
    if lat == 0 and lon == 0:
        return False
    return True


def distance_km(lat1: Any, lon1: Any, lat2: Any, lon2: Any) -> float:
    """Great-circle (haversine) distance in kilometres; ``inf`` if either point is invalid."""
    if not is_valid_coordinate(lat1, lon1) or not is_valid_coordinate(lat2, lon2):
        return math.inf
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    # Guard against a > 1 from float rounding on antipodal points
    a = min(1.0, max(0.0, a))
    return _EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def to_utc_naive(ts: Any) -> datetime | None:
    """Coerce a datetime or ISO-8601 string to a naive UTC datetime.

    Naive datetimes are assumed to already be UTC. Returns None when the
    value cannot be parsed.
    """
    if isinstance(ts, datetime):
        dt = ts
    elif isinstance(ts, str):
        text = ts.strip()
        if not text:
            return None
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def time_delta_hours(t1: Any, t2: Any) -> float:
    """Absolute difference in hours; ``inf`` if either timestamp is unparsable."""
    dt1 = to_utc_naive(t1)
    dt2 = to_utc_naive(t2)
    if dt1 is None or dt2 is None:
        return math.inf
    return abs((dt1 - dt2).total_seconds()) / 3600.0


def time_proximity(t1: Any, t2: Any, max_hours: float) -> float:
    """Linear decay 1 → 0 over ``max_hours``."""
    if max_hours <= 0:
        return 0.0
    delta = time_delta_hours(t1, t2)
    if math.isinf(delta):
        return 0.0
    return max(0.0, 1.0 - delta / max_hours)


def spatial_proximity(lat1: Any, lon1: Any, lat2: Any, lon2: Any, max_km: float) -> float:
    """Linear decay 1 → 0 over ``max_km``."""
    if max_km <= 0:
        return 0.0
    dist = distance_km(lat1, lon1, lat2, lon2)
    if math.isinf(dist):
        return 0.0
    return max(0.0, 1.0 - dist / max_km)


@dataclass(frozen=True)
class BoundingBox:
    """Degree-space candidate filter. ``min_lon > max_lon`` means the box wraps the antimeridian."""
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_lon > self.max_lon


def bounding_box(lat: float, lon: float, max_km: float) -> BoundingBox:
    """Box around (lat, lon) covering at least ``max_km`` in every direction.

    Longitude span is scaled by cos(lat); near the poles it saturates to the
    full circle.
    """
    dlat = max_km / _KM_PER_DEGREE_LAT
    cos_lat = math.cos(lat * math.pi / 180)
    if cos_lat <= 1e-9:
        dlon = 180.0
    else:
        dlon = min(180.0, max_km / (_KM_PER_DEGREE_LAT * cos_lat))

    min_lat = max(-90.0, lat - dlat)
    max_lat = min(90.0, lat + dlat)
    if dlon >= 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    min_lon = lon - dlon
    max_lon = lon + dlon
    if min_lon < -180.0:
        min_lon += 360.0
    if max_lon > 180.0:
        max_lon -= 360.0
    return BoundingBox(min_lat, max_lat, min_lon, max_lon)
