# FILE: driftpin/geo/distance.py
"""
Great-circle geometry for radius queries.

Distances are spherical (Haversine, R = 6371 km). That is accurate to ~0.5%
which is plenty for "what's near me" on a message board.

Longitudes are in [-180, 180]. A BoundingBox whose min_lng > max_lng wraps
across the antimeridian.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Tuple, Union

from driftpin.errors import InvalidLocationError

EARTH_RADIUS_KM = 6371.0

# Radius large enough to cover the whole planet from any point.
GLOBAL_RADIUS_KM = 20000.0


@dataclass(frozen=True)
class BoundingBox:
    """Lat/lng window enclosing a search circle."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def wraps_antimeridian(self) -> bool:
        return self.min_lng > self.max_lng

    @property
    def full_longitude(self) -> bool:
        return self.min_lng <= -180.0 and self.max_lng >= 180.0

    def contains(self, lat: float, lng: float) -> bool:
        if lat < self.min_lat or lat > self.max_lat:
            return False
        if self.wraps_antimeridian:
            return lng >= self.min_lng or lng <= self.max_lng
        return self.min_lng <= lng <= self.max_lng


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in kilometres between two points given in decimal degrees."""
    rlat1 = math.radians(lat1)
    rlat2 = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_coordinates(lat: Any, lng: Any) -> Tuple[float, float]:
    """
    Check a lat/lng pair and return it as floats.

    Raises:
        InvalidLocationError: non-numeric, NaN/inf, or out of range
    """
    if not _is_number(lat) or not _is_number(lng):
        raise InvalidLocationError(f"Coordinates must be numbers, got lat={lat!r}, lng={lng!r}")
    lat = float(lat)
    lng = float(lng)
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidLocationError(f"Coordinates must be finite, got lat={lat}, lng={lng}")
    if not -90.0 <= lat <= 90.0:
        raise InvalidLocationError(f"Latitude must be within [-90, 90], got {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidLocationError(f"Longitude must be within [-180, 180], got {lng}")
    return lat, lng


def normalize_location(
    location: Union[Sequence[float], Mapping[str, float]],
) -> Tuple[float, float]:
    """
    Accept either [lat, lng] or {"lat": .., "lng": ..} and return (lat, lng).

    "lon" is accepted as an alias of "lng".
    """
    if isinstance(location, Mapping):
        lat = location.get("lat")
        lng = location.get("lng", location.get("lon"))
    elif isinstance(location, (list, tuple)) and len(location) >= 2:
        lat, lng = location[0], location[1]
    else:
        raise InvalidLocationError(f"Unrecognised location format: {location!r}")
    return validate_coordinates(lat, lng)


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """
    Smallest lat/lng box containing every point within radius_km of (lat, lng).

    Near the poles the box spans all longitudes. When the box crosses the
    antimeridian, min_lng > max_lng.
    """
    if radius_km < 0:
        raise ValueError(f"radius_km must be non-negative, got {radius_km}")

    angular = radius_km / EARTH_RADIUS_KM
    lat_delta = math.degrees(angular)
    min_lat = lat - lat_delta
    max_lat = lat + lat_delta

    if min_lat <= -90.0 or max_lat >= 90.0 or angular >= math.pi / 2:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), -180.0, 180.0)

    # Widest longitude offset of the circle, reached north/south of the centre
    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    lng_delta = math.degrees(math.asin(ratio))
    if lng_delta >= 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    min_lng = lng - lng_delta
    max_lng = lng + lng_delta
    if min_lng < -180.0:
        min_lng += 360.0
    if max_lng > 180.0:
        max_lng -= 360.0
    return BoundingBox(min_lat, max_lat, min_lng, max_lng)


def radius_for_bounds(
    south: float,
    west: float,
    north: float,
    east: float,
    buffer: float = 1.2,
    fallback_km: float = GLOBAL_RADIUS_KM,
) -> float:
    """
    Radius (km) that covers a visible map viewport.

    Measured from the viewport centre to its north-east corner, padded by
    `buffer` and rounded up. Invalid or degenerate bounds return fallback_km.
    """
    try:
        south, west = validate_coordinates(south, west)
        north, east = validate_coordinates(north, east)
    except InvalidLocationError:
        return fallback_km
    if north < south:
        return fallback_km

    center_lat = (south + north) / 2
    if west <= east:
        center_lng = (west + east) / 2
    else:
        center_lng = (west + east + 360.0) / 2
        if center_lng > 180.0:
            center_lng -= 360.0

    radius = haversine_km(center_lat, center_lng, north, east)
    if not math.isfinite(radius) or radius <= 0:
        return fallback_km
    return float(min(math.ceil(radius * buffer), fallback_km))


__all__ = [
    "EARTH_RADIUS_KM",
    "GLOBAL_RADIUS_KM",
    "BoundingBox",
    "haversine_km",
    "validate_coordinates",
    "normalize_location",
    "bounding_box",
    "radius_for_bounds",
]
