"""Geographic helpers: great-circle distance, bounding boxes, viewport radius."""

from driftpin.geo.distance import (
    EARTH_RADIUS_KM,
    GLOBAL_RADIUS_KM,
    BoundingBox,
    haversine_km,
    validate_coordinates,
    normalize_location,
    bounding_box,
    radius_for_bounds,
)

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
