from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..core.constants import EARTH_RADIUS_METERS
from ..core.exceptions import InvalidInput


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


def validate_coordinates(latitude, longitude) -> Coordinates:
    """Coerce a lat/lon pair to floats and check it lies on the globe."""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise InvalidInput("Coordinates must be numeric")
    if math.isnan(lat) or math.isnan(lon):
        raise InvalidInput("Coordinates must be numeric")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInput(f"Latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise InvalidInput(f"Longitude out of range: {lon}")
    return Coordinates(latitude=lat, longitude=lon)


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters (haversine, spherical Earth)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def _is_complete(point: Optional[Coordinates]) -> bool:
    return point is not None and point.latitude is not None and point.longitude is not None


def within_geofence(point: Optional[Coordinates], center: Optional[Coordinates], radius_meters: float) -> bool:
    # A point without coordinates is never inside the fence.
    if not _is_complete(point) or not _is_complete(center):
        return False
    d = distance_meters(point.latitude, point.longitude, center.latitude, center.longitude)
    return d <= float(radius_meters)
