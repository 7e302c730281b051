"""Great-circle distance helpers."""

import math

from src.core.config import Constants


def haversine_distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance between two coordinates in meters.

    Uses the haversine formula with a mean Earth radius of 6,371 km.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return Constants.EARTH_RADIUS_METERS * c


def offset_north(latitude: float, meters: float) -> float:
    """Latitude reached by moving ``meters`` due north (negative for south)."""
    return latitude + math.degrees(meters / Constants.EARTH_RADIUS_METERS)
