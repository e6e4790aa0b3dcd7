"""
Geographic helpers: distances and coordinate-literal addresses.
"""

import math
from typing import Optional

EARTH_RADIUS_METERS = 6371000


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def coordinate_address(latitude: float, longitude: float, source: Optional[str] = "IoT device") -> str:
    """
    Address used when reverse geocoding is unavailable.

    Example: ``"Lat: 13.62180, Lon: 123.18160 (IoT device)"``
    """
    text = f"Lat: {latitude:.5f}, Lon: {longitude:.5f}"
    return f"{text} ({source})" if source else text
