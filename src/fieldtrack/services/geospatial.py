"""Geospatial and timing helper functions."""

from __future__ import annotations

import math
from datetime import datetime

EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push ``a`` just outside [0, 1] for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def elapsed_minutes(t1: datetime, t2: datetime) -> float:
    """Absolute number of minutes between two timestamps."""

    return abs((t2 - t1).total_seconds()) / 60.0


def speed_kmh(distance_km: float, minutes: float) -> float:
    """Average speed over a distance; zero elapsed time yields zero speed."""

    if minutes <= 0:
        return 0.0
    return distance_km / (minutes / 60.0)
