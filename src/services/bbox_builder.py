from __future__ import annotations

import math
from typing import Tuple

from models import Bounds


def expand_bbox_from_center(lon: float, lat: float, km: float) -> Tuple[float, float, float, float]:
    """Create a rectangular bbox around (lon,lat) by ±km in both axes.

    Returns (min_lon, min_lat, max_lon, max_lat)
    """
    # degrees per km
    dlat = km / 110.574
    cos_lat = math.cos(math.radians(lat))
    dlon = km / (111.320 * cos_lat if cos_lat != 0 else 1e-6)
    return (lon - dlon, max(lat - dlat, -90.0), lon + dlon, min(lat + dlat, 90.0))


def bounds_around(lat: float, lng: float, km: float) -> Bounds:
    """Viewport of ±km around a point."""
    min_lon, min_lat, max_lon, max_lat = expand_bbox_from_center(lng, lat, km)
    return Bounds(north=max_lat, south=min_lat, east=max_lon, west=min_lon)
