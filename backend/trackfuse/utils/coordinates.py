"""
Great-circle distance utilities for WGS84 lat/lon tracks.
"""

import numpy as np
from numpy.typing import NDArray

EARTH_RADIUS_M = 6371000.0  # mean radius


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate great-circle distance between two points.

    Works element-wise on numpy arrays as well as on scalars.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in meters
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlat = np.radians(np.subtract(lat2, lat1))
    dlon = np.radians(np.subtract(lon2, lon1))

    a = np.sin(dlat / 2)**2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def cumulative_distance(
    lat: NDArray[np.float64],
    lon: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Distance travelled along a path up to each point.

    Args:
        lat, lon: Path coordinates in degrees

    Returns:
        Array of the same length, starting at 0.0, in meters
    """
    lat = np.asarray(lat, dtype=np.float64)
    lon = np.asarray(lon, dtype=np.float64)
    if len(lat) == 0:
        return np.zeros(0, dtype=np.float64)

    steps = haversine_distance(lat[:-1], lon[:-1], lat[1:], lon[1:])
    return np.concatenate(([0.0], np.cumsum(steps)))
