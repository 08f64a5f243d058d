"""Geospatial helpers shared across routing modules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import osmnx as ox

if TYPE_CHECKING:
    from collections.abc import Sequence

Coordinate = tuple[float, float]  # (lon, lat)


def great_circle_meters(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Return the great-circle distance between two lat/lon points in meters."""
    return float(ox.distance.great_circle(lat1, lon1, lat2, lon2))


def great_circle_many(
    lat: float,
    lon: float,
    lats: Sequence[float] | np.ndarray,
    lons: Sequence[float] | np.ndarray,
) -> np.ndarray:
    """Return distances in meters from one point to each of many points."""
    lats_arr = np.asarray(lats, dtype=float)
    lons_arr = np.asarray(lons, dtype=float)
    if lats_arr.size == 0:
        return np.empty(0, dtype=float)
    return np.asarray(
        ox.distance.great_circle(
            np.full_like(lats_arr, lat),
            np.full_like(lons_arr, lon),
            lats_arr,
            lons_arr,
        ),
        dtype=float,
    )
