"""Utility helpers for geographic computations and units."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray
from pyproj import Geod
from shapely.geometry import LineString

KILOMETERS_TO_METERS = 1000.0

WGS84 = Geod(ellps="WGS84")


def kilometers_to_meters(kilometers: float) -> float:
    return kilometers * KILOMETERS_TO_METERS


def degree_steps_for_distance(latitude: float, longitude: float, distance_km: float) -> tuple[float, float]:
    """
    Return ``(lat_step, lon_step)`` in degrees spanning ``distance_km`` at a location.

    Steps are measured north and east of the coordinate, giving the constant degree
    spacing of an equirectangular grid anchored at that latitude.
    """
    distance_m = kilometers_to_meters(distance_km)
    _, lat_north, _ = WGS84.fwd(longitude, latitude, 0.0, distance_m)
    lon_east, _, _ = WGS84.fwd(longitude, latitude, 90.0, distance_m)
    return abs(lat_north - latitude), abs(lon_east - longitude)


def grid_edges(start: float, stop: float, step: float) -> NDArray[np.float64]:
    """Return cell edges from ``start`` to ``stop`` with a final remainder cell if needed."""
    edges = np.arange(start, stop, step, dtype=np.float64)
    # Drop an edge that floating point error placed right on top of ``stop``.
    edges = edges[edges < stop - step * 1e-9]
    return np.append(edges, stop)


def line_length_m(coordinates: Sequence[Sequence[float]]) -> float:
    """Geodesic length in meters of a lon/lat LineString."""
    return float(WGS84.geometry_length(LineString(coordinates)))
