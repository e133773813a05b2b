"""Great-circle helpers and coordinate parsing."""

from __future__ import annotations

import math
import re

from .models import Coordinate

EARTH_RADIUS_KM = 6371.0

# Optimizers echo coordinates back with rounding noise; 1e-4 degrees is ~11 m.
COORDINATE_EPSILON = 1e-4

_SEPARATORS = re.compile(r"[,\s]+")


def geodesic_distance(p1: Coordinate, p2: Coordinate) -> float:
    """Haversine distance in kilometers between two ``(lon, lat)`` points."""

    lon1, lat1 = p1
    lon2, lat2 = p2
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def coordinates_match(
    a: Coordinate, b: Coordinate, epsilon: float = COORDINATE_EPSILON
) -> bool:
    return abs(a[0] - b[0]) < epsilon and abs(a[1] - b[1]) < epsilon


def midpoint(a: Coordinate, b: Coordinate) -> Coordinate:
    """Arithmetic mean of two points, used only to place duration markers."""

    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def parse_coordinates(text: str) -> list[Coordinate]:
    """Parse ``lon,lat`` pairs, one per line.

    Tokens may be separated by commas and/or whitespace. Lines without two
    numeric tokens are skipped.
    """

    coordinates: list[Coordinate] = []
    for line in text.strip().splitlines():
        tokens = [t for t in _SEPARATORS.split(line.strip()) if t]
        if len(tokens) < 2:
            continue
        try:
            lon, lat = float(tokens[0]), float(tokens[1])
        except ValueError:
            continue
        if math.isnan(lon) or math.isnan(lat):
            continue
        coordinates.append((lon, lat))
    return coordinates


def stop_label(index: int, coordinate: Coordinate) -> str:
    return f"{index}. ({coordinate[0]:.4f}, {coordinate[1]:.4f})"


def depot_label(coordinate: Coordinate) -> str:
    return f"Depot ({coordinate[0]:.4f}, {coordinate[1]:.4f})"
