"""Domain objects of the route planning engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

Coordinate = tuple[float, float]
"""``(lon, lat)`` in degrees, longitude first."""

DEPOT_ID = "depot"
DEPOT_INDEX = 0


class TravelMode(str, Enum):
    """Vehicle class of a request.

    Providers without a truck profile route ``driving-heavy`` the same way as
    ``driving-light``.
    """

    DRIVING_HEAVY = "driving-heavy"
    DRIVING_LIGHT = "driving-light"
    TWO_WHEELED = "two-wheeled"
    WALKING = "walking"


class RoutePlanningError(Exception):
    """Base error of the route planning engine."""


class WaypointResolutionError(RoutePlanningError):
    """The optimizer's answer does not map onto the request's stops."""

    def __init__(self, message: str, position: Coordinate | None = None) -> None:
        super().__init__(message)
        self.position = position


class WaypointOptimizationError(RoutePlanningError):
    """The external waypoint optimizer failed to return an order."""


class RouteCancelledError(RoutePlanningError):
    """The caller cancelled the plan between two legs."""


@dataclass(frozen=True)
class Stop:
    id: str
    coordinate: Coordinate
    label: str = ""


@dataclass(frozen=True)
class TrafficParams:
    """Traffic hints forwarded to the routing provider.

    Exactly one of ``depart_now`` or ``departure_time`` is meaningful; a
    request without traffic uses ``None`` instead of an instance.
    """

    depart_now: bool = False
    departure_time: datetime | None = None

    @classmethod
    def now(cls) -> "TrafficParams":
        return cls(depart_now=True)

    @classmethod
    def at(cls, departure_time: datetime) -> "TrafficParams":
        return cls(departure_time=departure_time)


@dataclass(frozen=True)
class RoutePlanRequest:
    """Everything one optimization run needs. The engine keeps no state."""

    depot: Stop
    stops: tuple[Stop, ...]
    travel_mode: TravelMode = TravelMode.DRIVING_HEAVY
    traffic: TrafficParams | None = None
    service_time_s: float = 300.0

    @property
    def points(self) -> list[Stop]:
        """Depot followed by the delivery stops; list index is the stop index."""
        return [self.depot, *self.stops]


@dataclass(frozen=True)
class LegRoute:
    """A routing provider answer for one origin/destination pair."""

    geometry: list[Coordinate]
    distance_m: float
    duration_s: float


@dataclass(frozen=True)
class OptimizedWaypoint:
    position: Coordinate
    id: int


@dataclass(frozen=True)
class Segment:
    start: Coordinate
    end: Coordinate
    duration_s: float
    distance_m: float
    midpoint: Coordinate
    geometry: tuple[Coordinate, ...] = ()
    degraded: bool = False


@dataclass(frozen=True)
class AssembledRoute:
    sequence: tuple[int, ...]
    total_distance_km: float
    total_time_min: float
    geometry: tuple[Coordinate, ...]
    segments: tuple[Segment, ...]
    algorithm: str

    @property
    def degraded_segments(self) -> int:
        return sum(1 for segment in self.segments if segment.degraded)

    def to_geojson(self) -> dict[str, Any]:
        """Return the route line as a GeoJSON ``Feature``."""

        return {
            "type": "Feature",
            "properties": {"algorithm": self.algorithm},
            "geometry": {
                "type": "LineString",
                "coordinates": [list(point) for point in self.geometry],
            },
        }
