"""Visiting order strategies."""

from __future__ import annotations

from typing import AbstractSet, Sequence

from .geo import COORDINATE_EPSILON, coordinates_match, geodesic_distance
from .models import DEPOT_INDEX, OptimizedWaypoint, Stop, WaypointResolutionError


def nearest_neighbor_sequence(points: Sequence[Stop]) -> list[int]:
    """Order stops greedily by great-circle distance.

    ``points[0]`` is the depot and needs at least two more stops; callers
    check this. Ties go to the lowest index, so the result is deterministic.
    """

    visited = {DEPOT_INDEX}
    sequence = [DEPOT_INDEX]
    current = DEPOT_INDEX
    while len(visited) < len(points):
        nearest = -1
        nearest_distance = float("inf")
        for idx in range(1, len(points)):
            if idx in visited:
                continue
            distance = geodesic_distance(
                points[current].coordinate, points[idx].coordinate
            )
            if distance < nearest_distance:
                nearest_distance = distance
                nearest = idx
        if nearest == -1:
            # only NaN coordinates remain; keep their input order
            nearest = min(idx for idx in range(1, len(points)) if idx not in visited)
        sequence.append(nearest)
        visited.add(nearest)
        current = nearest
    sequence.append(DEPOT_INDEX)
    return sequence


def resolve_waypoint_index(
    waypoint: OptimizedWaypoint,
    stops: Sequence[Stop],
    taken: AbstractSet[int] = frozenset(),
    epsilon: float = COORDINATE_EPSILON,
) -> int:
    """Return the stop index (depot excluded, so 1-based) of ``waypoint``.

    Indices in ``taken`` are skipped, so stops sharing a coordinate are
    handed out in input order.
    """

    for position, stop in enumerate(stops):
        index = position + 1
        if index in taken:
            continue
        if coordinates_match(stop.coordinate, waypoint.position, epsilon):
            return index
    raise WaypointResolutionError(
        f"No unmatched stop for optimized waypoint {waypoint.position}",
        position=waypoint.position,
    )


def resolve_external_order(
    waypoints: Sequence[OptimizedWaypoint],
    stops: Sequence[Stop],
    epsilon: float = COORDINATE_EPSILON,
) -> list[int]:
    """Map an optimizer's visiting order back to a depot-bounded sequence.

    ``stops`` are the delivery stops without the depot. The whole run is
    aborted with :class:`WaypointResolutionError` when an entry matches no
    remaining stop or when the answer does not cover every stop exactly once.
    """

    taken: set[int] = set()
    indices = []
    for wp in waypoints:
        index = resolve_waypoint_index(wp, stops, taken, epsilon)
        taken.add(index)
        indices.append(index)
    if len(indices) != len(stops):
        raise WaypointResolutionError(
            f"Optimizer returned {len(indices)} waypoints for {len(stops)} stops"
        )
    return [DEPOT_INDEX, *indices, DEPOT_INDEX]
