"""Stitching legs into one continuous, time-annotated route."""

from __future__ import annotations

import time
from typing import Sequence

from src.common.logging import get_logger
from src.common.metrics import JOB_DURATION

from .maps import RoutingProvider, WaypointOptimizer
from .models import (
    DEPOT_INDEX,
    AssembledRoute,
    OptimizedWaypoint,
    RouteCancelledError,
    RoutePlanRequest,
    Segment,
    Stop,
    WaypointOptimizationError,
)
from .segments import build_segment
from .sequencing import nearest_neighbor_sequence, resolve_external_order

logger = get_logger(__name__)

NEAREST_NEIGHBOR_ALGORITHM = "Nearest Neighbor Algorithm"
EXTERNAL_ALGORITHM = "External Optimization"


class CancellationToken:
    """Flag checked by the assembler between two legs."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise RouteCancelledError("Route planning was cancelled")


async def assemble_route(
    sequence: Sequence[int],
    points: Sequence[Stop],
    provider: RoutingProvider,
    request: RoutePlanRequest,
    *,
    algorithm: str,
    cancel_token: CancellationToken | None = None,
) -> AssembledRoute:
    """Walk ``sequence`` leg by leg and concatenate the results.

    ``points[0]`` is the depot. Legs are requested one at a time, in order,
    and each leg starts at the last point of the geometry built so far, so a
    provider that snaps endpoints to the road network yields a continuous
    line. The first point of every
    leg geometry repeats the previous leg's last point and is dropped.
    """

    geometry = [points[DEPOT_INDEX].coordinate]
    segments: list[Segment] = []
    total_distance_m = 0.0
    total_time_s = 0.0

    for nxt in sequence[1:]:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        service_time = request.service_time_s if nxt != DEPOT_INDEX else 0.0
        segment = await build_segment(
            provider,
            geometry[-1],
            points[nxt].coordinate,
            travel_mode=request.travel_mode,
            traffic=request.traffic,
            service_time_s=service_time,
        )
        segments.append(segment)
        geometry.extend(segment.geometry[1:])
        total_distance_m += segment.distance_m
        total_time_s += segment.duration_s

    return AssembledRoute(
        sequence=tuple(sequence),
        total_distance_km=total_distance_m / 1000,
        total_time_min=total_time_s / 60,
        geometry=tuple(geometry),
        segments=tuple(segments),
        algorithm=algorithm,
    )


async def plan_nearest_neighbor(
    request: RoutePlanRequest,
    provider: RoutingProvider,
    cancel_token: CancellationToken | None = None,
) -> AssembledRoute:
    """Order stops with the nearest-neighbor heuristic and assemble the route.

    Requires a depot and at least two stops.
    """

    start = time.monotonic()
    points = request.points
    sequence = nearest_neighbor_sequence(points)
    route = await assemble_route(
        sequence,
        points,
        provider,
        request,
        algorithm=NEAREST_NEIGHBOR_ALGORITHM,
        cancel_token=cancel_token,
    )
    JOB_DURATION.labels("route_planner", "plan_nearest_neighbor").observe(
        time.monotonic() - start
    )
    logger.info(
        "route.planned",
        algorithm=route.algorithm,
        stops=len(request.stops),
        distance_km=round(route.total_distance_km, 3),
        degraded_segments=route.degraded_segments,
    )
    return route


async def plan_external(
    request: RoutePlanRequest,
    provider: RoutingProvider,
    optimizer: WaypointOptimizer,
    cancel_token: CancellationToken | None = None,
) -> AssembledRoute:
    """Ask ``optimizer`` for the visiting order, then assemble the route.

    Raises :class:`WaypointOptimizationError` when the optimizer fails and
    :class:`~.models.WaypointResolutionError` when its answer names a
    position that is not one of the request's stops.
    """

    start = time.monotonic()
    depot = request.depot.coordinate
    waypoints = [
        OptimizedWaypoint(position=stop.coordinate, id=idx)
        for idx, stop in enumerate(request.stops)
    ]
    try:
        ordered = await optimizer.optimize(
            depot,
            depot,
            waypoints,
            travel_mode=request.travel_mode,
            traffic=request.traffic,
        )
    except Exception as exc:
        logger.error("route.optimizer_failed", error=repr(exc))
        raise WaypointOptimizationError("Waypoint optimizer failed") from exc

    sequence = resolve_external_order(ordered, request.stops)
    route = await assemble_route(
        sequence,
        request.points,
        provider,
        request,
        algorithm=EXTERNAL_ALGORITHM,
        cancel_token=cancel_token,
    )
    JOB_DURATION.labels("route_planner", "plan_external").observe(
        time.monotonic() - start
    )
    logger.info(
        "route.planned",
        algorithm=route.algorithm,
        stops=len(request.stops),
        distance_km=round(route.total_distance_km, 3),
        degraded_segments=route.degraded_segments,
    )
    return route
