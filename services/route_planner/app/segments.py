"""Turning one origin/destination pair into a route segment."""

from __future__ import annotations

from src.common.logging import get_logger
from src.common.metrics import ROUTE_SEGMENTS

from .geo import geodesic_distance, midpoint
from .maps import RoutingProvider
from .models import Coordinate, Segment, TrafficParams, TravelMode

logger = get_logger(__name__)

# Straight-line estimates: 1 km -> 1000 m, 1 km -> 120 s (~30 km/h).
FALLBACK_METERS_PER_KM = 1000.0
FALLBACK_SECONDS_PER_KM = 120.0


def straight_line_segment(origin: Coordinate, destination: Coordinate) -> Segment:
    """Estimate a leg when the routing provider cannot supply one.

    The estimate covers travel only; no service time is added.
    """

    distance_km = geodesic_distance(origin, destination)
    return Segment(
        start=origin,
        end=destination,
        duration_s=distance_km * FALLBACK_SECONDS_PER_KM,
        distance_m=distance_km * FALLBACK_METERS_PER_KM,
        midpoint=midpoint(origin, destination),
        geometry=(origin, destination),
        degraded=True,
    )


async def build_segment(
    provider: RoutingProvider,
    origin: Coordinate,
    destination: Coordinate,
    *,
    travel_mode: TravelMode,
    traffic: TrafficParams | None = None,
    service_time_s: float = 0.0,
) -> Segment:
    """Route one leg, falling back to a straight line on any provider failure.

    ``service_time_s`` is the time spent at ``destination``. It is added to
    a routed leg only; a degraded leg carries the straight-line travel
    estimate alone. A failed call is not retried.
    """

    try:
        leg = await provider.route(
            origin, destination, travel_mode=travel_mode, traffic=traffic
        )
    except Exception as exc:
        logger.warning(
            "segment.provider_failed",
            origin=origin,
            destination=destination,
            error=repr(exc),
        )
        leg = None

    if leg is None or not leg.geometry:
        if leg is not None:
            logger.info("segment.no_geometry", origin=origin, destination=destination)
        ROUTE_SEGMENTS.labels("route_planner", "true").inc()
        return straight_line_segment(origin, destination)

    ROUTE_SEGMENTS.labels("route_planner", "false").inc()
    return Segment(
        start=origin,
        end=destination,
        duration_s=leg.duration_s + service_time_s,
        distance_m=leg.distance_m,
        midpoint=midpoint(origin, destination),
        geometry=tuple(leg.geometry),
        degraded=False,
    )
