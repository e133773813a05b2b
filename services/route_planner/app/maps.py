"""Routing providers: Google Maps Directions and the offline fallback."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Protocol, Sequence

import googlemaps
from googlemaps.convert import decode_polyline
from googlemaps.exceptions import ApiError, Timeout, TransportError
from opentelemetry import trace

from src.common.logging import get_logger

from .models import (
    Coordinate,
    LegRoute,
    OptimizedWaypoint,
    TrafficParams,
    TravelMode,
)

logger = get_logger(__name__)

_MODE_MAPPING = {
    TravelMode.DRIVING_HEAVY: "driving",
    TravelMode.DRIVING_LIGHT: "driving",
    TravelMode.TWO_WHEELED: "bicycling",
    TravelMode.WALKING: "walking",
}


class GoogleMapsError(Exception):
    """Google Maps could not answer a request."""


class RoutingProvider(Protocol):
    """Point-to-point routing with geometry and summary."""

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        *,
        travel_mode: TravelMode,
        traffic: TrafficParams | None,
    ) -> LegRoute | None:
        """Return the leg, or ``None`` when the provider has no route."""


class WaypointOptimizer(Protocol):
    """Suggests a visiting order for a set of waypoints."""

    async def optimize(
        self,
        origin: Coordinate,
        destination: Coordinate,
        waypoints: Sequence[OptimizedWaypoint],
        *,
        travel_mode: TravelMode,
        traffic: TrafficParams | None,
    ) -> list[OptimizedWaypoint]:
        """Return ``waypoints`` in the suggested visiting order."""


class StraightLineProvider:
    """Provider used when no routing backend is configured.

    It never has a route, so every leg falls back to a straight line.
    """

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        *,
        travel_mode: TravelMode,
        traffic: TrafficParams | None,
    ) -> LegRoute | None:
        return None


def _latlng(point: Coordinate) -> str:
    lon, lat = point
    return f"{lat},{lon}"


def _departure_time(traffic: TrafficParams | None) -> datetime | str | None:
    if traffic is None:
        return None
    if traffic.departure_time is not None:
        return traffic.departure_time
    return "now" if traffic.depart_now else None


class GoogleMapsProvider:
    """Routing provider and waypoint optimizer backed by the Directions API."""

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 5.0,
        language: str | None = None,
        region: str | None = None,
        client: Any = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise GoogleMapsError("Google Maps API key is missing")
            client = googlemaps.Client(key=api_key, timeout=timeout)
        self._client = client
        self._language = language
        self._region = region
        self._tracer = trace.get_tracer(__name__)

    def _directions(self, **kwargs: Any) -> list[dict[str, Any]]:
        try:
            return self._client.directions(
                language=self._language, region=self._region, **kwargs
            )
        except (ApiError, Timeout, TransportError, ValueError) as exc:
            logger.warning("google_maps.request_failed", error=str(exc))
            raise GoogleMapsError("Google Maps returned an error") from exc

    def _leg_from_response(
        self, response: list[dict[str, Any]], with_traffic: bool
    ) -> LegRoute | None:
        if not response:
            return None
        route = response[0]
        legs = route.get("legs") or []
        points = (route.get("overview_polyline") or {}).get("points")
        if not legs or not points:
            return None
        leg = legs[0]
        geometry = [(p["lng"], p["lat"]) for p in decode_polyline(points)]
        duration = leg.get("duration", {}).get("value", 0)
        if with_traffic and "duration_in_traffic" in leg:
            duration = leg["duration_in_traffic"].get("value", duration)
        return LegRoute(
            geometry=geometry,
            distance_m=float(leg.get("distance", {}).get("value", 0)),
            duration_s=float(duration),
        )

    def route_sync(
        self,
        origin: Coordinate,
        destination: Coordinate,
        *,
        travel_mode: TravelMode,
        traffic: TrafficParams | None,
    ) -> LegRoute | None:
        mode = _MODE_MAPPING.get(travel_mode, "driving")
        departure = _departure_time(traffic)
        with self._tracer.start_as_current_span("provider.route"):
            response = self._directions(
                origin=_latlng(origin),
                destination=_latlng(destination),
                mode=mode,
                departure_time=departure,
            )
        return self._leg_from_response(
            response, with_traffic=departure is not None and mode == "driving"
        )

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        *,
        travel_mode: TravelMode,
        traffic: TrafficParams | None,
    ) -> LegRoute | None:
        return await asyncio.to_thread(
            self.route_sync,
            origin,
            destination,
            travel_mode=travel_mode,
            traffic=traffic,
        )

    def optimize_sync(
        self,
        origin: Coordinate,
        destination: Coordinate,
        waypoints: Sequence[OptimizedWaypoint],
        *,
        travel_mode: TravelMode,
        traffic: TrafficParams | None,
    ) -> list[OptimizedWaypoint]:
        with self._tracer.start_as_current_span("provider.optimize"):
            response = self._directions(
                origin=_latlng(origin),
                destination=_latlng(destination),
                waypoints=[_latlng(wp.position) for wp in waypoints],
                optimize_waypoints=True,
                mode=_MODE_MAPPING.get(travel_mode, "driving"),
                departure_time=_departure_time(traffic),
            )
        if not response:
            raise GoogleMapsError("Google Maps returned no routes")
        order = response[0].get("waypoint_order")
        if order is None:
            return list(waypoints)
        try:
            return [waypoints[idx] for idx in order]
        except (IndexError, TypeError) as exc:
            raise GoogleMapsError("Google Maps returned an invalid waypoint order") from exc

    async def optimize(
        self,
        origin: Coordinate,
        destination: Coordinate,
        waypoints: Sequence[OptimizedWaypoint],
        *,
        travel_mode: TravelMode,
        traffic: TrafficParams | None,
    ) -> list[OptimizedWaypoint]:
        return await asyncio.to_thread(
            self.optimize_sync,
            origin,
            destination,
            waypoints,
            travel_mode=travel_mode,
            traffic=traffic,
        )
