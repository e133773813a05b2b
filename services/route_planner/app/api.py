from fastapi import APIRouter, HTTPException, status
from opentelemetry import trace

from . import assembler, deps, geo, schemas
from .models import (
    DEPOT_ID,
    AssembledRoute,
    RoutePlanRequest,
    Stop,
    TrafficParams,
    WaypointOptimizationError,
    WaypointResolutionError,
)

router = APIRouter()

MIN_STOPS = 2


def _traffic(data: schemas.OptimizeRequest, settings: deps.Settings) -> TrafficParams | None:
    use_traffic = settings.use_traffic if data.use_traffic is None else data.use_traffic
    if not use_traffic:
        return None
    if data.departure_time is not None:
        return TrafficParams.at(data.departure_time)
    return TrafficParams.now()


def _build_request(data: schemas.OptimizeRequest) -> RoutePlanRequest:
    settings = deps.get_settings()
    depot_coord = (data.depot.lon, data.depot.lat)
    depot = Stop(
        id=DEPOT_ID,
        coordinate=depot_coord,
        label=data.depot.label or geo.depot_label(depot_coord),
    )
    stops = []
    for idx, point in enumerate(data.stops, start=1):
        coord = (point.lon, point.lat)
        stops.append(
            Stop(
                id=point.id or str(idx),
                coordinate=coord,
                label=point.label or geo.stop_label(idx, coord),
            )
        )
    service_time_min = (
        settings.default_service_time_min
        if data.service_time_min is None
        else data.service_time_min
    )
    return RoutePlanRequest(
        depot=depot,
        stops=tuple(stops),
        travel_mode=data.travel_mode or settings.default_travel_mode,
        traffic=_traffic(data, settings),
        service_time_s=service_time_min * 60,
    )


def _to_response(route: AssembledRoute) -> schemas.OptimizeResponse:
    return schemas.OptimizeResponse(
        algorithm=route.algorithm,
        sequence=route.sequence,
        total_distance_km=route.total_distance_km,
        total_time_min=route.total_time_min,
        geometry=route.to_geojson(),
        segments=[
            schemas.SegmentOut(
                start=segment.start,
                end=segment.end,
                midpoint=segment.midpoint,
                duration_s=segment.duration_s,
                duration_min=segment.duration_s / 60,
                distance_m=segment.distance_m,
                degraded=segment.degraded,
            )
            for segment in route.segments
        ],
        degraded_segments=route.degraded_segments,
    )


@router.post("/routes/optimize", response_model=schemas.OptimizeResponse)
async def optimize_route(data: schemas.OptimizeRequest) -> schemas.OptimizeResponse:
    if len(data.stops) < MIN_STOPS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"At least {MIN_STOPS} delivery stops are required",
        )
    request = _build_request(data)
    provider = deps.get_routing_provider()
    tracer = trace.get_tracer(__name__)

    if data.strategy == "nearest_neighbor":
        with tracer.start_as_current_span("route.plan:nearest_neighbor"):
            route = await assembler.plan_nearest_neighbor(request, provider)
        return _to_response(route)

    settings = deps.get_settings()
    if len(data.stops) > settings.max_stops:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"External optimization supports at most {settings.max_stops} stops",
        )
    optimizer = deps.get_waypoint_optimizer()
    if optimizer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Waypoint optimizer is not configured",
        )
    try:
        with tracer.start_as_current_span("route.plan:external"):
            route = await assembler.plan_external(request, provider, optimizer)
    except (WaypointOptimizationError, WaypointResolutionError) as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
        ) from exc
    return _to_response(route)


@router.post("/stops/parse", response_model=schemas.ParseResponse)
async def parse_stops(data: schemas.ParseRequest) -> schemas.ParseResponse:
    coordinates = geo.parse_coordinates(data.text)
    stops = [
        schemas.StopOut(
            id=str(idx),
            lon=lon,
            lat=lat,
            label=geo.stop_label(idx, (lon, lat)),
        )
        for idx, (lon, lat) in enumerate(coordinates, start=data.start_index)
    ]
    return schemas.ParseResponse(stops=stops)
