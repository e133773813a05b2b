import asyncio
from datetime import datetime, timezone

import pytest
from googlemaps.convert import encode_polyline
from googlemaps.exceptions import ApiError

from services.route_planner.app.maps import (
    GoogleMapsError,
    GoogleMapsProvider,
    StraightLineProvider,
)
from services.route_planner.app.models import OptimizedWaypoint, TrafficParams, TravelMode


class DummyClient:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response if response is not None else []
        self.error = error
        self.calls: list[dict] = []

    def directions(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _directions_response(points_latlng, distance=1234, duration=300, in_traffic=None):
    leg = {"distance": {"value": distance}, "duration": {"value": duration}}
    if in_traffic is not None:
        leg["duration_in_traffic"] = {"value": in_traffic}
    return [
        {
            "legs": [leg],
            "overview_polyline": {"points": encode_polyline(points_latlng)},
        }
    ]


def test_route_decodes_geometry_as_lon_lat() -> None:
    client = DummyClient(
        _directions_response([(40.71, -74.0), (40.72, -74.01), (40.73, -74.02)])
    )
    provider = GoogleMapsProvider("key", client=client, language="en")

    leg = asyncio.run(
        provider.route(
            (-74.0, 40.71),
            (-74.02, 40.73),
            travel_mode=TravelMode.DRIVING_HEAVY,
            traffic=None,
        )
    )

    assert leg is not None
    assert leg.geometry[0] == pytest.approx((-74.0, 40.71))
    assert leg.geometry[-1] == pytest.approx((-74.02, 40.73))
    assert leg.distance_m == 1234
    assert leg.duration_s == 300
    call = client.calls[0]
    assert call["origin"] == "40.71,-74.0"
    assert call["destination"] == "40.73,-74.02"
    assert call["mode"] == "driving"
    assert call["departure_time"] is None
    assert call["language"] == "en"


def test_route_prefers_traffic_duration_when_departing_now() -> None:
    client = DummyClient(
        _directions_response([(1.0, 1.0), (1.1, 1.1)], duration=300, in_traffic=420)
    )
    provider = GoogleMapsProvider("key", client=client)

    leg = asyncio.run(
        provider.route(
            (1.0, 1.0),
            (1.1, 1.1),
            travel_mode=TravelMode.DRIVING_LIGHT,
            traffic=TrafficParams.now(),
        )
    )

    assert leg is not None and leg.duration_s == 420
    assert client.calls[0]["departure_time"] == "now"


def test_route_forwards_departure_time_and_mode() -> None:
    departure = datetime(2030, 1, 1, 8, 30, tzinfo=timezone.utc)
    client = DummyClient(_directions_response([(1.0, 1.0), (1.1, 1.1)]))
    provider = GoogleMapsProvider("key", client=client)

    asyncio.run(
        provider.route(
            (1.0, 1.0),
            (1.1, 1.1),
            travel_mode=TravelMode.TWO_WHEELED,
            traffic=TrafficParams.at(departure),
        )
    )

    assert client.calls[0]["departure_time"] == departure
    assert client.calls[0]["mode"] == "bicycling"


def test_route_without_routes_returns_none() -> None:
    provider = GoogleMapsProvider("key", client=DummyClient([]))
    leg = asyncio.run(
        provider.route((0.0, 0.0), (1.0, 1.0), travel_mode=TravelMode.WALKING, traffic=None)
    )
    assert leg is None


def test_route_wraps_api_errors() -> None:
    provider = GoogleMapsProvider("key", client=DummyClient(error=ApiError("OVER_QUERY_LIMIT")))
    with pytest.raises(GoogleMapsError):
        asyncio.run(
            provider.route(
                (0.0, 0.0), (1.0, 1.0), travel_mode=TravelMode.WALKING, traffic=None
            )
        )


def test_optimize_applies_waypoint_order() -> None:
    client = DummyClient([{"legs": [], "waypoint_order": [2, 0, 1]}])
    provider = GoogleMapsProvider("key", client=client)
    waypoints = [
        OptimizedWaypoint(position=(10.0, 1.0), id=0),
        OptimizedWaypoint(position=(20.0, 2.0), id=1),
        OptimizedWaypoint(position=(30.0, 3.0), id=2),
    ]

    ordered = asyncio.run(
        provider.optimize(
            (0.0, 0.0),
            (0.0, 0.0),
            waypoints,
            travel_mode=TravelMode.DRIVING_HEAVY,
            traffic=None,
        )
    )

    assert [wp.id for wp in ordered] == [2, 0, 1]
    call = client.calls[0]
    assert call["optimize_waypoints"] is True
    assert call["waypoints"] == ["1.0,10.0", "2.0,20.0", "3.0,30.0"]


def test_optimize_without_routes_fails() -> None:
    provider = GoogleMapsProvider("key", client=DummyClient([]))
    with pytest.raises(GoogleMapsError):
        asyncio.run(
            provider.optimize(
                (0.0, 0.0), (0.0, 0.0), [], travel_mode=TravelMode.WALKING, traffic=None
            )
        )


def test_missing_api_key_is_rejected() -> None:
    with pytest.raises(GoogleMapsError):
        GoogleMapsProvider("")


def test_straight_line_provider_never_routes() -> None:
    leg = asyncio.run(
        StraightLineProvider().route(
            (0.0, 0.0), (1.0, 1.0), travel_mode=TravelMode.WALKING, traffic=None
        )
    )
    assert leg is None


def test_heavy_and_light_driving_request_the_same_google_mode() -> None:
    client = DummyClient(_directions_response([(0.0, 0.0), (1.0, 0.0)]))
    provider = GoogleMapsProvider("key", client=client)

    for mode in (TravelMode.DRIVING_HEAVY, TravelMode.DRIVING_LIGHT):
        asyncio.run(
            provider.route((0.0, 0.0), (0.0, 1.0), travel_mode=mode, traffic=None)
        )

    assert [call["mode"] for call in client.calls] == ["driving", "driving"]
