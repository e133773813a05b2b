import pytest
from fastapi.testclient import TestClient

from services.route_planner.app import deps
from services.route_planner.app.main import app
from services.route_planner.app.models import LegRoute


class DummyProvider:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def route(self, origin, destination, *, travel_mode, traffic):
        self.calls.append((origin, destination, travel_mode, traffic))
        return LegRoute(geometry=[origin, destination], distance_m=1000.0, duration_s=120.0)


class DummyOptimizer:
    async def optimize(self, origin, destination, waypoints, *, travel_mode, traffic):
        return list(reversed(waypoints))


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    class TestSettings(deps.Settings):
        google_maps_api_key = None
        default_service_time_min = 5.0
        use_traffic = True

    monkeypatch.setattr(deps, "get_settings", lambda: TestSettings())
    provider = DummyProvider()
    monkeypatch.setattr(deps, "get_routing_provider", lambda: provider)
    monkeypatch.setattr(deps, "get_waypoint_optimizer", lambda: DummyOptimizer())

    client = TestClient(app)
    client.provider = provider  # type: ignore[attr-defined]
    return client


PAYLOAD = {
    "depot": {"lon": 0.0, "lat": 0.0},
    "stops": [{"lon": 0.0, "lat": 0.02}, {"lon": 0.0, "lat": 0.01}],
}


def test_optimize_nearest_neighbor(client: TestClient) -> None:
    resp = client.post("/routes/optimize", json=PAYLOAD)
    assert resp.status_code == 200
    body = resp.json()
    assert body["sequence"] == [0, 2, 1, 0]
    assert body["algorithm"] == "Nearest Neighbor Algorithm"
    assert body["total_distance_km"] == pytest.approx(3.0)
    # three legs of 2 min, two stops of 5 min
    assert body["total_time_min"] == pytest.approx(16.0)
    assert body["geometry"]["geometry"]["coordinates"] == [
        [0.0, 0.0],
        [0.0, 0.01],
        [0.0, 0.02],
        [0.0, 0.0],
    ]
    assert [s["duration_min"] for s in body["segments"]] == [7.0, 7.0, 2.0]
    assert body["segments"][0]["midpoint"] == [0.0, 0.005]
    assert body["degraded_segments"] == 0

    traffic = client.provider.calls[0][3]  # type: ignore[attr-defined]
    assert traffic.depart_now is True


def test_optimize_without_traffic(client: TestClient) -> None:
    resp = client.post("/routes/optimize", json={**PAYLOAD, "use_traffic": False})
    assert resp.status_code == 200
    assert client.provider.calls[0][3] is None  # type: ignore[attr-defined]


def test_optimize_external(client: TestClient) -> None:
    resp = client.post(
        "/routes/optimize",
        json={**PAYLOAD, "strategy": "external", "travel_mode": "walking"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["sequence"] == [0, 2, 1, 0]
    assert body["algorithm"] == "External Optimization"


def test_external_without_optimizer(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(deps, "get_waypoint_optimizer", lambda: None)
    resp = client.post("/routes/optimize", json={**PAYLOAD, "strategy": "external"})
    assert resp.status_code == 503


def test_external_unresolvable_waypoint(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from services.route_planner.app.models import OptimizedWaypoint

    class StrayOptimizer:
        async def optimize(self, origin, destination, waypoints, *, travel_mode, traffic):
            return [OptimizedWaypoint(position=(9.0, 9.0), id=0)]

    monkeypatch.setattr(deps, "get_waypoint_optimizer", lambda: StrayOptimizer())
    resp = client.post("/routes/optimize", json={**PAYLOAD, "strategy": "external"})
    assert resp.status_code == 502


def test_optimize_requires_two_stops(client: TestClient) -> None:
    resp = client.post(
        "/routes/optimize",
        json={"depot": {"lon": 0.0, "lat": 0.0}, "stops": [{"lon": 1.0, "lat": 1.0}]},
    )
    assert resp.status_code == 422


def test_parse_stops(client: TestClient) -> None:
    resp = client.post(
        "/stops/parse",
        json={"text": "44.3661, 33.3152\nbad line\n44.3700 33.3200", "start_index": 3},
    )
    assert resp.status_code == 200
    stops = resp.json()["stops"]
    assert [s["label"] for s in stops] == ["3. (44.3661, 33.3152)", "4. (44.3700, 33.3200)"]


def test_healthz(client: TestClient) -> None:
    assert client.get("/healthz").json() == {"status": "ok"}
