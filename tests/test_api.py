import pytest
from conftest import FakeGeometryService, straight_leg

from stoproute.oracle import DirectDistanceOracle
from stoproute.plan import StopRouter
from stoproute.server.api import create_app


@pytest.fixture
def client(brasilia_stops, instant_pacer):
    a, b, _ = brasilia_stops
    geometry = FakeGeometryService(legs={(a.position, b.position): straight_leg(a, b)})
    router = StopRouter(
        brasilia_stops,
        oracle=DirectDistanceOracle(),
        geometry_provider=geometry,
        max_neighbors=2,
        cutoff_m=1500,
        geometry_pacer=instant_pacer(),
    )
    app = create_app(router)
    app.config["TESTING"] = True
    return app.test_client()


def test_route_endpoint_returns_route(client):
    response = client.post("/api/route", json={"start": "1", "end": "2"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "done"
    assert body["path"] == ["1", "2"]
    assert body["coordinates"][0] == {"lat": -15.8, "lon": -47.9}
    assert body["stopCount"] == 2
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_route_endpoint_accepts_integer_ids(client):
    response = client.post("/api/route", json={"start": 1, "end": 2})
    assert response.get_json()["path"] == ["1", "2"]


def test_no_route_is_not_an_http_error(client):
    response = client.post("/api/route", json={"start": "1", "end": "3"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "no_route_found"
    assert body["coordinates"] == []


@pytest.mark.parametrize(
    "payload",
    [None, [], {"start": "1"}, {"start": "", "end": "2"}, {"start": True, "end": "2"}],
)
def test_malformed_requests_are_rejected(client, payload):
    if payload is None:
        response = client.post("/api/route", data="nope", content_type="text/plain")
    else:
        response = client.post("/api/route", json=payload)
    assert response.status_code == 400


def test_options_preflight(client):
    response = client.options("/api/route")
    assert response.status_code == 204


def test_clear_cache_and_health(client):
    assert client.delete("/api/cache").status_code == 204
    assert client.get("/health").get_json() == {"status": "ok", "stops": 3}
