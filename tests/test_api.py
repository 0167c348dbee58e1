import pytest

from fastapi.testclient import TestClient

from arso_air.api import create_app
from arso_air.publisher import PremiumAccessStore
from arso_air.runtime import RuntimeContext

from conftest import URLS

@pytest.fixture
def runtime(feed_server, tmp_path):
    config = {
        "publisher": {
            "payload_path": str(tmp_path / "payload.json"),
            "premium_path": str(tmp_path / "premium_access.json"),
        },
        "cache": {"historical_max_age_minutes": 15},
    }
    return RuntimeContext(config=config, transport=feed_server.transport)

@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as test_client:
        yield test_client

def test_health_before_first_load(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["data_status"] == "empty"
    assert body["station_count"] == 0

def test_payload_missing_before_first_load(client):
    assert client.get("/payload").status_code == 404

def test_stations(client, feed_server):
    response = client.get("/stations")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "live"
    assert body["count"] == 3
    codes = [s["code"] for s in body["stations"]]
    assert codes == ["E421", "E404", "E403"]
    bezigrad = body["stations"][2]
    assert bezigrad["level"] == "good"
    assert bezigrad["primaryLabel"] == "PM2.5"
    assert bezigrad["pollutants"]["co"] == pytest.approx(0.3)

    client.get("/stations")
    assert feed_server.count(URLS.hourly) == 1

def test_stations_unavailable(client, feed_server):
    feed_server.fail(URLS.hourly)
    response = client.get("/stations")
    assert response.status_code == 503

def test_refresh_falls_back_to_stale(client, feed_server):
    client.get("/stations")
    feed_server.fail(URLS.stations)

    response = client.post("/refresh")

    assert response.status_code == 200
    assert response.json()["status"] == "stale"
    assert response.json()["count"] == 3
    assert client.get("/health").json()["data_status"] == "stale"

def test_history(client):
    response = client.get("/stations/E403/history", params={"range": "last7Days"})

    assert response.status_code == 200
    body = response.json()
    assert body["station"] == "E403"
    assert body["count"] == 4
    assert [p["value"] for p in body["points"]] == [40, 9, 11, 14]
    assert body["metadata"]["window_seconds"] == 604800

    day = client.get("/stations/E403/history").json()
    assert day["range"] == "last24Hours"
    assert day["count"] == 3

def test_history_unknown_station_is_empty(client):
    body = client.get("/stations/E999/history").json()
    assert body["count"] == 0
    assert body["time_range"] is None

def test_history_invalid_range(client):
    assert client.get("/stations/E403/history", params={"range": "year"}).status_code == 422

def test_history_unavailable(client, feed_server):
    feed_server.fail(URLS.seven_day)
    assert client.get("/stations/E403/history").status_code == 503

def test_payload_after_refresh(client):
    client.post("/refresh")

    response = client.get("/payload")

    assert response.status_code == 200
    stations = {s["code"]: s for s in response.json()["stations"]}
    assert stations["E403"]["pm25"] == 14
    assert len(stations["E403"]["chart24h"]) == 3

def test_premium_flag(client, runtime):
    assert client.get("/premium").json() == {"isPremiumUnlocked": False}
    PremiumAccessStore(runtime.premium_store.path).write(True)
    assert client.get("/premium").json() == {"isPremiumUnlocked": True}

def test_history_range_is_read_from_range_parameter(client):
    body = client.get("/stations/E403/history", params={"chart_range": "last7Days"}).json()
    assert body["range"] == "last24Hours"
    assert body["metadata"]["window_seconds"] == 86400
