import json

import pytest
from starlette.testclient import TestClient

from sitemapper.api.app import app, create_app
from sitemapper.config.settings import Settings
from sitemapper.core.store import MemoryStore
from sitemapper.state.app_state import AppState


@pytest.fixture
def client(monkeypatch):
    # Swap the cached process-wide state for an in-memory one so API tests never touch disk.
    import sitemapper.api.routes as routes

    state = AppState.load(MemoryStore(), settings=Settings())
    monkeypatch.setattr(routes, "_state", lambda: state)
    with TestClient(app) as c:
        yield c


def _add(c: TestClient, name: str, lat, lng, **extra) -> dict:
    resp = c.post("/api/sites", json={"name": name, "lat": lat, "lng": lng, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_site_crud_and_search(client):
    hub = _add(client, "Tripoli Hub", "32.8872", "13.1913", category="Hub")
    _add(client, "Relay", 32.1, 20.0, type="radio", icon="radio")

    assert [s["name"] for s in client.get("/api/sites").json()] == ["Tripoli Hub", "Relay"]
    assert [s["name"] for s in client.get("/api/sites", params={"q": "hub"}).json()] == ["Tripoli Hub"]

    patched = client.patch(f"/api/sites/{hub['id']}", json={"notes": "fenced"}).json()
    assert patched["notes"] == "fenced"
    assert patched["id"] == hub["id"]

    assert client.delete(f"/api/sites/{hub['id']}").status_code == 204
    missing = client.get(f"/api/sites/{hub['id']}")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "NOT_FOUND"


def test_invalid_site_is_a_400(client):
    resp = client.post("/api/sites", json={"name": "", "lat": 1, "lng": 1})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "VALIDATION_ERROR"
    assert client.get("/api/sites").json() == []


def test_layer_toggle_filters_visible_sites(client):
    _add(client, "T", 1, 1)
    _add(client, "R", 2, 2, type="radio", icon="radio")
    assert client.post("/api/layers/radio/toggle").json() == {"type": "radio", "visible": False}
    visible = client.get("/api/sites", params={"visible_only": True}).json()
    assert [s["name"] for s in visible] == ["T"]
    assert "radio" not in client.get("/api/layers").json()["visible"]


def test_customer_and_relations(client):
    site = _add(client, "North", 1, 0)
    assert client.get("/api/customer").json() is None

    customer = client.put("/api/customer", json={"lat": 0, "lng": 0}).json()
    assert customer["name"] == "Current Prospect"
    client.put("/api/user-location", json={"lat": 0, "lng": 0, "accuracy": 30})

    rel = client.get(f"/api/sites/{site['id']}/relations").json()
    assert rel["distance_from_customer_km"] == pytest.approx(111.19, abs=0.5)
    assert rel["distance_from_user_km"] == pytest.approx(111.19, abs=0.5)
    assert rel["cardinal_from_customer"] == "N"

    assert client.delete("/api/customer").status_code == 204
    assert client.get("/api/customer").json() is None


def test_import_export_round_trip(client):
    body = "name,latitude,longitude,type\nA,1,2,radio\nBad,x,2,radio"
    resp = client.post("/api/import/csv", content=body.encode("utf-8"), params={"mode": "append"})
    assert resp.json() == {"mode": "append", "imported": 1, "total": 1}

    exported = client.get("/api/export/json")
    assert exported.status_code == 200
    assert "tower_data_" in exported.headers["content-disposition"]
    payload = json.loads(exported.text)
    assert payload[0]["name"] == "A"

    resp = client.post("/api/import/json", content=b"[]", params={"mode": "replace"})
    assert resp.json()["total"] == 0

    bad = client.post("/api/import/json", content=b"{nope")
    assert bad.status_code == 400
    assert bad.json()["detail"]["code"] == "PARSE_ERROR"


def test_csv_template_download(client):
    resp = client.get("/api/export/csv-template", params={"sample": False})
    assert resp.text == "name,latitude,longitude,type,icon,notes,category"
    assert "tower_template_empty.csv" in resp.headers["content-disposition"]


def test_regions(client):
    regions = client.get("/api/regions").json()
    assert regions[0]["code"] == "LY"
    assert client.post("/api/regions/de/select").json()["name"] == "Germany"
    assert client.post("/api/regions/zz/select").status_code == 404
    added = client.post("/api/regions", json={"name": "Niger", "lat": "17.6", "lng": "8.08"})
    assert added.status_code == 201
    assert added.json()["code"] == "NI"
    assert client.get("/api/settings").json()["current_region"]["code"] == "NI"


def test_measurement_flow(client):
    idle = client.post("/api/measurement/points", json={"lat": 0, "lng": 0})
    assert idle.status_code == 409

    assert client.post("/api/measurement/toggle").json()["measuring"] is True
    client.post("/api/measurement/points", json={"lat": 0, "lng": 0})
    view = client.post("/api/measurement/points", json={"lat": 0, "lng": 1}).json()
    assert view["total_km"] == pytest.approx(111.19, abs=0.5)
    assert len(view["points"]) == 2

    stopped = client.post("/api/measurement/toggle").json()
    assert stopped == {"measuring": False, "points": [], "total_km": 0.0}


def test_geo_relation(client):
    resp = client.post("/api/geo/relation", json={"origin": {"lat": 0, "lng": 0}, "target": {"lat": 0, "lng": 1}})
    data = resp.json()
    assert data["bearing_deg"] == pytest.approx(90.0)
    assert data["cardinal"] == "E"


def test_settings_hide_storage_and_language_update(client):
    data = client.get("/api/settings").json()
    assert "storage" not in data
    assert data["language"] == "en"
    assert client.put("/api/settings/language", json={"language": "ar"}).json() == {"language": "ar"}
    assert client.put("/api/settings/language", json={"language": "xx"}).status_code == 400


def test_cors_allow_list_comes_from_settings():
    settings = Settings.model_validate({"api": {"cors_origins": ["http://map.example"]}})
    with TestClient(create_app(settings)) as c:
        preflight = {"Origin": "http://map.example", "Access-Control-Request-Method": "GET"}
        allowed = c.options("/api/sites", headers=preflight)
        assert allowed.headers.get("access-control-allow-origin") == "http://map.example"

        other = c.options("/api/sites", headers={**preflight, "Origin": "http://evil.example"})
        assert "access-control-allow-origin" not in other.headers


def test_settings_endpoint_hides_api_wiring(client):
    assert "api" not in client.get("/api/settings").json()
