# tests/test_routers.py
"""Gateway route tests — FastAPI TestClient over in-memory services and fake backends."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient
from conftest import API_URL, DRIVER_USER, UPLOAD_URL
from fleetlog.database import get_db
from fleetlog.dependencies import build_services
from fleetlog.main import app
from fleetlog.services.session_store import SessionStore

PENDING_PATH = "/travel/travel-logs/pending"
COMPLETED_PATH = "/travel/travel-logs/driver/completed"

PENDING_ROW = {"_id": "t-1", "status": "pending", "officer": "Ali Raza", "vehicle": "SLJ-1112",
               "travelFrom": "Head Office", "travelTo": "Site 4", "preMeter": 1000,
               "preMeterImg": "https://cdn.test/pre.jpg", "startedAt": "2024-05-01T08:00:00Z"}
COMPLETED_ROW = {"_id": "t-9", "preMeter": 500, "postMeter": 540, "fuelPercent": 70,
                 "startedAt": "2024-04-30T16:00:00Z", "completedAt": "2024-04-30T18:00:00Z",
                 "images": ["https://cdn.test/extra.jpg"]}


@contextmanager
def gateway(kv, backend, bucket, logged_in=True):
    if logged_in:
        SessionStore(kv).login("tok-1", dict(DRIVER_USER))
    services = build_services(kv=kv, api_transport=backend.transport, upload_transport=bucket.transport,
                              api_base_url=API_URL, upload_url=UPLOAD_URL)
    app.state.services = services
    try:
        with patch("fleetlog.main.create_tables"):
            with TestClient(app, raise_server_exceptions=False) as client:
                yield client
    finally:
        app.state.services = None
        app.dependency_overrides.clear()


@pytest.fixture
def list_backend(backend):
    backend.route("GET", PENDING_PATH, body={"data": [PENDING_ROW]})
    backend.route("GET", COMPLETED_PATH, body={"data": [COMPLETED_ROW]})
    return backend


class TestSessionRoutes:
    def test_login_then_me(self, kv, backend, bucket):
        backend.route("POST", "/auth/login", body={"token": "jwt", "user": {"_id": "u-3", "name": "Sara", "role": "admin"}})
        with gateway(kv, backend, bucket, logged_in=False) as client:
            assert client.get("/api/v1/session/me").status_code == 401

            resp = client.post("/api/v1/session/login", json={"mobile_number": "0300", "password": "pw"})
            assert resp.status_code == 200
            assert resp.json() == {"user_id": "u-3", "name": "Sara", "role": "admin"}

            assert client.get("/api/v1/session/me").json()["user_id"] == "u-3"

    def test_login_validation_is_422(self, kv, backend, bucket):
        with gateway(kv, backend, bucket, logged_in=False) as client:
            resp = client.post("/api/v1/session/login", json={"mobile_number": "", "password": ""})
        assert resp.status_code == 422
        assert resp.json()["error"] == "ValidationError"

    def test_logout(self, kv, backend, bucket):
        with gateway(kv, backend, bucket) as client:
            assert client.post("/api/v1/session/logout").status_code == 200
            assert client.get("/api/v1/session/me").status_code == 401


class TestTravelLogRoutes:
    def test_list_merges_both_collections(self, kv, list_backend, bucket):
        with gateway(kv, list_backend, bucket) as client:
            body = client.get("/api/v1/travel-logs").json()

        assert body["filter"] == "all"
        assert [r["id"] for r in body["records"]] == ["t-1", "t-9"]
        assert body["records"][1]["status"] == "completed"
        assert body["records"][1]["distance_km"] == 40
        assert body["partial_failure"] is False

    def test_partial_failure_is_200_with_warning(self, kv, backend, bucket):
        backend.route("GET", PENDING_PATH, status=500, body={"message": "pending down"})
        backend.route("GET", COMPLETED_PATH, body=[COMPLETED_ROW, {**COMPLETED_ROW, "_id": "t-10"}])
        with gateway(kv, backend, bucket) as client:
            resp = client.get("/api/v1/travel-logs")

        assert resp.status_code == 200
        assert len(resp.json()["records"]) == 2
        assert resp.json()["partial_failure"] is True
        assert "pending down" in resp.json()["warning"]

    def test_filter_without_refetch(self, kv, list_backend, bucket):
        with gateway(kv, list_backend, bucket) as client:
            client.get("/api/v1/travel-logs")
            resp = client.get("/api/v1/travel-logs", params={"filter": "completed", "refresh": False})

        assert [r["id"] for r in resp.json()["records"]] == ["t-9"]
        assert len(list_backend.calls) == 2

    def test_unknown_filter_is_422(self, kv, list_backend, bucket):
        with gateway(kv, list_backend, bucket) as client:
            assert client.get("/api/v1/travel-logs", params={"filter": "archived"}).status_code == 422

    def test_logged_out_list_is_401(self, kv, backend, bucket):
        with gateway(kv, backend, bucket, logged_in=False) as client:
            assert client.get("/api/v1/travel-logs").status_code == 401
        assert backend.calls == []

    def test_backend_401_clears_session(self, kv, backend, bucket):
        backend.route("GET", PENDING_PATH, status=401, body={"message": "Token expired"})
        backend.route("GET", COMPLETED_PATH, body=[])
        with gateway(kv, backend, bucket) as client:
            assert client.get("/api/v1/travel-logs").status_code == 401
            assert client.get("/api/v1/session/me").status_code == 401

    def test_start_trip(self, kv, backend, bucket):
        backend.route("POST", "/travel/travel-logs", body={"data": {"_id": "t-new"}})
        with gateway(kv, backend, bucket) as client:
            resp = client.post("/api/v1/travel-logs", json={
                "officer": "Ali Raza", "vehicle": "SLJ-1112", "from_location": "A", "to_location": "B",
                "pre_meter_reading": 1000, "pre_meter_image": "https://cdn.test/pre.jpg",
                "coordinates": {"latitude": 31.5, "longitude": 74.3},
            })

        assert resp.status_code == 200
        assert resp.json()["id"] == "t-new"
        assert resp.json()["start_coordinates"] == {"latitude": 31.5, "longitude": 74.3}

    def test_complete_trip(self, kv, list_backend, bucket):
        list_backend.route("PATCH", "/travel/travel-logs/t-1/complete", body={"data": {"_id": "t-1"}})
        with gateway(kv, list_backend, bucket) as client:
            resp = client.patch("/api/v1/travel-logs/t-1/complete", json={
                "post_meter_reading": 1050, "post_meter_image": "https://cdn.test/post.jpg",
                "fuel_percent": 40, "fuel_meter_image": "https://cdn.test/fuel.jpg",
            })

        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"
        assert resp.json()["distance_km"] == 50
        assert resp.json()["fuel_percent"] == 40

    def test_complete_without_image_is_422_and_sends_nothing(self, kv, list_backend, bucket):
        with gateway(kv, list_backend, bucket) as client:
            resp = client.patch("/api/v1/travel-logs/t-1/complete", json={
                "post_meter_reading": 1050, "fuel_percent": 40, "fuel_meter_image": "https://cdn.test/fuel.jpg",
            })

        assert resp.status_code == 422
        assert list_backend.calls_to("PATCH") == []

    def test_complete_unknown_record_is_404(self, kv, list_backend, bucket):
        with gateway(kv, list_backend, bucket) as client:
            resp = client.patch("/api/v1/travel-logs/nope/complete", json={"post_meter_reading": 1})
        assert resp.status_code == 404

    def test_upload_failure_is_502(self, kv, list_backend, bucket, tmp_path):
        photo = tmp_path / "post.jpg"
        photo.write_bytes(b"jpeg")
        bucket.route("POST", "/upload/new", status=500, body={"message": "bucket offline"})
        with gateway(kv, list_backend, bucket) as client:
            resp = client.patch("/api/v1/travel-logs/t-1/complete", json={
                "post_meter_reading": 1050, "post_meter_image": str(photo),
                "fuel_percent": 40, "fuel_meter_image": "https://cdn.test/fuel.jpg",
            })

        assert resp.status_code == 502
        assert resp.json()["detail"] == "bucket offline"

    def test_images_and_drafts(self, kv, list_backend, bucket):
        with gateway(kv, list_backend, bucket) as client:
            client.get("/api/v1/travel-logs")
            images = client.get("/api/v1/travel-logs/t-9/images").json()
            draft = client.post("/api/v1/travel-logs/drafts", json={"officer": "Ali", "vehicle": "SAJ-321"}).json()
            pending = client.get("/api/v1/travel-logs", params={"filter": "pending"}).json()["records"]
            client.delete(f"/api/v1/travel-logs/drafts/{draft['id']}")

        assert images == [{"url": "https://cdn.test/extra.jpg", "label": "Image 1"}]
        assert draft["is_local"] is True
        assert draft["id"] in [r["id"] for r in pending]
        assert kv.get("TRAVEL_LOGS") == []


class TestFuelAndAdminRoutes:
    def test_submit_fuel(self, kv, backend, bucket):
        backend.route("POST", "/fuel/create-fuel-records", body={"_id": "f-1"})
        with gateway(kv, backend, bucket) as client:
            resp = client.post("/api/v1/fuel-records", json={
                "vehicle": "SLJ-1112", "liters": 45.5, "price_per_liter": 285, "pre_meter_reading": 1200,
                "pre_meter_image": "https://cdn.test/a.jpg", "pump_meter_image": "https://cdn.test/b.jpg",
                "receipt_image": "https://cdn.test/c.jpg",
            })

        assert resp.status_code == 200
        assert resp.json()["total_amount"] == 12967.5

    def test_fuel_upstream_status_passes_through(self, kv, backend, bucket):
        backend.route("GET", "/fuel/fuel-records", status=404, body={"message": "Vehicle not found"})
        with gateway(kv, backend, bucket) as client:
            resp = client.get("/api/v1/fuel-records/vehicle/XYZ-1")

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Vehicle not found"

    def test_vehicles(self, kv, backend, bucket):
        with gateway(kv, backend, bucket) as client:
            assert "SLJ-1112" in client.get("/api/v1/fuel-records/vehicles").json()

    def test_driver_details(self, kv, backend, bucket):
        backend.route("GET", "/fuel/fuel-record/driver/u-7", status=500, body={"message": "down"})
        backend.route("GET", "/travel/all-travel-logs/driver/u-7",
                      body=[{"_id": "t-1", "status": "completed", "preMeter": 0, "postMeter": 12}])
        with gateway(kv, backend, bucket) as client:
            body = client.get("/api/v1/admin/drivers/u-7").json()

        assert body["partial_failure"] is True
        assert body["summary"]["total_distance_km"] == 12
        assert body["fuel_records"] == []

    def test_create_user_validation(self, kv, backend, bucket):
        with gateway(kv, backend, bucket) as client:
            resp = client.post("/api/v1/admin/users", json={"name": "B", "mobile_number": "1", "password": "12"})
        assert resp.status_code == 422


class TestHealth:
    def test_health_reports_backend_and_cache(self, kv, backend, bucket):
        db = MagicMock()
        app.dependency_overrides[get_db] = lambda: db
        with gateway(kv, backend, bucket) as client:
            with patch("fleetlog.routers.health.requests.get") as fake_get:
                fake_get.return_value.status_code = 404
                body = client.get("/api/v1/health").json()

        assert body["status"] == "ok"
        assert body["cache"] == "ok"
        assert body["session"] == "active"
        assert body["backend"] == "reachable (http_404)"
