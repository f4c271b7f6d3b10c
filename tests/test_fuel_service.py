# tests/test_fuel_service.py
"""Unit tests for fuel submission and history."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from conftest import API_URL, UPLOAD_URL
from fleetlog.errors import AuthError, UploadError, ValidationError
from fleetlog.services.api_client import FleetApiClient
from fleetlog.services.fuel_service import FuelService
from fleetlog.services.location import StaticLocationProvider
from fleetlog.services.session_store import SessionStore
from fleetlog.services.upload_relay import MediaUploadRelay

CREATE_PATH = "/fuel/create-fuel-records"
IMAGES = ("https://cdn.test/pre.jpg", "https://cdn.test/pump.jpg", "https://cdn.test/receipt.jpg")


def make_service(session_store, backend, bucket, location_provider=None):
    api = FleetApiClient(session_store, base_url=API_URL, transport=backend.transport)
    relay = MediaUploadRelay(upload_url=UPLOAD_URL, transport=bucket.transport)
    return FuelService(api, relay, session_store, location_provider=location_provider, location_timeout=1)


class TestFuelSubmission:
    @pytest.mark.asyncio
    async def test_submit_computes_total_and_sends_images(self, session_store, backend, bucket):
        backend.route("POST", CREATE_PATH, body={"data": {"_id": "f-1"}})
        service = make_service(session_store, backend, bucket, StaticLocationProvider(24.7, 46.7))

        result = await service.submit("SLJ-1112", "45.5", "285", "1200", *IMAGES)

        assert result.ok
        record = result.value
        assert record.id == "f-1"
        assert record.total_amount == 12967.5
        assert record.receipt_image_url == "https://cdn.test/receipt.jpg"
        payload = backend.body_of(backend.calls[0])
        assert payload["totalAmount"] == 12967.5
        assert payload["images"] == {
            "preMeterImg": IMAGES[0], "machineMeterImg": IMAGES[1], "receiptImg": IMAGES[2],
        }
        assert payload["Coordinates"] == [24.7, 46.7]
        assert bucket.calls == []

    @pytest.mark.asyncio
    async def test_server_total_wins(self, session_store, backend, bucket):
        backend.route("POST", CREATE_PATH, body={"_id": "f-2", "totalAmount": 13000})
        service = make_service(session_store, backend, bucket)

        result = await service.submit("SLJ-1112", 45.5, 285, 1200, *IMAGES)

        assert result.value.total_amount == 13000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("vehicle,liters,price,pre", [
        ("", 10, 280, 100),
        ("SLJ-1112", "ten", 280, 100),
        ("SLJ-1112", 0, 280, 100),
        ("SLJ-1112", 10, -1, 100),
        ("SLJ-1112", 10, 280, "x"),
    ])
    async def test_invalid_input_never_reaches_network(self, session_store, backend, bucket,
                                                       vehicle, liters, price, pre):
        service = make_service(session_store, backend, bucket)

        result = await service.submit(vehicle, liters, price, pre, *IMAGES)

        assert isinstance(result.error, ValidationError)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_missing_receipt_image(self, session_store, backend, bucket):
        service = make_service(session_store, backend, bucket)

        result = await service.submit("SLJ-1112", 10, 280, 100, IMAGES[0], IMAGES[1], None)

        assert "Receipt" in result.error.message

    @pytest.mark.asyncio
    async def test_upload_failure_aborts_submission(self, session_store, backend, bucket, tmp_path):
        service = make_service(session_store, backend, bucket)

        result = await service.submit("SLJ-1112", 10, 280, 100, IMAGES[0], str(tmp_path / "gone.jpg"), IMAGES[2])

        assert isinstance(result.error, UploadError)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_logged_out_driver_cannot_submit(self, kv, backend, bucket):
        service = make_service(SessionStore(kv), backend, bucket)

        result = await service.submit("SLJ-1112", 10, 280, 100, *IMAGES)

        assert isinstance(result.error, AuthError)
        assert backend.calls == []


class TestFuelHistory:
    @pytest.mark.asyncio
    async def test_for_vehicle_newest_first(self, session_store, backend, bucket):
        backend.route("GET", "/fuel/fuel-records", body={"data": [
            {"_id": "old", "timestamp": "2024-01-01T00:00:00Z"},
            {"_id": "undated"},
            {"_id": "new", "timestamp": "2024-03-01T00:00:00Z"},
        ]})
        service = make_service(session_store, backend, bucket)

        result = await service.for_vehicle("SAJ-321")

        assert [r.id for r in result.value] == ["new", "old", "undated"]
        assert backend.calls[0].url.params["vehicle"] == "SAJ-321"

    @pytest.mark.asyncio
    async def test_for_driver_defaults_to_logged_in_user(self, session_store, backend, bucket):
        backend.route("GET", "/fuel/fuel-record/driver/u-1", body=[{"_id": "f-1", "liters": 5, "pricePerLiter": 300}])
        service = make_service(session_store, backend, bucket)

        result = await service.for_driver()

        assert result.value[0].total_amount == 1500

    @pytest.mark.asyncio
    async def test_history_failure_is_a_result(self, session_store, backend, bucket):
        backend.route("GET", "/fuel/fuel-records", status=500, body={"message": "DB offline"})
        service = make_service(session_store, backend, bucket)

        result = await service.for_vehicle("SAJ-321")

        assert not result.ok
        assert result.error.message == "DB offline"
