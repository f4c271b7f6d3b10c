# tests/test_api_client.py
"""Unit tests for the backend REST client (auth header, error mapping, 401 handling)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
import httpx
from conftest import API_URL
from fleetlog.errors import AuthError, NetworkError
from fleetlog.services.api_client import FleetApiClient, extract_item, extract_rows, server_message
from fleetlog.services.session_store import SessionStore


def make_client(session_store, backend):
    return FleetApiClient(session_store, base_url=API_URL, transport=backend.transport)


class TestResponseHelpers:
    def test_server_message_prefers_errors_list(self):
        data = {"errors": [{"msg": "Vehicle is required"}, {"msg": "Liters must be positive"}],
                "message": "Validation failed"}
        assert server_message(data, "fallback") == "Vehicle is required\nLiters must be positive"

    def test_server_message_falls_back(self):
        assert server_message({"message": "Not found"}, "fallback") == "Not found"
        assert server_message({}, "fallback") == "fallback"
        assert server_message(None, "fallback") == "fallback"

    def test_rows_and_items(self):
        assert extract_rows({"data": [1, 2]}) == [1, 2]
        assert extract_rows([3]) == [3]
        assert extract_rows({"data": {"x": 1}}) == []
        assert extract_item({"data": {"_id": "a"}}) == {"_id": "a"}
        assert extract_item({"_id": "b"}) == {"_id": "b"}


class TestFleetApiClient:
    @pytest.mark.asyncio
    async def test_bearer_token_and_query_params(self, session_store, backend):
        backend.route("GET", "/travel/travel-logs/pending", body={"data": [{"_id": "t-1"}]})
        client = make_client(session_store, backend)

        rows = await client.fetch_pending_travel_logs("u-1")

        request = backend.calls[0]
        assert rows == [{"_id": "t-1"}]
        assert request.headers["Authorization"] == "Bearer tok-1"
        assert request.url.params["userId"] == "u-1"
        assert request.url.params["perPage"] == "10"
        assert request.url.params["pageNo"] == "1"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_login_is_sent_without_a_session(self, kv, backend):
        backend.route("POST", "/auth/login", body={"token": "new", "user": {"_id": "u-2"}})
        client = make_client(SessionStore(kv), backend)

        data = await client.login("0300", "secret")

        assert data["token"] == "new"
        assert "Authorization" not in backend.calls[0].headers
        assert backend.body_of(backend.calls[0]) == {"mobileNumber": "0300", "password": "secret"}

    @pytest.mark.asyncio
    async def test_no_session_means_no_request(self, kv, backend):
        client = make_client(SessionStore(kv), backend)

        with pytest.raises(AuthError):
            await client.fetch_completed_travel_logs()
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_401_clears_session_and_blocks_next_call(self, session_store, kv, backend):
        backend.route("GET", "/fuel/fuel-records", status=401, body={"message": "jwt expired"})
        client = make_client(session_store, backend)

        with pytest.raises(AuthError) as exc:
            await client.fetch_fuel_records("SLJ-1112")
        assert exc.value.message == "jwt expired"
        assert session_store.current is None
        assert kv.get("userToken") is None

        with pytest.raises(AuthError):
            await client.fetch_fuel_records("SLJ-1112")
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_non_2xx_surfaces_server_message(self, session_store, backend):
        backend.route("POST", "/travel/travel-logs", status=400,
                      body={"errors": [{"msg": "preMeter must be a number"}]})
        client = make_client(session_store, backend)

        with pytest.raises(NetworkError) as exc:
            await client.create_travel_log({"preMeter": "x"})
        assert exc.value.message == "preMeter must be a number"
        assert exc.value.status_code == 400
        assert session_store.current is not None

    @pytest.mark.asyncio
    async def test_non_json_error_body_is_used_as_message(self, session_store, backend):
        backend.route("GET", "/user-list/user-profile", status=502, body="Bad Gateway")
        client = make_client(session_store, backend)

        with pytest.raises(NetworkError) as exc:
            await client.fetch_profile()
        assert exc.value.message == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self, session_store, backend):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.route("GET", "/user-list/users-via-admin", body=refuse)
        client = make_client(session_store, backend)

        with pytest.raises(NetworkError) as exc:
            await client.list_users()
        assert "internet connection" in exc.value.message
        assert exc.value.status_code is None

    @pytest.mark.asyncio
    async def test_complete_is_a_patch_on_the_escaped_id(self, session_store, backend):
        backend.route("PATCH", "/travel/travel-logs/t-7/complete", body={"data": {"_id": "t-7", "status": "completed"}})
        client = make_client(session_store, backend)

        data = await client.complete_travel_log("t-7", {"postMeter": 10})

        assert data == {"_id": "t-7", "status": "completed"}
        assert backend.body_of(backend.calls[0]) == {"postMeter": 10}

    @pytest.mark.asyncio
    async def test_driver_history_paths(self, session_store, backend):
        backend.route("GET", "/fuel/fuel-record/driver/u-9", body=[{"_id": "f-1"}])
        backend.route("GET", "/travel/all-travel-logs/driver/u-9", body={"data": []})
        client = make_client(session_store, backend)

        assert await client.fetch_driver_fuel_records("u-9") == [{"_id": "f-1"}]
        assert await client.fetch_driver_travel_logs("u-9") == []
