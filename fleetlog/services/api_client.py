"""
Backend REST API client — JSON over HTTPS with bearer-token auth.

Base: {API_BASE_URL}
  POST  /auth/login                              → {token, user}
  POST  /auth/signup                             (admin)
  GET   /travel/travel-logs/pending              ?userId=&vehicle=&perPage=&pageNo=
  GET   /travel/travel-logs/driver/completed     ?perPage=&pageNo=
  GET   /travel/all-travel-logs/driver/{userId}  ?perPage=&pageNo=   (admin)
  POST  /travel/travel-logs
  PATCH /travel/travel-logs/{id}/complete
  POST  /fuel/create-fuel-records
  GET   /fuel/fuel-records                       ?vehicle=
  GET   /fuel/fuel-record/driver/{userId}        ?perPage=&pageNo=
  GET   /user-list/users-via-admin               ?perPage=&pageNo=
  GET   /user-list/user-profile

Any 401 clears the session immediately. Other non-2xx responses surface the
server's message verbatim.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from fleetlog.config import settings
from fleetlog.errors import AuthError, NetworkError
from fleetlog.services.session_store import SessionStore
from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)


def server_message(data: Any, fallback: str) -> str:
    """Human-readable error from a response body: errors[].msg, then message, then fallback."""
    if isinstance(data, dict):
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            parts = [str(e.get("msg") or e) if isinstance(e, dict) else str(e) for e in errors]
            return "\n".join(parts)
        if data.get("message"):
            return str(data["message"])
    return fallback


def extract_rows(data: Any) -> list:
    """List endpoints answer either {data: [...]} or a bare [...]."""
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"]
    if isinstance(data, list):
        return data
    return []


def extract_item(data: Any) -> dict:
    """Single-record endpoints answer {data: {...}} or the record itself."""
    if isinstance(data, dict):
        inner = data.get("data")
        if isinstance(inner, dict):
            return inner
        return data
    return {}


class FleetApiClient:
    def __init__(
        self,
        session_store: SessionStore,
        base_url: str = settings.API_BASE_URL,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_store = session_store
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        authenticated: bool = True,
        failure_message: str = "Request failed.",
    ) -> Any:
        headers = {}
        if authenticated:
            session = self.session_store.snapshot()     # AuthError here means no request is made
            headers["Authorization"] = f"Bearer {session.token}"

        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"🌐 {method} {path} — transport error: {e}")
            raise NetworkError(f"{failure_message} Check your internet connection.") from e

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}

        if response.status_code == 401:
            self.session_store.invalidate("401 from backend")
            raise AuthError(server_message(data, "Session expired. Please login again."))

        if not response.is_success:
            logger.warning(f"🌐 {method} {path} → HTTP {response.status_code}")
            raise NetworkError(server_message(data, failure_message), status_code=response.status_code)

        logger.debug(f"{method} {path} → {response.status_code}")
        return data

    # ── Auth ──────────────────────────────────────────────────────────────
    async def login(self, mobile_number: str, password: str) -> dict:
        """POST /auth/login. Returns the raw {token, user} body; the caller stores it."""
        return await self._request(
            "POST", "/auth/login",
            json={"mobileNumber": mobile_number, "password": password},
            authenticated=False,
            failure_message="Login failed.",
        )

    async def create_user(self, payload: dict) -> dict:
        data = await self._request("POST", "/auth/signup", json=payload,
                                   failure_message="Failed to create user")
        return extract_item(data)

    # ── Travel ────────────────────────────────────────────────────────────
    async def fetch_pending_travel_logs(self, user_id: str, vehicle: str = "",
                                        page_no: int = 1, per_page: int = settings.PAGE_SIZE) -> list:
        data = await self._request(
            "GET", "/travel/travel-logs/pending",
            params={"userId": user_id, "vehicle": vehicle, "perPage": per_page, "pageNo": page_no},
            failure_message="Failed to load pending travel logs.",
        )
        return extract_rows(data)

    async def fetch_completed_travel_logs(self, page_no: int = 1,
                                          per_page: int = settings.PAGE_SIZE) -> list:
        data = await self._request(
            "GET", "/travel/travel-logs/driver/completed",
            params={"perPage": per_page, "pageNo": page_no},
            failure_message="Failed to load completed travel logs.",
        )
        return extract_rows(data)

    async def fetch_driver_travel_logs(self, user_id: str, page_no: int = 1,
                                       per_page: int = settings.PAGE_SIZE) -> list:
        data = await self._request(
            "GET", f"/travel/all-travel-logs/driver/{quote(str(user_id), safe='')}",
            params={"perPage": per_page, "pageNo": page_no},
            failure_message="Failed to load travel logs.",
        )
        return extract_rows(data)

    async def create_travel_log(self, payload: dict) -> dict:
        data = await self._request("POST", "/travel/travel-logs", json=payload,
                                   failure_message="Failed to start travel log.")
        return extract_item(data)

    async def complete_travel_log(self, record_id: str, payload: dict) -> dict:
        data = await self._request(
            "PATCH", f"/travel/travel-logs/{quote(str(record_id), safe='')}/complete",
            json=payload,
            failure_message="Failed to complete travel log.",
        )
        return extract_item(data)

    # ── Fuel ──────────────────────────────────────────────────────────────
    async def create_fuel_record(self, payload: dict) -> dict:
        data = await self._request("POST", "/fuel/create-fuel-records", json=payload,
                                   failure_message="Failed to submit fuel record.")
        return extract_item(data)

    async def fetch_fuel_records(self, vehicle: str) -> list:
        data = await self._request("GET", "/fuel/fuel-records", params={"vehicle": vehicle},
                                   failure_message="Failed to load fuel records.")
        return extract_rows(data)

    async def fetch_driver_fuel_records(self, user_id: str, page_no: int = 1,
                                        per_page: int = settings.PAGE_SIZE) -> list:
        data = await self._request(
            "GET", f"/fuel/fuel-record/driver/{quote(str(user_id), safe='')}",
            params={"perPage": per_page, "pageNo": page_no},
            failure_message="Failed to load fuel records.",
        )
        return extract_rows(data)

    # ── Users ─────────────────────────────────────────────────────────────
    async def list_users(self, page_no: int = 1, per_page: int = settings.ADMIN_PAGE_SIZE) -> list:
        data = await self._request("GET", "/user-list/users-via-admin",
                                   params={"perPage": per_page, "pageNo": page_no},
                                   failure_message="Failed to load users.")
        return extract_rows(data)

    async def fetch_profile(self) -> dict:
        return await self._request("GET", "/user-list/user-profile",
                                   failure_message="Failed to load profile.")
