"""
Accounts — login/logout, profile, and the admin screens (user list, driver details,
user creation).

Driver details fetch fuel and travel history concurrently with the same
independent-failure rule as the travel list: one failed half is a warning,
not an empty screen.
"""

from dataclasses import dataclass, field
from typing import Optional

from fleetlog.errors import (
    AuthError, FleetLogError, NetworkError, PartialFetchError, Result, ValidationError,
)
from fleetlog.services.api_client import FleetApiClient, extract_item
from fleetlog.services.fuel_service import newest_fuel_first
from fleetlog.services.metrics import DriverSummary, average, summarize_driver
from fleetlog.services.record_adapter import (
    DriverProfile, FuelRecord, TravelLogRecord, UserSummary,
    normalize_fuel_row, normalize_profile, normalize_travel_row, normalize_user_row,
)
from fleetlog.services.session_store import ADMIN, DRIVER, AuthSession, SessionStore
from fleetlog.services.travel_log_service import newest_first
from fleetlog.utils.logger import get_logger
from fleetlog.utils.scope import gather_settled

logger = get_logger(__name__)

ROLES = (DRIVER, ADMIN)
MIN_PASSWORD_LENGTH = 6


@dataclass
class DriverDetails:
    user_id: str
    fuel_records: list[FuelRecord] = field(default_factory=list)
    travel_logs: list[TravelLogRecord] = field(default_factory=list)
    summary: Optional[DriverSummary] = None
    partial_failure: bool = False
    error: Optional[FleetLogError] = None
    warning: Optional[PartialFetchError] = None


class AccountService:
    def __init__(self, api: FleetApiClient, session_store: SessionStore):
        self.api = api
        self.session_store = session_store

    async def login(self, mobile_number: str, password: str) -> Result[AuthSession]:
        if not (mobile_number or "").strip() or not (password or "").strip():
            return Result.failure(ValidationError("Please enter both mobile number and password."))
        try:
            data = await self.api.login(mobile_number.strip(), password)
            body = extract_item(data)
            session = self.session_store.login(body.get("token"), body.get("user") or {})
        except FleetLogError as e:
            logger.warning(f"[AUTH] Login failed for {mobile_number.strip()}: {e.message}")
            return Result.failure(e)
        return Result.success(session)

    def logout(self) -> None:
        self.session_store.logout()

    async def profile(self) -> Result[DriverProfile]:
        try:
            data = await self.api.fetch_profile()
        except FleetLogError as e:
            return Result.failure(e)
        return Result.success(normalize_profile(data, fallback_user=self.session_store.user))

    @staticmethod
    def avg_cost_per_trip(profile: DriverProfile) -> float:
        return average(profile.total_fuel_cost, profile.total_trips)

    async def list_users(self) -> Result[list[UserSummary]]:
        try:
            rows = await self.api.list_users()
        except FleetLogError as e:
            return Result.failure(e)
        return Result.success([normalize_user_row(r) for r in rows])

    async def create_user(self, name: str, mobile_number: str, password: str,
                          role: str = DRIVER) -> Result[UserSummary]:
        try:
            if not (name or "").strip():
                raise ValidationError("Please enter a name.")
            if not (mobile_number or "").strip():
                raise ValidationError("Please enter a mobile number.")
            if len((password or "").strip()) < MIN_PASSWORD_LENGTH:
                raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
            if role not in ROLES:
                raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")
            data = await self.api.create_user({
                "name": name.strip(),
                "mobileNumber": mobile_number.strip(),
                "password": password.strip(),
                "role": role,
            })
        except FleetLogError as e:
            logger.warning(f"[ADMIN] Create user rejected: {e.message}")
            return Result.failure(e)

        user = data.get("user") if isinstance(data.get("user"), dict) else data
        created = normalize_user_row({"name": name.strip(), "mobileNumber": mobile_number.strip(),
                                      "role": role, "isActive": True, **user})
        logger.info(f"👤 User created: {created.name} ({created.role})")
        return Result.success(created)

    async def driver_details(self, user_id: str) -> DriverDetails:
        if not user_id:
            return DriverDetails(user_id="", error=ValidationError("User ID missing."))
        try:
            self.session_store.snapshot()
        except AuthError as e:
            return DriverDetails(user_id=user_id, error=e)

        fuel_result, travel_result = await gather_settled(
            self.api.fetch_driver_fuel_records(user_id),
            self.api.fetch_driver_travel_logs(user_id),
        )

        failures = {}
        for name, result in (("fuel", fuel_result), ("travel", travel_result)):
            if isinstance(result, BaseException):
                if not isinstance(result, FleetLogError):
                    logger.error(f"Unexpected error loading driver {name}: {result}", exc_info=result)
                    result = NetworkError(f"Failed to load {name} records.")
                failures[name] = result

        auth_failure = next((e for e in failures.values() if isinstance(e, AuthError)), None)
        if auth_failure is not None or len(failures) == 2:
            return DriverDetails(user_id=user_id, partial_failure=True,
                                 error=auth_failure or failures["fuel"])

        fuel = [] if "fuel" in failures else newest_fuel_first([normalize_fuel_row(r) for r in fuel_result])
        travel = [] if "travel" in failures else newest_first(
            [normalize_travel_row(r) for r in travel_result], key=lambda r: r.started_at,
        )
        warning = None
        if failures:
            failed, error = next(iter(failures.items()))
            logger.warning(f"⚠️  Driver {user_id}: {failed} history failed — {error.message}")
            warning = PartialFetchError(f"Some records could not be loaded: {error.message}", failed=failed)

        return DriverDetails(
            user_id=user_id,
            fuel_records=fuel,
            travel_logs=travel,
            summary=summarize_driver(fuel, travel),
            partial_failure=bool(failures),
            warning=warning,
        )
