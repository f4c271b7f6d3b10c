"""
Travel-log lifecycle — the list a driver sees and the Pending → Completed transition.

How it works:
  - Pending and Completed logs come from two endpoints, fetched concurrently.
    Either may fail on its own; whatever succeeded is still shown and the view
    is flagged partial_failure (one failed half never hides the other).
  - A 401 on either fetch, or no session at all, is a full error (retry re-runs both).
  - Completing a trip: validate locally → best-effort GPS → upload both photos →
    PATCH /complete. Only a successful PATCH moves the record to Completed;
    every failure leaves it Pending and untouched.
  - Unsent trips can be kept as local drafts. Drafts carry a placeholder id,
    show up as Pending and can never be completed until the server knows them.

State machine (per record):
  [Pending] --complete ok-----> [Completed]
  [Pending] --complete failed--> [Pending]
  [Completed] has no way out.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fleetlog.config import settings
from fleetlog.errors import (
    AuthError, FleetLogError, NetworkError, PartialFetchError, Result, ValidationError,
)
from fleetlog.services.api_client import FleetApiClient
from fleetlog.services.kv_store import KeyValueStore
from fleetlog.services.location import LocationProvider, acquire_location
from fleetlog.services.metrics import compute_distance, round_percent
from fleetlog.services.record_adapter import (
    COMPLETED, LOCAL_ID_PREFIX, PENDING, TRAVEL_ALIASES, TravelLogRecord,
    normalize_travel_row, travel_record_to_row,
)
from fleetlog.services.session_store import SessionStore
from fleetlog.services.upload_relay import MediaUploadRelay
from fleetlog.utils.json_parser import first_number, first_present, parse_timestamp, to_number
from fleetlog.utils.logger import get_logger
from fleetlog.utils.scope import OperationScope, gather_settled

logger = get_logger(__name__)

FILTER_ALL = "all"
FILTERS = (FILTER_ALL, PENDING, COMPLETED)
DRAFTS_KEY = "TRAVEL_LOGS"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

RowFetch = Callable[[], Awaitable[list]]


@dataclass
class TravelLogView:
    records: list[TravelLogRecord] = field(default_factory=list)
    partial_failure: bool = False
    error: Optional[FleetLogError] = None           # full failure: show error + retry
    warning: Optional[PartialFetchError] = None     # soft warning: one half failed
    pending: list[TravelLogRecord] = field(default_factory=list)
    completed: list[TravelLogRecord] = field(default_factory=list)


def newest_first(records: list[TravelLogRecord], key=lambda r: r.sort_timestamp) -> list[TravelLogRecord]:
    """Descending by timestamp; records without one sink to the bottom."""
    return sorted(records, key=lambda r: key(r) or _OLDEST, reverse=True)


def apply_filter(pending: list[TravelLogRecord], completed: list[TravelLogRecord],
                 filter: str = FILTER_ALL) -> list[TravelLogRecord]:
    if filter not in FILTERS:
        raise ValidationError(f"Unknown filter {filter!r}. Use one of: {', '.join(FILTERS)}.")
    if filter == PENDING:
        chosen = list(pending)
    elif filter == COMPLETED:
        chosen = list(completed)
    else:
        chosen = [*pending, *completed]
    return newest_first(chosen)


def _as_error(exc: BaseException, fallback: str) -> FleetLogError:
    if isinstance(exc, FleetLogError):
        return exc
    logger.error(f"Unexpected error while loading travel logs: {exc}", exc_info=exc)
    return NetworkError(fallback)


async def load_travel_logs(pending_fetch: RowFetch, completed_fetch: RowFetch,
                           filter: str = FILTER_ALL,
                           drafts: Optional[list[TravelLogRecord]] = None) -> TravelLogView:
    """
    Fetch both collections concurrently and merge them into one view.
    Each fetch returns raw rows; normalization and sorting happen here.
    """
    pending_result, completed_result = await gather_settled(pending_fetch(), completed_fetch())

    failures = {}
    pending, completed = [], []
    if isinstance(pending_result, BaseException):
        failures[PENDING] = _as_error(pending_result, "Failed to load pending travel logs.")
    else:
        pending = [normalize_travel_row(r) for r in pending_result]
    if isinstance(completed_result, BaseException):
        failures[COMPLETED] = _as_error(completed_result, "Failed to load completed travel logs.")
    else:
        # The completed endpoint does not always send a status
        completed = [normalize_travel_row({"status": COMPLETED, **r}) for r in completed_result]

    auth_failure = next((e for e in failures.values() if isinstance(e, AuthError)), None)
    if auth_failure is not None:
        return TravelLogView(partial_failure=True, error=auth_failure)
    if len(failures) == 2:
        logger.warning(f"❌ Both travel-log fetches failed: {failures[PENDING].message}")
        return TravelLogView(partial_failure=True, error=failures[PENDING])

    pending = newest_first([*pending, *(drafts or [])], key=lambda r: r.started_at)
    completed = newest_first(completed, key=lambda r: r.completed_at)

    warning = None
    if failures:
        failed, error = next(iter(failures.items()))
        logger.warning(f"⚠️  {failed} travel logs failed to load — showing the rest: {error.message}")
        warning = PartialFetchError(f"Some travel logs could not be loaded: {error.message}", failed=failed)

    return TravelLogView(
        records=apply_filter(pending, completed, filter),
        partial_failure=bool(failures),
        warning=warning,
        pending=pending,
        completed=completed,
    )


def build_completed_record(record: TravelLogRecord, response: dict, post_meter: float,
                           post_meter_image_url: str, fuel_percent: int,
                           fuel_meter_image_url: str) -> TravelLogRecord:
    """The Completed version of `record`, preferring server-reported distance/time."""
    server = response if isinstance(response, dict) else {}
    completed_at = parse_timestamp(first_present(server, ("completedAt", "updatedAt", "endTime")))
    return replace(
        record,
        status=COMPLETED,
        post_meter_reading=post_meter,
        post_meter_image_url=post_meter_image_url,
        fuel_percent=fuel_percent,
        fuel_meter_image_url=fuel_meter_image_url,
        completed_at=completed_at or datetime.now(timezone.utc),
        distance_km=compute_distance(record.pre_meter_reading, post_meter,
                                     first_number(server, TRAVEL_ALIASES["distance"])),
        extras=dict(record.extras),
    )


class DraftStore:
    """Locally saved, not-yet-submitted trips (key TRAVEL_LOGS in the local cache)."""

    def __init__(self, kv: KeyValueStore):
        self._kv = kv

    def all_drafts(self) -> list[TravelLogRecord]:
        rows = self._kv.get(DRAFTS_KEY) or []
        return [normalize_travel_row(r) for r in rows if isinstance(r, dict)]

    def save(self, draft: TravelLogRecord) -> TravelLogRecord:
        if not draft.is_local:
            raise ValidationError("Only unsent trips can be saved as drafts.")
        rows = [travel_record_to_row(d) for d in self.all_drafts() if d.id != draft.id]
        rows.append(travel_record_to_row(draft))
        self._kv.set(DRAFTS_KEY, rows)
        logger.info(f"📝 Draft {draft.id} saved ({len(rows)} local draft(s))")
        return draft

    def discard(self, local_id: str) -> None:
        rows = [travel_record_to_row(d) for d in self.all_drafts() if d.id != local_id]
        self._kv.set(DRAFTS_KEY, rows)


class TravelLogManager:
    def __init__(
        self,
        api: FleetApiClient,
        relay: MediaUploadRelay,
        session_store: SessionStore,
        drafts: Optional[DraftStore] = None,
        location_provider: Optional[LocationProvider] = None,
        location_timeout: float = settings.LOCATION_TIMEOUT_SECONDS,
        scope: Optional[OperationScope] = None,
    ):
        self.api = api
        self.relay = relay
        self.session_store = session_store
        self.drafts = drafts
        self.location_provider = location_provider
        self.location_timeout = location_timeout
        self.scope = scope or OperationScope("travel-logs")
        self.filter = FILTER_ALL
        self.view = TravelLogView()
        self._pending: list[TravelLogRecord] = []
        self._completed: list[TravelLogRecord] = []

    @property
    def records(self) -> list[TravelLogRecord]:
        return self.view.records

    def find(self, record_id: str) -> Optional[TravelLogRecord]:
        return next((r for r in [*self._pending, *self._completed] if r.id == record_id), None)

    # ── List ──────────────────────────────────────────────────────────────
    async def load(self, filter: Optional[str] = None) -> TravelLogView:
        if filter is not None:
            apply_filter([], [], filter)        # validates
            self.filter = filter

        try:
            session = self.session_store.snapshot()
        except AuthError as e:
            self._pending, self._completed = [], []
            self.view = TravelLogView(error=e)
            return self.view

        view = await self.scope.run(load_travel_logs(
            lambda: self.api.fetch_pending_travel_logs(session.user_id),
            self.api.fetch_completed_travel_logs,
            self.filter,
            drafts=self.drafts.all_drafts() if self.drafts else None,
        ))
        self._pending, self._completed = view.pending, view.completed
        self.view = view
        return view

    async def retry(self) -> TravelLogView:
        """Re-run both fetches from scratch with the current filter."""
        return await self.load()

    def set_filter(self, filter: str) -> list[TravelLogRecord]:
        """Switch filter on the already-loaded collections (no refetch)."""
        records = apply_filter(self._pending, self._completed, filter)
        self.filter = filter
        self.view = replace(self.view, records=records)
        return records

    def _refresh_view(self):
        self.view = replace(
            self.view,
            records=apply_filter(self._pending, self._completed, self.filter),
            pending=list(self._pending),
            completed=list(self._completed),
        )

    # ── Drafts ────────────────────────────────────────────────────────────
    def save_draft(self, officer: str = "", vehicle: str = "", from_location: str = "",
                   to_location: str = "", pre_meter_reading=None, pre_meter_image: Optional[str] = None,
                   officer_designation: str = "", draft_id: Optional[str] = None) -> TravelLogRecord:
        if self.drafts is None:
            raise ValidationError("Draft storage is not available.")
        draft = TravelLogRecord(
            id=draft_id or f"{LOCAL_ID_PREFIX}{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S%f')}",
            status=PENDING,
            officer=officer.strip(),
            officer_designation=officer_designation.strip(),
            vehicle=vehicle.strip(),
            from_location=from_location.strip(),
            to_location=to_location.strip(),
            pre_meter_reading=to_number(pre_meter_reading) or 0,
            pre_meter_image_url=pre_meter_image,
            started_at=datetime.now(timezone.utc),
            is_local=True,
        )
        self.drafts.save(draft)
        self._pending = newest_first([draft, *[r for r in self._pending if r.id != draft.id]],
                                     key=lambda r: r.started_at)
        self._refresh_view()
        return draft

    # ── Start a trip ──────────────────────────────────────────────────────
    async def start(self, officer: str, vehicle: str, from_location: str, to_location: str,
                    pre_meter_reading, pre_meter_image: Optional[str],
                    officer_designation: str = "", draft_id: Optional[str] = None,
                    location_provider: Optional[LocationProvider] = None) -> Result[TravelLogRecord]:
        try:
            record = await self.scope.run(self._start(
                officer, vehicle, from_location, to_location,
                pre_meter_reading, pre_meter_image, officer_designation,
                location_provider or self.location_provider,
            ))
        except FleetLogError as e:
            logger.warning(f"[TRAVEL] Start rejected: {e.message}")
            return Result.failure(e)

        if draft_id and self.drafts is not None:
            self.drafts.discard(draft_id)
        self._pending = newest_first(
            [record, *[r for r in self._pending if r.id != draft_id]], key=lambda r: r.started_at,
        )
        self._refresh_view()
        logger.info(f"🚗 Travel log {record.id} started ({record.from_location} → {record.to_location})")
        return Result.success(record)

    async def _start(self, officer, vehicle, from_location, to_location,
                     pre_meter_reading, pre_meter_image, officer_designation,
                     location_provider) -> TravelLogRecord:
        for label, value in (("Officer", officer), ("Vehicle", vehicle),
                             ("From location", from_location), ("To location", to_location)):
            if not (value or "").strip():
                raise ValidationError(f"Please enter {label}.")
        pre = to_number(pre_meter_reading)
        if pre is None or pre < 0:
            raise ValidationError("Pre meter must be a valid non-negative number.")
        if not pre_meter_image:
            raise ValidationError("Please capture the Pre Meter image.")

        self.session_store.snapshot()
        coords = await acquire_location(location_provider, self.location_timeout)
        pre_url = await self.relay.upload_image(pre_meter_image)

        payload = {
            "officer": officer.strip(),
            "vehicle": vehicle.strip(),
            "preMeter": pre,
            "preMeterImg": pre_url,
            "travelFrom": from_location.strip(),
            "travelTo": to_location.strip(),
        }
        if officer_designation:
            payload["officerDesignation"] = officer_designation.strip()
        if coords:
            payload["Coordinates"] = coords.as_pair()

        response = await self.api.create_travel_log(payload)
        row = {**payload, "status": PENDING, "startedAt": datetime.now(timezone.utc).isoformat()}
        row.update(response or {})
        row["status"] = PENDING
        return normalize_travel_row(row)

    # ── Complete a trip ───────────────────────────────────────────────────
    async def complete(self, record: TravelLogRecord, post_meter_reading, post_meter_image: Optional[str],
                       fuel_percent, fuel_meter_image: Optional[str],
                       location_provider: Optional[LocationProvider] = None) -> Result[TravelLogRecord]:
        try:
            completed = await self.scope.run(self._complete(
                record, post_meter_reading, post_meter_image, fuel_percent, fuel_meter_image,
                location_provider or self.location_provider,
            ))
        except FleetLogError as e:
            logger.warning(f"[TRAVEL] Completion of {record.id} rejected: {e.message}")
            return Result.failure(e)

        self._pending = [r for r in self._pending if r.id != completed.id]
        self._completed = newest_first(
            [completed, *[r for r in self._completed if r.id != completed.id]], key=lambda r: r.completed_at,
        )
        self._refresh_view()
        logger.info(f"🏁 Travel log {completed.id} completed — {completed.distance_km} km, fuel {completed.fuel_percent}%")
        return Result.success(completed)

    @staticmethod
    def validate_completion(record: TravelLogRecord, post_meter_reading, post_meter_image,
                            fuel_percent, fuel_meter_image) -> tuple[float, int]:
        """Local checks only. Returns (post meter, fuel percent) as numbers."""
        if record.is_completed:
            raise ValidationError("This travel log is already completed.")
        if record.is_local:
            raise ValidationError("This trip has not been saved on the server yet. Refresh and try again.")
        post = to_number(post_meter_reading)
        if post is None or post < record.pre_meter_reading:
            raise ValidationError("Post meter must be a valid number and >= Pre meter.")
        if not post_meter_image or not fuel_meter_image:
            raise ValidationError("Both images are required.")
        fuel = to_number(fuel_percent)
        if fuel is None or not 0 <= fuel <= 100:
            raise ValidationError("Fuel percent must be between 0 and 100.")
        return post, round_percent(fuel)

    async def _complete(self, record, post_meter_reading, post_meter_image,
                        fuel_percent, fuel_meter_image, location_provider) -> TravelLogRecord:
        if any(r.id == record.id for r in self._completed):
            raise ValidationError("This travel log is already completed.")
        post, fuel = self.validate_completion(
            record, post_meter_reading, post_meter_image, fuel_percent, fuel_meter_image,
        )
        self.session_store.snapshot()

        coords = await acquire_location(location_provider, self.location_timeout)
        post_url, fuel_url = await self.relay.upload_all([post_meter_image, fuel_meter_image])

        # Older endpoint versions read the snake_case / long-form names
        payload = {
            "postMeter": post,
            "post_odometer": post,
            "postMeterImg": post_url,
            "postMeterImage": post_url,
            "fuelPercent": fuel,
            "fuel": fuel,
            "fuelMeterImg": fuel_url,
            "fuelMeterImage": fuel_url,
        }
        if coords:
            payload["Coordinates"] = coords.as_pair()

        response = await self.api.complete_travel_log(record.id, payload)
        return build_completed_record(record, response, post, post_url, fuel, fuel_url)

    async def close(self):
        """Screen dismissed: cancel in-flight work; nothing lands in the view afterwards."""
        await self.scope.close()
