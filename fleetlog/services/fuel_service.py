"""
Fuel purchases — submission by drivers, history by vehicle (admin) or by driver.

Submission flow: validate → compute total (liters × price, 2 decimals) →
best-effort GPS → upload pre-meter / pump-meter / receipt photos in parallel →
POST /fuel/create-fuel-records. The server's totalAmount is the source of truth
when it answers with one.
"""

from datetime import datetime, timezone
from typing import Optional

from fleetlog.config import settings
from fleetlog.errors import FleetLogError, Result, ValidationError
from fleetlog.services.api_client import FleetApiClient
from fleetlog.services.location import LocationProvider, acquire_location
from fleetlog.services.metrics import compute_total_amount, total_matches
from fleetlog.services.record_adapter import FuelRecord, normalize_fuel_row
from fleetlog.services.session_store import SessionStore
from fleetlog.services.upload_relay import MediaUploadRelay
from fleetlog.utils.json_parser import to_number
from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def newest_fuel_first(records: list[FuelRecord]) -> list[FuelRecord]:
    return sorted(records, key=lambda r: r.timestamp or _OLDEST, reverse=True)


class FuelService:
    def __init__(
        self,
        api: FleetApiClient,
        relay: MediaUploadRelay,
        session_store: SessionStore,
        location_provider: Optional[LocationProvider] = None,
        location_timeout: float = settings.LOCATION_TIMEOUT_SECONDS,
    ):
        self.api = api
        self.relay = relay
        self.session_store = session_store
        self.location_provider = location_provider
        self.location_timeout = location_timeout

    @staticmethod
    def validate(vehicle, liters, price_per_liter, pre_meter_reading,
                 pre_meter_image, pump_meter_image, receipt_image) -> tuple[float, float, float]:
        if not (vehicle or "").strip():
            raise ValidationError("Please select a Vehicle.")
        liters_num = to_number(liters)
        if liters_num is None or liters_num <= 0:
            raise ValidationError("Number of Liters must be a positive number.")
        price_num = to_number(price_per_liter)
        if price_num is None or price_num <= 0:
            raise ValidationError("Price (Per Liter) must be a positive number.")
        pre = to_number(pre_meter_reading)
        if pre is None or pre < 0:
            raise ValidationError("Please enter a valid Pre Meter value.")
        for label, image in (("Pre Meter", pre_meter_image),
                             ("Fueling Machine Meter", pump_meter_image),
                             ("Receipt", receipt_image)):
            if not image:
                raise ValidationError(f"Please capture the {label} image.")
        return liters_num, price_num, pre

    async def submit(self, vehicle: str, liters, price_per_liter, pre_meter_reading,
                     pre_meter_image: Optional[str], pump_meter_image: Optional[str],
                     receipt_image: Optional[str],
                     location_provider: Optional[LocationProvider] = None) -> Result[FuelRecord]:
        try:
            record = await self._submit(vehicle, liters, price_per_liter, pre_meter_reading,
                                        pre_meter_image, pump_meter_image, receipt_image,
                                        location_provider or self.location_provider)
        except FleetLogError as e:
            logger.warning(f"[FUEL] Submission rejected: {e.message}")
            return Result.failure(e)
        logger.info(f"⛽ Fuel record {record.id} — {record.vehicle} {record.liters} L = {record.total_amount}")
        return Result.success(record)

    async def _submit(self, vehicle, liters, price_per_liter, pre_meter_reading,
                      pre_meter_image, pump_meter_image, receipt_image, location_provider) -> FuelRecord:
        liters_num, price_num, pre = self.validate(
            vehicle, liters, price_per_liter, pre_meter_reading,
            pre_meter_image, pump_meter_image, receipt_image,
        )
        total = compute_total_amount(liters_num, price_num)
        self.session_store.snapshot()

        coords = await acquire_location(location_provider, self.location_timeout)
        pre_url, pump_url, receipt_url = await self.relay.upload_all(
            [pre_meter_image, pump_meter_image, receipt_image]
        )

        payload = {
            "vehicle": vehicle.strip(),
            "liters": liters_num,
            "pricePerLiter": price_num,
            "totalAmount": total,
            "preMeter": pre,
            "images": {
                "preMeterImg": pre_url,
                "machineMeterImg": pump_url,
                "receiptImg": receipt_url,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if coords:
            payload["Coordinates"] = coords.as_pair()

        response = await self.api.create_fuel_record(payload)
        record = normalize_fuel_row({**payload, **(response or {})})
        if not total_matches(record.liters, record.price_per_liter, record.total_amount):
            logger.warning(
                f"[FUEL] Server total {record.total_amount} differs from "
                f"{record.liters} × {record.price_per_liter} — keeping server value"
            )
        return record

    async def for_vehicle(self, vehicle: str) -> Result[list[FuelRecord]]:
        try:
            rows = await self.api.fetch_fuel_records(vehicle)
        except FleetLogError as e:
            return Result.failure(e)
        return Result.success(newest_fuel_first([normalize_fuel_row(r) for r in rows]))

    async def for_driver(self, user_id: Optional[str] = None) -> Result[list[FuelRecord]]:
        """Fuel history of `user_id`, or of the logged-in driver when omitted."""
        try:
            driver_id = user_id or self.session_store.snapshot().user_id
            rows = await self.api.fetch_driver_fuel_records(driver_id)
        except FleetLogError as e:
            return Result.failure(e)
        return Result.success(newest_fuel_first([normalize_fuel_row(r) for r in rows]))
