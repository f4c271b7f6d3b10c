"""Fuel purchases — submit, history by vehicle (admin) and by driver."""

from typing import Optional

from fastapi import APIRouter, Depends
from fleetlog.config import settings
from fleetlog.dependencies import Services, get_services
from fleetlog.schemas.fuel_record import FuelRecordCreate, FuelRecordOut
from fleetlog.services.location import StaticLocationProvider

router = APIRouter()


@router.post("/fuel-records", response_model=FuelRecordOut, summary="Submit a fuel purchase")
async def submit_fuel_record(body: FuelRecordCreate, services: Services = Depends(get_services)):
    location = StaticLocationProvider(body.coordinates.latitude, body.coordinates.longitude) \
        if body.coordinates else None
    result = await services.fuel.submit(
        vehicle=body.vehicle,
        liters=body.liters,
        price_per_liter=body.price_per_liter,
        pre_meter_reading=body.pre_meter_reading,
        pre_meter_image=body.pre_meter_image,
        pump_meter_image=body.pump_meter_image,
        receipt_image=body.receipt_image,
        location_provider=location,
    )
    return result.unwrap()


@router.get("/fuel-records/vehicles", response_model=list[str], summary="Fleet vehicles")
def list_vehicles():
    return settings.VEHICLES


@router.get("/fuel-records/vehicle/{vehicle}", response_model=list[FuelRecordOut],
            summary="Fuel history of one vehicle")
async def fuel_for_vehicle(vehicle: str, services: Services = Depends(get_services)):
    return (await services.fuel.for_vehicle(vehicle)).unwrap()


@router.get("/fuel-records/driver", response_model=list[FuelRecordOut],
            summary="Fuel history of a driver (defaults to the logged-in driver)")
async def fuel_for_driver(user_id: Optional[str] = None, services: Services = Depends(get_services)):
    return (await services.fuel.for_driver(user_id)).unwrap()
