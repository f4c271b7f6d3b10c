from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from fleetlog.schemas.travel_log import CoordinatesIn, CoordinatesOut


class FuelRecordCreate(BaseModel):
    vehicle: str
    liters: str | float
    price_per_liter: str | float
    pre_meter_reading: str | float
    pre_meter_image: Optional[str] = None
    pump_meter_image: Optional[str] = None
    receipt_image: Optional[str] = None
    coordinates: Optional[CoordinatesIn] = None


class FuelRecordOut(BaseModel):
    id: str
    vehicle: str
    driver: str
    liters: float
    price_per_liter: float
    total_amount: float
    pre_meter_reading: float
    pre_meter_image_url: Optional[str]
    pump_meter_image_url: Optional[str]
    receipt_image_url: Optional[str]
    timestamp: Optional[datetime]
    coordinates: Optional[CoordinatesOut]

    class Config:
        from_attributes = True
