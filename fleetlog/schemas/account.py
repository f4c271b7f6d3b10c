from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from fleetlog.schemas.fuel_record import FuelRecordOut
from fleetlog.schemas.travel_log import TravelLogOut


class LoginIn(BaseModel):
    mobile_number: str
    password: str


class SessionOut(BaseModel):
    user_id: str
    name: str
    role: str

    class Config:
        from_attributes = True


class ProfileOut(BaseModel):
    name: str
    mobile_number: str
    role: str
    total_trips: int
    fuel_records: int
    distance_covered_km: float
    total_fuel_cost: float
    avg_cost_per_trip: float


class UserCreate(BaseModel):
    name: str
    mobile_number: str
    password: str
    role: str = "driver"         # driver | admin


class UserOut(BaseModel):
    user_id: str
    name: str
    mobile_number: str
    role: str
    is_active: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class DriverSummaryOut(BaseModel):
    fuel_records: int
    total_liters: float
    total_fuel_cost: float
    total_trips: int
    completed_trips: int
    pending_trips: int
    total_distance_km: float
    completion_percent: float
    avg_cost_per_trip: float
    avg_price_per_liter: float

    class Config:
        from_attributes = True


class DriverDetailsOut(BaseModel):
    user_id: str
    fuel_records: list[FuelRecordOut]
    travel_logs: list[TravelLogOut]
    summary: Optional[DriverSummaryOut]
    partial_failure: bool
    warning: Optional[str] = None
