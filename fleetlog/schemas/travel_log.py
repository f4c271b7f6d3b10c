from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class CoordinatesIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class CoordinatesOut(BaseModel):
    latitude: float
    longitude: float

    class Config:
        from_attributes = True


class TravelLogOut(BaseModel):
    id: str
    status: str
    officer: str
    officer_designation: str
    vehicle: str
    from_location: str
    to_location: str
    pre_meter_reading: float
    pre_meter_image_url: Optional[str]
    start_coordinates: Optional[CoordinatesOut]
    started_at: Optional[datetime]
    post_meter_reading: Optional[float]
    post_meter_image_url: Optional[str]
    fuel_percent: Optional[int]
    fuel_meter_image_url: Optional[str]
    completed_at: Optional[datetime]
    distance_km: float
    is_local: bool

    class Config:
        from_attributes = True


class GalleryImageOut(BaseModel):
    url: str
    label: str

    class Config:
        from_attributes = True


class TravelLogListOut(BaseModel):
    filter: str
    records: list[TravelLogOut]
    partial_failure: bool
    warning: Optional[str] = None


class TravelLogStart(BaseModel):
    officer: str
    officer_designation: str = ""
    vehicle: str
    from_location: str
    to_location: str
    pre_meter_reading: str | float
    pre_meter_image: Optional[str] = None        # local file path / URI from the camera
    coordinates: Optional[CoordinatesIn] = None  # device-reported, optional
    draft_id: Optional[str] = None


class TravelLogDraft(BaseModel):
    officer: str = ""
    officer_designation: str = ""
    vehicle: str = ""
    from_location: str = ""
    to_location: str = ""
    pre_meter_reading: Optional[str | float] = None
    pre_meter_image: Optional[str] = None
    draft_id: Optional[str] = None


class TravelLogComplete(BaseModel):
    post_meter_reading: str | float
    post_meter_image: Optional[str] = None
    fuel_percent: int | float = 0
    fuel_meter_image: Optional[str] = None
    coordinates: Optional[CoordinatesIn] = None
