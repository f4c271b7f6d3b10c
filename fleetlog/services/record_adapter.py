"""
Normalizes backend rows (fuel records, pending travel logs, completed travel logs,
users, profile) into one internal representation per entity type.

Endpoint versions spell the same field several ways, so every canonical field is
read through a fixed alias list below. Fields that match no alias are kept in
`extras` for display (image gallery) and never feed a canonical field.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from fleetlog.services.metrics import compute_distance, compute_total_amount, round_percent
from fleetlog.utils.json_parser import (
    coerce_number, first_number, first_present, is_http_url, parse_timestamp,
)
from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)

PENDING = "pending"
COMPLETED = "completed"
LOCAL_ID_PREFIX = "local_"

TRAVEL_ALIASES = {
    "id":               ("_id", "id"),
    "local_id":         ("localId",),
    "status":           ("status",),
    "officer":          ("officer", "driverName"),
    "officer_designation": ("officerDesignation", "designation"),
    "vehicle":          ("vehicle", "vehicleNumber"),
    "from_location":    ("travelFrom", "from", "fromLocation"),
    "to_location":      ("travelTo", "to", "toLocation"),
    "pre_meter":        ("preMeter", "pre_odometer"),
    "post_meter":       ("postMeter", "post_odometer"),
    "distance":         ("distanceKm", "distanceKM", "DistanceKM", "distance"),
    "fuel_percent":     ("fuelPercent", "fuel"),
    "pre_meter_image":  ("preMeterImg", "preMeterImage", "pre_odometer_image"),
    "post_meter_image": ("postMeterImg", "postMeterImage", "post_odometer_image"),
    "fuel_meter_image": ("fuelMeterImg", "fuelMeterImage"),
    "coordinates":      ("Coordinates", "startCoordinates", "coordinates"),
    "started_at":       ("timestamp", "createdAt", "startTime", "startedAt"),
    "completed_at":     ("completedAt", "updatedAt", "endTime", "timestamp"),
}

FUEL_ALIASES = {
    "id":               ("_id", "id"),
    "vehicle":          ("vehicle", "vehicleNumber"),
    "driver":           ("driverName", "officer", "name"),
    "liters":           ("liters", "litres"),
    "price_per_liter":  ("pricePerLiter", "price"),
    "total_amount":     ("totalAmount", "total"),
    "pre_meter":        ("preMeter", "pre_odometer"),
    "pre_meter_image":  ("preMeterImg", "preMeterImage"),
    "pump_meter_image": ("machineMeterImg", "pumpMeterImg", "machineMeterImage"),
    "receipt_image":    ("receiptImg", "receiptImage"),
    "coordinates":      ("Coordinates", "coordinates", "location"),
    "timestamp":        ("timestamp", "createdAt"),
}

# Gallery sources: single-image keys and list-valued keys found on raw rows
GALLERY_SINGLE = [
    ("preMeterImg", "Pre Meter"), ("preMeterImage", "Pre Meter"), ("pre_odometer_image", "Pre Meter"),
    ("postMeterImg", "Post Meter"), ("postMeterImage", "Post Meter"), ("post_odometer_image", "Post Meter"),
    ("fuelMeterImg", "Fuel Meter"), ("fuelMeterImage", "Fuel Meter"),
    ("machineMeterImg", "Pump Meter"), ("receiptImg", "Receipt"),
]
GALLERY_LISTS = [
    ("preImages", "Pre"), ("postImages", "Post"), ("fuelImages", "Fuel"),
    ("images", "Image"), ("attachments", "Attachment"), ("photos", "Photo"),
]


@dataclass
class Coordinates:
    latitude: float
    longitude: float

    def as_pair(self) -> list[float]:
        """Wire shape sent to the backend: [lat, lng]."""
        return [self.latitude, self.longitude]


@dataclass
class TravelLogRecord:
    id: str
    status: str                             # pending | completed
    officer: str = ""
    officer_designation: str = ""
    vehicle: str = ""
    from_location: str = ""
    to_location: str = ""
    pre_meter_reading: float = 0
    pre_meter_image_url: Optional[str] = None
    start_coordinates: Optional[Coordinates] = None
    started_at: Optional[datetime] = None
    # Post-trip fields, populated only once Completed
    post_meter_reading: Optional[float] = None
    post_meter_image_url: Optional[str] = None
    fuel_percent: Optional[int] = None
    fuel_meter_image_url: Optional[str] = None
    completed_at: Optional[datetime] = None
    distance_km: float = 0
    is_local: bool = False                  # placeholder identity, display-only
    extras: dict = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @property
    def sort_timestamp(self) -> Optional[datetime]:
        return self.completed_at or self.started_at


@dataclass
class FuelRecord:
    id: str
    vehicle: str = ""
    driver: str = ""
    liters: float = 0
    price_per_liter: float = 0
    total_amount: float = 0
    pre_meter_reading: float = 0
    pre_meter_image_url: Optional[str] = None
    pump_meter_image_url: Optional[str] = None
    receipt_image_url: Optional[str] = None
    timestamp: Optional[datetime] = None
    coordinates: Optional[Coordinates] = None
    is_local: bool = False
    extras: dict = field(default_factory=dict)


@dataclass
class UserSummary:
    user_id: str
    name: str
    mobile_number: str
    role: str
    is_active: bool
    created_at: Optional[datetime] = None


@dataclass
class DriverProfile:
    name: str
    mobile_number: str
    role: str
    total_trips: int
    fuel_records: int
    distance_covered_km: float
    total_fuel_cost: float


@dataclass
class GalleryImage:
    url: str
    label: str


def _first_not_none(row: dict, aliases) -> Any:
    for key in aliases:
        if row.get(key) is not None:
            return row[key]
    return None


def _text(row: dict, aliases) -> str:
    value = first_present(row, aliases)
    return str(value).strip() if value is not None else ""


def _image(row: dict, aliases) -> Optional[str]:
    value = first_present(row, aliases)
    return value if isinstance(value, str) else None


def _extras(row: dict, alias_table: dict) -> dict:
    known = {key for aliases in alias_table.values() for key in aliases}
    return {k: v for k, v in row.items() if k not in known}


def _identity(row: dict, aliases) -> tuple[str, bool]:
    """Server id when present; otherwise a client-local placeholder that never merges."""
    server_id = first_present(row, aliases["id"])
    if server_id:
        return str(server_id), False
    local_id = first_present(row, aliases.get("local_id", ()))
    if local_id:
        return str(local_id), True
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}", True


def parse_coordinates(value: Any) -> Optional[Coordinates]:
    """
    Accepts [lat, lng], {lat, lng} / {latitude, longitude},
    or a GeoJSON point {"coordinates": [lng, lat]}.
    """
    try:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return Coordinates(float(value[0]), float(value[1]))
        if isinstance(value, dict):
            if "coordinates" in value:
                lng, lat = value["coordinates"]
                return Coordinates(float(lat), float(lng))
            lat = value.get("lat", value.get("latitude"))
            lng = value.get("lng", value.get("longitude"))
            if lat is not None and lng is not None:
                return Coordinates(float(lat), float(lng))
    except (TypeError, ValueError):
        logger.debug(f"Unreadable coordinates ignored: {value!r}")
    return None


def normalize_travel_row(raw: dict) -> TravelLogRecord:
    """Map a pending or completed travel-log row to a TravelLogRecord."""
    row = raw if isinstance(raw, dict) else {}
    a = TRAVEL_ALIASES

    record_id, is_local = _identity(row, a)
    pre = coerce_number(_first_not_none(row, a["pre_meter"]))
    post = coerce_number(_first_not_none(row, a["post_meter"]))
    status = COMPLETED if str(row.get("status") or "").lower() == COMPLETED else PENDING

    record = TravelLogRecord(
        id=record_id,
        status=status,
        officer=_text(row, a["officer"]),
        officer_designation=_text(row, a["officer_designation"]),
        vehicle=_text(row, a["vehicle"]),
        from_location=_text(row, a["from_location"]),
        to_location=_text(row, a["to_location"]),
        pre_meter_reading=pre,
        pre_meter_image_url=_image(row, a["pre_meter_image"]),
        start_coordinates=parse_coordinates(first_present(row, a["coordinates"])),
        started_at=parse_timestamp(first_present(row, a["started_at"])),
        distance_km=compute_distance(pre, post, first_number(row, a["distance"])),
        is_local=is_local,
        extras=_extras(row, a),
    )

    if status == COMPLETED:
        fuel = first_number(row, a["fuel_percent"])
        record.post_meter_reading = post
        record.post_meter_image_url = _image(row, a["post_meter_image"])
        record.fuel_percent = round_percent(fuel) if fuel is not None else 0
        record.fuel_meter_image_url = _image(row, a["fuel_meter_image"])
        record.completed_at = parse_timestamp(first_present(row, a["completed_at"]))

    return record


def travel_record_to_row(record: TravelLogRecord) -> dict:
    """Canonical row for a record; normalize_travel_row(row) reproduces the record."""
    row = {
        "localId" if record.is_local else "_id": record.id,
        "status": record.status,
        "officer": record.officer,
        "officerDesignation": record.officer_designation,
        "vehicle": record.vehicle,
        "travelFrom": record.from_location,
        "travelTo": record.to_location,
        "preMeter": record.pre_meter_reading,
        "preMeterImg": record.pre_meter_image_url,
        "startedAt": record.started_at.isoformat() if record.started_at else None,
        "distanceKm": record.distance_km,
    }
    if record.start_coordinates:
        row["Coordinates"] = record.start_coordinates.as_pair()
    if record.is_completed:
        row.update({
            "postMeter": record.post_meter_reading,
            "postMeterImg": record.post_meter_image_url,
            "fuelPercent": record.fuel_percent,
            "fuelMeterImg": record.fuel_meter_image_url,
            "completedAt": record.completed_at.isoformat() if record.completed_at else None,
        })
    return row


def normalize_fuel_row(raw: dict) -> FuelRecord:
    """Map a fuel-record row to a FuelRecord. Server totalAmount wins over the computed one."""
    row = raw if isinstance(raw, dict) else {}
    a = FUEL_ALIASES
    images = row.get("images") if isinstance(row.get("images"), dict) else {}

    record_id, is_local = _identity(row, a)
    liters = coerce_number(_first_not_none(row, a["liters"]))
    price = coerce_number(_first_not_none(row, a["price_per_liter"]))
    server_total = _first_not_none(row, a["total_amount"])
    total = coerce_number(server_total) if server_total is not None else compute_total_amount(liters, price)

    return FuelRecord(
        id=record_id,
        vehicle=_text(row, a["vehicle"]),
        driver=_text(row, a["driver"]),
        liters=liters,
        price_per_liter=price,
        total_amount=total,
        pre_meter_reading=coerce_number(_first_not_none(row, a["pre_meter"])),
        pre_meter_image_url=_image(images, a["pre_meter_image"]) or _image(row, a["pre_meter_image"]),
        pump_meter_image_url=_image(images, a["pump_meter_image"]) or _image(row, a["pump_meter_image"]),
        receipt_image_url=_image(images, a["receipt_image"]) or _image(row, a["receipt_image"]),
        timestamp=parse_timestamp(first_present(row, a["timestamp"])),
        coordinates=parse_coordinates(first_present(row, a["coordinates"])),
        is_local=is_local,
        extras=_extras(row, a),
    )


def normalize_user_row(raw: dict) -> UserSummary:
    row = raw if isinstance(raw, dict) else {}
    return UserSummary(
        user_id=str(row.get("userId") or row.get("_id") or ""),
        name=row.get("name") or "Unknown",
        mobile_number=row.get("mobileNumber") or "",
        role=(row.get("role") or "").lower() or "user",
        is_active=bool(row.get("isActive")),
        created_at=parse_timestamp(row.get("createdAt")),
    )


def normalize_profile(raw: dict, fallback_user: Optional[dict] = None) -> DriverProfile:
    """Profile stats from the API; identity fields fall back to the stored login user."""
    row = raw if isinstance(raw, dict) else {}
    profile = row.get("profile") if isinstance(row.get("profile"), dict) else row
    user = fallback_user or {}
    return DriverProfile(
        name=profile.get("driverName") or user.get("name") or "",
        mobile_number=profile.get("mobileNumber") or user.get("mobileNumber") or "",
        role=str(profile.get("role") or user.get("role") or "user"),
        total_trips=int(coerce_number(profile.get("totalTrips"))),
        fuel_records=int(coerce_number(profile.get("fuelRecords"))),
        distance_covered_km=coerce_number(profile.get("distanceCoveredKm")),
        total_fuel_cost=coerce_number(profile.get("totalFuelCost")),
    )


def _gallery_url(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item if is_http_url(item) else None
    if isinstance(item, dict):
        sizes = item.get("availableSizes") if isinstance(item.get("availableSizes"), dict) else {}
        for candidate in (item.get("url"), item.get("image"), item.get("Location"), sizes.get("image")):
            if is_http_url(candidate):
                return candidate
    return None


def collect_images(record) -> list[GalleryImage]:
    """
    Every image URL a record carries — canonical slots plus anything left in
    `extras` — labelled for display and deduplicated by URL.
    """
    source = dict(record.extras)
    if isinstance(record, TravelLogRecord):
        source.update({
            "preMeterImg": record.pre_meter_image_url,
            "postMeterImg": record.post_meter_image_url,
            "fuelMeterImg": record.fuel_meter_image_url,
        })
    elif isinstance(record, FuelRecord):
        source.update({
            "preMeterImg": record.pre_meter_image_url,
            "machineMeterImg": record.pump_meter_image_url,
            "receiptImg": record.receipt_image_url,
        })

    found = []
    for key, label in GALLERY_SINGLE:
        url = source.get(key)
        if is_http_url(url):
            found.append(GalleryImage(url, label))
    for key, label in GALLERY_LISTS:
        items = source.get(key)
        if isinstance(items, list):
            for idx, item in enumerate(items):
                url = _gallery_url(item)
                if url:
                    found.append(GalleryImage(url, f"{label} {idx + 1}"))

    seen, deduped = set(), []
    for image in found:
        if image.url not in seen:
            seen.add(image.url)
            deduped.append(image)
    return deduped
