"""
Derived trip and fuel metrics.

Pure functions only. Fuel totals and trip distances share one rounding rule and
one fallback rule (server value wins, client value is the fallback); every other
module goes through here instead of re-deriving them.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from fleetlog.utils.json_parser import is_number

TOTAL_TOLERANCE = 0.01


def round2(value: float) -> float:
    """Round half-up to 2 decimals, the way amounts are shown on receipts."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round_percent(value: float) -> int:
    """Whole percent, half-up (40.5 -> 41)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_total_amount(liters: float, price_per_liter: float) -> float:
    return round2(liters * price_per_liter)


def compute_distance(pre: float, post: float, server_value: Optional[float] = None) -> float:
    """Server-reported distance if it is a number, else max(0, post - pre)."""
    if is_number(server_value):
        return server_value
    return max(0, post - pre)


def total_matches(liters: float, price_per_liter: float, total_amount: float) -> bool:
    """True when `total_amount` agrees with liters × price within rounding tolerance."""
    return abs(compute_total_amount(liters, price_per_liter) - total_amount) <= TOTAL_TOLERANCE


def percentage(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return round2(part * 100 / whole)


def average(total: float, count: int) -> float:
    if not count:
        return 0.0
    return round2(total / count)


@dataclass
class DriverSummary:
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


def summarize_driver(fuel_records: list, travel_logs: list) -> DriverSummary:
    """
    Aggregate statistics for the admin driver screen.
    Takes normalized FuelRecord / TravelLogRecord objects.
    """
    total_liters = round2(sum(r.liters for r in fuel_records))
    total_cost = round2(sum(r.total_amount for r in fuel_records))
    completed = [t for t in travel_logs if t.is_completed]
    distance = round2(sum(t.distance_km for t in completed))

    return DriverSummary(
        fuel_records=len(fuel_records),
        total_liters=total_liters,
        total_fuel_cost=total_cost,
        total_trips=len(travel_logs),
        completed_trips=len(completed),
        pending_trips=len(travel_logs) - len(completed),
        total_distance_km=distance,
        completion_percent=percentage(len(completed), len(travel_logs)),
        avg_cost_per_trip=average(total_cost, len(travel_logs)),
        avg_price_per_liter=average(total_cost, total_liters) if total_liters else 0.0,
    )
