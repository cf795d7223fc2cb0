# app/core/dispatch/geo.py
"""
Great-circle distance for mileage calculation.

Internal maths keeps full floating-point precision; only ``Distance``
values handed to callers are rounded to two decimals.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

__all__ = [
    "EARTH_RADIUS_KM", "KM_TO_MILES",
    "Distance",
    "haversine_km", "km_to_miles", "distance_pair", "is_valid_coordinate",
]

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371


@dataclass(frozen=True)
class Distance:
    """A distance rounded to two decimals in both units."""

    kilometers: float
    miles: float

    def as_dict(self) -> dict[str, float]:
        return {"kilometers": self.kilometers, "miles": self.miles}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def km_to_miles(km: float) -> float:
    return km * KM_TO_MILES


def distance_pair(km: float) -> Distance:
    """Round an unrounded kilometre value for the API boundary."""
    return Distance(kilometers=round(km, 2), miles=round(km_to_miles(km), 2))


def is_valid_coordinate(lat: object, lon: object) -> bool:
    """Numeric (not bool) latitude in [-90, 90] and longitude in [-180, 180]."""
    for value in (lat, lon):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if math.isnan(value):
            return False
    return -90 <= lat <= 90 and -180 <= lon <= 180
