"""Data models shared by the batch scheduler, the pipeline and the CLI."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from hgvroute.common.constants import STATUS_PENDING, STATUS_SUCCESS


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float
    label: str = ""

    def lon_lat(self) -> list[float]:
        return [self.lon, self.lat]


@dataclass(frozen=True)
class VehicleProfile:
    """Truck dimensions in tonnes and metres, sent unchanged with every route call."""

    weight: float
    height: float
    width: float
    length: float
    axle_load: float
    hazmat: bool = False

    def to_restrictions(self) -> dict[str, Any]:
        return {
            "weight": self.weight,
            "height": self.height,
            "width": self.width,
            "length": self.length,
            "axleload": self.axle_load,
            "hazmat": self.hazmat,
        }


@dataclass(frozen=True)
class GeocodeMatch:
    lat: float
    lon: float
    country_code: str | None
    label: str | None


@dataclass(frozen=True)
class RouteSummary:
    distance_m: float
    duration_s: float


@dataclass
class DestinationRecord:
    id: str
    label: str = ""
    address: str | None = None
    postcode: str | None = None
    city: str | None = None
    lat: float | None = None
    lon: float | None = None
    status: str = STATUS_PENDING
    geocoded_address: str | None = None
    distance_km: float | None = None
    duration_min: float | None = None
    error_message: str | None = None

    def display_address(self) -> str:
        address = (self.address or "").strip()
        if address:
            return address
        return f"{self.postcode or ''} {self.city or ''}".strip()

    def snapshot(self) -> "DestinationRecord":
        return copy.copy(self)


def reset_for_rerun(records: list[DestinationRecord]) -> list[DestinationRecord]:
    """Put every non-success record back to pending before a new run.

    Successful records keep their status and metrics; they are still routed
    again when handed to the scheduler.
    """
    for record in records:
        if record.status == STATUS_SUCCESS:
            continue
        record.status = STATUS_PENDING
        record.error_message = None
    return records
