"""Result CSV export."""

from __future__ import annotations

from pathlib import Path

from hgvroute.common.fs import write_csv
from hgvroute.common.models import DestinationRecord

RESULT_HEADERS = [
    "ID",
    "Address",
    "Postcode",
    "City",
    "Lat",
    "Lon",
    "Distance_km",
    "Duration_min",
    "Status",
    "Message",
]


def result_filename(run_date: str) -> str:
    return f"hgv_routes_{run_date}.csv"


def _cell(value: object) -> object:
    if value is None:
        return ""
    return value


def _serialize_record(record: DestinationRecord) -> dict:
    return {
        "ID": record.id,
        "Address": _cell(record.address),
        "Postcode": _cell(record.postcode),
        "City": _cell(record.city),
        "Lat": _cell(record.lat),
        "Lon": _cell(record.lon),
        "Distance_km": _cell(record.distance_km),
        "Duration_min": _cell(record.duration_min),
        "Status": record.status,
        "Message": _cell(record.error_message),
    }


def write_results_csv(path: Path, records: list[DestinationRecord]) -> Path:
    write_csv(path, RESULT_HEADERS, (_serialize_record(record) for record in records), delimiter=";")
    return path
