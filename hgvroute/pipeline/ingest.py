"""Destination ingestion from delimited text (CSV file or pasted spreadsheet cells)."""

from __future__ import annotations

import csv
from pathlib import Path

from hgvroute.common.errors import ContractError
from hgvroute.common.fs import read_text
from hgvroute.common.models import DestinationRecord

DEFAULT_MAX_DESTINATIONS = 2000

# Checked in this order; a header is assigned to the first field it matches.
COLUMN_ALIASES = (
    ("lat", ("lat", "latitude")),
    ("lon", ("lon", "longitude", "lng")),
    ("postcode", ("cp", "code_postal", "zip", "postcode")),
    ("city", ("ville", "city", "town")),
    ("address", ("adresse", "address", "rue", "street")),
    ("id", ("id", "ref", "code", "identifiant")),
)


def detect_delimiter(header_line: str) -> str:
    if "\t" in header_line:
        return "\t"
    if ";" in header_line:
        return ";"
    return ","


def map_header(header: str) -> str | None:
    name = header.strip().lower()
    if not name:
        return None
    for field, aliases in COLUMN_ALIASES:
        if any(alias in name for alias in aliases):
            return field
    return None


def _parse_number(value: str) -> float | None:
    try:
        return float(value.replace(",", "."))
    except ValueError:
        return None


def parse_destinations(text: str, *, max_rows: int = DEFAULT_MAX_DESTINATIONS) -> list[DestinationRecord]:
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return []

    delimiter = detect_delimiter(lines[0])
    rows = list(csv.reader(lines, delimiter=delimiter, skipinitialspace=True))
    fields = [map_header(header) for header in rows[0]]
    if not any(field in ("address", "postcode", "city", "lat", "lon") for field in fields):
        raise ContractError("No destination column found in header")

    records: list[DestinationRecord] = []
    for row_number, values in enumerate(rows[1 : max_rows + 1], start=1):
        record = DestinationRecord(id=f"Line {row_number}")
        for field, raw in zip(fields, values):
            value = raw.strip()
            if field is None or not value:
                continue
            if field in ("lat", "lon"):
                number = _parse_number(value)
                if number is not None:
                    setattr(record, field, number)
            else:
                setattr(record, field, value)
        record.label = record.address or f"{record.postcode or ''} {record.city or ''}".strip()
        records.append(record)
    return records


def read_destinations(path: Path, *, max_rows: int = DEFAULT_MAX_DESTINATIONS) -> list[DestinationRecord]:
    if not path.exists():
        raise ContractError(f"Missing destination input: {path}")
    return parse_destinations(read_text(path), max_rows=max_rows)
