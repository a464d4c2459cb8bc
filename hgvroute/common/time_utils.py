"""UTC date helpers and monotonic timing for log events."""

from __future__ import annotations

import time
from datetime import date, datetime, timezone


def utc_today_iso() -> str:
    return datetime.now(tz=timezone.utc).date().isoformat()


def parse_run_date(value: str | None) -> str:
    if not value:
        return utc_today_iso()
    return date.fromisoformat(value).isoformat()


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def elapsed_ms(started_ms: float) -> int:
    return int(round(monotonic_ms() - started_ms))
