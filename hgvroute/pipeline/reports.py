"""Batch progress tracking and run summary."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from hgvroute.common.constants import (
    IN_FLIGHT_STATUSES,
    STATUS_ERROR,
    STATUS_INVALID_LOCATION,
    STATUS_PENDING,
    STATUS_SUCCESS,
    TERMINAL_STATUSES,
)
from hgvroute.common.fs import write_json
from hgvroute.common.models import DestinationRecord


def summarize(records: list[DestinationRecord]) -> dict[str, int]:
    return {
        "total": len(records),
        "success": sum(1 for r in records if r.status == STATUS_SUCCESS),
        "error": sum(1 for r in records if r.status in (STATUS_ERROR, STATUS_INVALID_LOCATION)),
        "processing": sum(1 for r in records if r.status in IN_FLIGHT_STATUSES),
        "pending": sum(1 for r in records if r.status == STATUS_PENDING),
    }


class ProgressTracker:
    """Wraps an update callback and keeps a running count of finished records."""

    def __init__(
        self,
        total: int,
        callback: Callable[[int, DestinationRecord, int], None] | None = None,
    ) -> None:
        self.total = total
        self.callback = callback
        self.completed = 0
        self._done: set[int] = set()

    def __call__(self, index: int, record: DestinationRecord) -> None:
        if record.status in TERMINAL_STATUSES and index not in self._done:
            self._done.add(index)
            self.completed += 1
        if self.callback is not None:
            self.callback(index, record, self.completed)

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.completed / self.total


def write_run_summary(
    data_dir: Path,
    *,
    run_id: str,
    run_date: str,
    records: list[DestinationRecord],
    output_path: Path | None = None,
) -> Path:
    counts = summarize(records)
    status = "success" if counts["success"] == counts["total"] else "partial"
    errors = [
        {"id": r.id, "status": r.status, "message": r.error_message}
        for r in records
        if r.status in (STATUS_ERROR, STATUS_INVALID_LOCATION)
    ]
    payload = {
        "run_id": run_id,
        "run_date": run_date,
        "status": status,
        "counts": counts,
        "errors": errors,
        "output_path": str(output_path) if output_path is not None else None,
    }
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    write_json(summary_path, payload)
    return summary_path
