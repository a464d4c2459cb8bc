"""Bounded, paced batch execution of record pipelines."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from hgvroute.batch.cache import GeocodeCache, shared_cache
from hgvroute.batch.pipeline import Gateway, RecordPipeline
from hgvroute.common.config_loader import BatchSettings
from hgvroute.common.constants import FATAL_ERROR_MESSAGES, STATUS_ERROR, STATUS_SUCCESS
from hgvroute.common.errors import FatalProviderError
from hgvroute.common.logging import get_logger, log_event
from hgvroute.common.models import DestinationRecord, VehicleProfile
from hgvroute.common.time_utils import elapsed_ms, monotonic_ms

UpdateCallback = Callable[[int, DestinationRecord], None]


@dataclass
class _BatchState:
    total: int
    next_index: int = 0
    active: int = 0
    peak_active: int = 0

    def claim(self) -> int | None:
        if self.next_index >= self.total:
            return None
        index = self.next_index
        self.next_index += 1
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        return index

    def release(self) -> None:
        self.active -= 1

    @property
    def exhausted(self) -> bool:
        return self.next_index >= self.total


class BatchScheduler:
    """Runs one pipeline per record, never more than ``max_in_flight`` at once.

    Each slot pauses ``launch_interval_seconds`` after a pipeline finishes
    before it picks up the next record. Records are claimed in index order;
    completions may interleave.
    """

    def __init__(
        self,
        gateway: Gateway,
        settings: BatchSettings | None = None,
        *,
        cache: GeocodeCache | None = None,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ) -> None:
        self.settings = settings or BatchSettings()
        self.cache = cache if cache is not None else shared_cache()
        self.logger = logger or get_logger("scheduler")
        self.run_id = run_id
        self.pipeline = RecordPipeline(
            gateway,
            origin=self.settings.origin,
            scheduler_config=self.settings.scheduler,
            provider_config=self.settings.provider,
            cache=self.cache,
            logger=self.logger,
        )
        self.peak_in_flight = 0

    async def run(
        self,
        records: Sequence[DestinationRecord],
        profile: VehicleProfile | None = None,
        on_update: UpdateCallback | None = None,
    ) -> list[DestinationRecord]:
        results = list(records)
        profile = profile or self.settings.vehicle_profile
        emit = on_update or (lambda _index, _record: None)
        state = _BatchState(total=len(results))
        max_in_flight = self.settings.scheduler.max_in_flight

        log_event(
            self.logger,
            "batch start",
            run_id=self.run_id,
            stage="route",
            event="BATCH_START",
            status="ok",
            rows_in=len(results),
        )
        started = monotonic_ms()

        workers = [
            self._worker(state, results, profile, emit)
            for _ in range(min(max_in_flight, len(results)))
        ]
        await asyncio.gather(*workers)
        self.peak_in_flight = state.peak_active

        log_event(
            self.logger,
            "batch end",
            run_id=self.run_id,
            stage="route",
            event="BATCH_END",
            status="ok",
            rows_in=len(results),
            rows_out=sum(1 for record in results if record.status == STATUS_SUCCESS),
            duration_ms=elapsed_ms(started),
        )
        return results

    async def _worker(
        self,
        state: _BatchState,
        results: list[DestinationRecord],
        profile: VehicleProfile,
        emit: UpdateCallback,
    ) -> None:
        interval = self.settings.scheduler.launch_interval_seconds
        while True:
            index = state.claim()
            if index is None:
                return
            try:
                await self._run_slot(index, results[index], profile, emit)
            finally:
                state.release()
            if state.exhausted:
                return
            await asyncio.sleep(interval)

    async def _run_slot(
        self,
        index: int,
        record: DestinationRecord,
        profile: VehicleProfile,
        emit: UpdateCallback,
    ) -> None:
        started = monotonic_ms()
        log_event(
            self.logger,
            "record start",
            run_id=self.run_id,
            record_index=index,
            record_id=record.id,
            event="RECORD_START",
            status=record.status,
        )
        try:
            await self.pipeline.process(record, profile, lambda updated: emit(index, updated.snapshot()))
        except FatalProviderError as exc:
            record.status = STATUS_ERROR
            record.error_message = FATAL_ERROR_MESSAGES.get(exc.error_code, str(exc))
            record.distance_km = None
            record.duration_min = None
            log_event(
                self.logger,
                f"provider rejected credentials for record {record.id}",
                level=logging.ERROR,
                run_id=self.run_id,
                record_index=index,
                record_id=record.id,
                event="PROVIDER_FATAL",
                status="error",
                error_code=exc.error_code,
            )
        emit(index, record.snapshot())
        log_event(
            self.logger,
            "record end",
            run_id=self.run_id,
            record_index=index,
            record_id=record.id,
            event="RECORD_END",
            status=record.status,
            duration_ms=elapsed_ms(started),
        )


def run_batch(
    gateway: Gateway,
    records: Sequence[DestinationRecord],
    profile: VehicleProfile | None = None,
    on_update: UpdateCallback | None = None,
    *,
    settings: BatchSettings | None = None,
    cache: GeocodeCache | None = None,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
) -> list[DestinationRecord]:
    """Synchronous entry point for callers without an event loop."""
    scheduler = BatchScheduler(gateway, settings, cache=cache, logger=logger, run_id=run_id)
    return asyncio.run(scheduler.run(records, profile, on_update))
