"""Per-record geocode -> route state machine."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_fixed,
)

from hgvroute.batch.cache import GeocodeCache, GeocodeCacheEntry, shared_cache
from hgvroute.common.config_loader import DEFAULT_ORIGIN, ProviderConfig, SchedulerConfig
from hgvroute.common.constants import (
    MESSAGE_EMPTY_DESTINATION,
    MESSAGE_MISSING_COORDINATES,
    MESSAGE_NOT_FOUND,
    MESSAGE_OUTSIDE_FRANCE,
    MESSAGE_ROUTE_IMPOSSIBLE,
    MESSAGE_STILL_THROTTLED,
    STATUS_ERROR,
    STATUS_GEOCODING,
    STATUS_INVALID_LOCATION,
    STATUS_ROUTING,
    STATUS_SUCCESS,
)
from hgvroute.common.errors import FatalProviderError, QuotaExceededError, RecordError
from hgvroute.common.logging import get_logger, log_event
from hgvroute.common.models import DestinationRecord, GeoPoint, VehicleProfile
from hgvroute.provider.ors_gateway import first_geocode_match, route_summary

StatusCallback = Callable[[DestinationRecord], None]


class Gateway(Protocol):
    async def geocode(self, text: str, focus: GeoPoint) -> dict[str, Any]: ...

    async def route(self, origin: GeoPoint, destination: GeoPoint, profile: VehicleProfile) -> dict[str, Any]: ...


def has_valid_coordinates(lat: float | None, lon: float | None) -> bool:
    if lat is None or lon is None:
        return False
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return False
    # NaN fails both range checks.
    return -90 <= lat <= 90 and -180 <= lon <= 180


def truncate_message(message: str, max_length: int) -> str:
    return message[:max_length]


class RecordPipeline:
    def __init__(
        self,
        gateway: Gateway,
        *,
        origin: GeoPoint = DEFAULT_ORIGIN,
        scheduler_config: SchedulerConfig | None = None,
        provider_config: ProviderConfig | None = None,
        cache: GeocodeCache | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.gateway = gateway
        self.origin = origin
        self.scheduler_config = scheduler_config or SchedulerConfig()
        self.provider_config = provider_config or ProviderConfig()
        self.cache = cache if cache is not None else shared_cache()
        self.logger = logger or get_logger("pipeline")

    def _retrying(self, record: DestinationRecord) -> AsyncRetrying:
        max_attempts = self.scheduler_config.quota_retry_max_attempts

        def _log_retry(retry_state: RetryCallState) -> None:
            log_event(
                self.logger,
                "quota exceeded, retrying record",
                level=logging.WARNING,
                record_id=record.id,
                event="QUOTA_RETRY",
                status="retry",
                attempt=retry_state.attempt_number,
                error_code=QuotaExceededError.error_code,
            )

        return AsyncRetrying(
            retry=retry_if_exception_type(QuotaExceededError),
            wait=wait_fixed(self.scheduler_config.quota_retry_delay_seconds),
            stop=stop_never if max_attempts is None else stop_after_attempt(max_attempts),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def process(
        self,
        record: DestinationRecord,
        profile: VehicleProfile,
        on_status: StatusCallback | None = None,
    ) -> DestinationRecord:
        """Drive ``record`` to a terminal status, mutating it in place.

        Fatal provider errors (credentials) are re-raised for the scheduler to
        report; everything else ends as ``error`` or ``invalid_location`` on
        the record itself.
        """
        notify = on_status or (lambda _record: None)
        try:
            async for attempt in self._retrying(record):
                with attempt:
                    await self._attempt(record, profile, notify)
        except FatalProviderError:
            raise
        except QuotaExceededError:
            self._fail(record, STATUS_ERROR, MESSAGE_STILL_THROTTLED)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            self._fail(record, STATUS_ERROR, truncate_message(message, self.scheduler_config.error_message_max_length))
        return record

    def _enter(self, record: DestinationRecord, status: str, notify: StatusCallback) -> None:
        record.status = status
        notify(record)

    def _fail(self, record: DestinationRecord, status: str, message: str) -> None:
        record.status = status
        record.error_message = message
        record.distance_km = None
        record.duration_min = None

    async def _attempt(self, record: DestinationRecord, profile: VehicleProfile, notify: StatusCallback) -> None:
        lat, lon = record.lat, record.lon

        if not has_valid_coordinates(lat, lon):
            address = record.display_address()
            if not address:
                raise RecordError(MESSAGE_EMPTY_DESTINATION)
            self._enter(record, STATUS_GEOCODING, notify)
            entry = await self._resolve(record, address)
            if entry is None:
                return
            lat, lon = entry.lat, entry.lon

        self._enter(record, STATUS_ROUTING, notify)
        if lat is None or lon is None:
            raise RecordError(MESSAGE_MISSING_COORDINATES)

        payload = await self.gateway.route(self.origin, GeoPoint(lat=float(lat), lon=float(lon)), profile)
        summary = route_summary(payload)
        if summary is None:
            raise RecordError(MESSAGE_ROUTE_IMPOSSIBLE)

        record.lat = float(lat)
        record.lon = float(lon)
        record.distance_km = round(summary.distance_m / 1000, 3)
        record.duration_min = round(summary.duration_s / 60, 1)
        record.error_message = None
        record.status = STATUS_SUCCESS

    async def _resolve(self, record: DestinationRecord, address: str) -> GeocodeCacheEntry | None:
        cached = self.cache.get(address)
        if cached is not None:
            record.geocoded_address = cached.resolved_address
            return cached

        payload = await self.gateway.geocode(address, self.origin)
        match = first_geocode_match(payload)
        if match is None:
            self._fail(record, STATUS_INVALID_LOCATION, MESSAGE_NOT_FOUND)
            return None
        if match.country_code not in self.provider_config.accepted_country_codes:
            self._fail(record, STATUS_INVALID_LOCATION, MESSAGE_OUTSIDE_FRANCE)
            return None

        entry = GeocodeCacheEntry(lat=match.lat, lon=match.lon, resolved_address=match.label)
        record.geocoded_address = match.label
        self.cache.put(address, entry)
        return entry
