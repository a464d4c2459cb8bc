"""OpenRouteService gateway: geocode and HGV route calls with error classification.

Blocking ``requests`` calls run in worker threads via ``asyncio.to_thread`` so
the scheduler and the pipelines stay on a single event loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import requests

from hgvroute.common.config_loader import ProviderConfig
from hgvroute.common.constants import USER_AGENT
from hgvroute.common.errors import (
    AccessDisallowedError,
    AuthenticationFailedError,
    CredentialsMissingError,
    ProviderError,
    ProviderRequestError,
    QuotaExceededError,
)
from hgvroute.common.logging import get_logger, log_event
from hgvroute.common.models import GeocodeMatch, GeoPoint, RouteSummary, VehicleProfile

GEOCODE_PATH = "/geocode/search"
ROUTE_PATH = "/v2/directions/driving-hgv/geojson"


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 60.0


def _error_message(response: requests.Response) -> str:
    fallback = f"API error {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if body.get("message"):
        return str(body["message"])
    return fallback


def first_geocode_match(payload: dict) -> GeocodeMatch | None:
    features = payload.get("features") or []
    if not features:
        return None
    feature = features[0]
    coordinates = (feature.get("geometry") or {}).get("coordinates") or []
    if len(coordinates) < 2:
        raise ProviderRequestError("geocode feature has no coordinates")
    lon, lat = coordinates[:2]
    properties = feature.get("properties") or {}
    return GeocodeMatch(
        lat=float(lat),
        lon=float(lon),
        country_code=properties.get("country_a"),
        label=properties.get("label") or properties.get("name"),
    )


def route_summary(payload: dict) -> RouteSummary | None:
    features = payload.get("features") or []
    if not features:
        return None
    summary = (features[0].get("properties") or {}).get("summary")
    if not summary or "distance" not in summary or "duration" not in summary:
        return None
    return RouteSummary(distance_m=float(summary["distance"]), duration_s=float(summary["duration"]))


class OrsGateway:
    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        api_key: str | None = None,
        timeout: TimeoutConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or ProviderConfig()
        self._api_key = api_key
        self.timeout = timeout or TimeoutConfig(
            connect=self.config.timeout_connect_seconds,
            read=self.config.timeout_read_seconds,
        )
        self.logger = logger or get_logger("provider")
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "OrsGateway":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key.strip()
        return os.environ.get(self.config.api_key_env, "").strip()

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Authorization": api_key,
            "Content-Type": "application/json; charset=utf-8",
            "Accept": "application/json, application/geo+json; charset=utf-8",
        }

    def _raise_for_status(self, response: requests.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status == 429:
            raise QuotaExceededError("quota exceeded (429)")
        if status == 403:
            log_event(
                self.logger,
                f"provider refused access: {response.text[:500]}",
                level=logging.WARNING,
                event="PROVIDER_FORBIDDEN",
                status="error",
                error_code=AccessDisallowedError.error_code,
            )
            raise AccessDisallowedError("access disallowed (403)")
        if status == 401:
            raise AuthenticationFailedError("authentication failed (401)")
        raise ProviderRequestError(_error_message(response))

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        api_key = self.api_key()
        if not api_key:
            raise CredentialsMissingError(f"{self.config.api_key_env} is not set")

        url = f"{self.config.base_url}{path}"
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=body,
                headers=self._headers(api_key),
                timeout=(self.timeout.connect, self.timeout.read),
            )
        except requests.RequestException as exc:
            raise ProviderRequestError(f"technical error: {exc}") from exc

        self._raise_for_status(response)

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderRequestError(f"technical error: invalid JSON from {path}") from exc

    def geocode_params(self, text: str, focus: GeoPoint) -> dict[str, str]:
        return {
            "text": text,
            "boundary.country": self.config.country_restriction,
            "focus.point.lat": str(focus.lat),
            "focus.point.lon": str(focus.lon),
            "size": "1",
        }

    def route_body(self, origin: GeoPoint, destination: GeoPoint, profile: VehicleProfile) -> dict[str, Any]:
        return {
            "coordinates": [origin.lon_lat(), destination.lon_lat()],
            "instructions": False,
            "preference": "fastest",
            "options": {
                "avoid_borders": "all",
                "vehicle_type": "hgv",
                "profile_params": {"restrictions": profile.to_restrictions()},
            },
        }

    async def geocode(self, text: str, focus: GeoPoint) -> dict[str, Any]:
        return await self._call("GET", GEOCODE_PATH, params=self.geocode_params(text, focus))

    async def route(self, origin: GeoPoint, destination: GeoPoint, profile: VehicleProfile) -> dict[str, Any]:
        return await self._call("POST", ROUTE_PATH, body=self.route_body(origin, destination, profile))

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self.request_json, method, path, params=params, body=body)
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderRequestError(f"technical error: {exc}") from exc
