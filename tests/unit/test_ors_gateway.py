from __future__ import annotations

import asyncio

import pytest
import requests

from hgvroute.common.config_loader import DEFAULT_ORIGIN, DEFAULT_VEHICLE_PROFILE, ProviderConfig
from hgvroute.common.errors import (
    AccessDisallowedError,
    AuthenticationFailedError,
    CredentialsMissingError,
    ProviderRequestError,
    QuotaExceededError,
)
from hgvroute.common.models import GeoPoint
from hgvroute.provider.ors_gateway import OrsGateway, first_geocode_match, route_summary


class FakeResponse:
    def __init__(self, status_code: int, payload=None, raises_json: bool = False, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self._raises_json = raises_json
        self.text = text

    def json(self):
        if self._raises_json:
            raise ValueError("bad json")
        return self._payload


def _gateway(monkeypatch, response=None, api_key="secret-key"):
    gateway = OrsGateway(ProviderConfig(), api_key=api_key)
    calls: list[dict] = []

    def fake_request(**kwargs):
        calls.append(kwargs)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(gateway.session, "request", fake_request)
    return gateway, calls


def test_request_json_success_sends_raw_key_in_authorization(monkeypatch):
    gateway, calls = _gateway(monkeypatch, FakeResponse(200, {"features": []}))

    payload = gateway.request_json("GET", "/geocode/search", params={"text": "Lyon"})

    assert payload == {"features": []}
    assert calls[0]["url"] == "https://api.openrouteservice.org/geocode/search"
    assert calls[0]["headers"]["Authorization"] == "secret-key"


@pytest.mark.parametrize(
    ("status", "error_type"),
    [
        (429, QuotaExceededError),
        (403, AccessDisallowedError),
        (401, AuthenticationFailedError),
    ],
)
def test_status_codes_map_to_error_taxonomy(monkeypatch, status, error_type):
    gateway, _calls = _gateway(monkeypatch, FakeResponse(status, {}, text="denied"))

    with pytest.raises(error_type):
        gateway.request_json("GET", "/geocode/search")


def test_other_status_carries_provider_message(monkeypatch):
    gateway, _calls = _gateway(monkeypatch, FakeResponse(500, {"error": {"message": "Point not routable"}}))

    with pytest.raises(ProviderRequestError, match="Point not routable"):
        gateway.request_json("POST", "/v2/directions/driving-hgv/geojson", body={})


def test_other_status_top_level_message(monkeypatch):
    gateway, _calls = _gateway(monkeypatch, FakeResponse(400, {"message": "bad coordinates"}))

    with pytest.raises(ProviderRequestError, match="bad coordinates"):
        gateway.request_json("GET", "/geocode/search")


def test_other_status_without_body_uses_status_code(monkeypatch):
    gateway, _calls = _gateway(monkeypatch, FakeResponse(502, raises_json=True))

    with pytest.raises(ProviderRequestError, match="API error 502"):
        gateway.request_json("GET", "/geocode/search")


def test_missing_key_fails_before_any_request(monkeypatch):
    monkeypatch.delenv("ORS_API_KEY", raising=False)
    gateway = OrsGateway(ProviderConfig())

    def fail_request(**_kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(gateway.session, "request", fail_request)

    with pytest.raises(CredentialsMissingError):
        gateway.request_json("GET", "/geocode/search")


def test_api_key_read_from_configured_environment_variable(monkeypatch):
    monkeypatch.setenv("ORS_API_KEY", "  env-key \n")
    gateway = OrsGateway(ProviderConfig())
    assert gateway.api_key() == "env-key"


def test_transport_failure_is_technical_error(monkeypatch):
    gateway, _calls = _gateway(monkeypatch, requests.ConnectionError("connection reset"))

    with pytest.raises(ProviderRequestError, match="technical error"):
        gateway.request_json("GET", "/geocode/search")


def test_invalid_json_is_technical_error(monkeypatch):
    gateway, _calls = _gateway(monkeypatch, FakeResponse(200, raises_json=True))

    with pytest.raises(ProviderRequestError):
        gateway.request_json("GET", "/geocode/search")


def test_geocode_request_is_biased_and_restricted(monkeypatch):
    gateway, calls = _gateway(monkeypatch, FakeResponse(200, {"features": []}))

    asyncio.run(gateway.geocode("10 Rue Victor Hugo Lyon", DEFAULT_ORIGIN))

    params = calls[0]["params"]
    assert calls[0]["method"] == "GET"
    assert params["text"] == "10 Rue Victor Hugo Lyon"
    assert params["boundary.country"] == "FRA"
    assert params["focus.point.lat"] == str(DEFAULT_ORIGIN.lat)
    assert params["focus.point.lon"] == str(DEFAULT_ORIGIN.lon)
    assert params["size"] == "1"


def test_route_request_carries_vehicle_profile(monkeypatch):
    gateway, calls = _gateway(monkeypatch, FakeResponse(200, {"features": []}))
    destination = GeoPoint(lat=45.75, lon=4.85)

    asyncio.run(gateway.route(DEFAULT_ORIGIN, destination, DEFAULT_VEHICLE_PROFILE))

    body = calls[0]["json"]
    assert calls[0]["method"] == "POST"
    assert calls[0]["url"].endswith("/v2/directions/driving-hgv/geojson")
    assert body["coordinates"] == [[DEFAULT_ORIGIN.lon, DEFAULT_ORIGIN.lat], [4.85, 45.75]]
    assert body["preference"] == "fastest"
    assert body["options"]["avoid_borders"] == "all"
    assert body["options"]["profile_params"]["restrictions"] == {
        "weight": 44.0,
        "height": 4.0,
        "width": 2.55,
        "length": 16.5,
        "axleload": 11.5,
        "hazmat": False,
    }


def test_async_call_propagates_taxonomy(monkeypatch):
    gateway, _calls = _gateway(monkeypatch, FakeResponse(429, {}))

    with pytest.raises(QuotaExceededError):
        asyncio.run(gateway.geocode("Lyon", DEFAULT_ORIGIN))


def test_first_geocode_match_reads_first_feature():
    payload = {
        "features": [
            {
                "geometry": {"coordinates": [4.85, 45.75]},
                "properties": {"country_a": "FRA", "name": "Lyon"},
            },
            {
                "geometry": {"coordinates": [2.35, 48.85]},
                "properties": {"country_a": "FRA", "label": "Paris"},
            },
        ]
    }

    match = first_geocode_match(payload)

    assert (match.lat, match.lon) == (45.75, 4.85)
    assert match.country_code == "FRA"
    assert match.label == "Lyon"
    assert first_geocode_match({"features": []}) is None
    assert first_geocode_match({}) is None


def test_route_summary_requires_distance_and_duration():
    payload = {"features": [{"properties": {"summary": {"distance": 1200.0, "duration": 90.0}}}]}

    summary = route_summary(payload)

    assert (summary.distance_m, summary.duration_s) == (1200.0, 90.0)
    assert route_summary({"features": [{"properties": {}}]}) is None
    assert route_summary({"features": []}) is None
