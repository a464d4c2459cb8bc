"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from hgvroute.common.errors import ConfigError
from hgvroute.common.fs import read_yaml
from hgvroute.common.models import GeoPoint, VehicleProfile
from hgvroute.common.schema import validate_batch_config, validate_vehicle_profile

CONFIG_FILENAME = "batch.yml"

DEFAULT_ORIGIN = GeoPoint(lat=45.561075, lon=4.804825, label="Loire-sur-Rhône 69700, France")
DEFAULT_VEHICLE_PROFILE = VehicleProfile(
    weight=44.0,
    height=4.0,
    width=2.55,
    length=16.5,
    axle_load=11.5,
    hazmat=False,
)


@dataclass(frozen=True)
class SchedulerConfig:
    max_in_flight: int = 2
    launch_interval_seconds: float = 0.5
    quota_retry_delay_seconds: float = 5.0
    quota_retry_max_attempts: int | None = None
    error_message_max_length: int = 40


@dataclass(frozen=True)
class ProviderConfig:
    base_url: str = "https://api.openrouteservice.org"
    api_key_env: str = "ORS_API_KEY"
    country_restriction: str = "FRA"
    accepted_country_codes: tuple[str, ...] = ("FRA", "FR")
    timeout_connect_seconds: float = 20.0
    timeout_read_seconds: float = 60.0


@dataclass(frozen=True)
class BatchSettings:
    origin: GeoPoint = DEFAULT_ORIGIN
    vehicle_profile: VehicleProfile = DEFAULT_VEHICLE_PROFILE
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    cache_max_entries: int | None = None
    max_destinations: int = 2000
    display_concurrency_limit: int = 5


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def vehicle_profile_from_dict(cfg: dict) -> VehicleProfile:
    validate_vehicle_profile(cfg)
    return VehicleProfile(
        weight=float(cfg["weight"]),
        height=float(cfg["height"]),
        width=float(cfg["width"]),
        length=float(cfg["length"]),
        axle_load=float(cfg["axle_load"]),
        hazmat=bool(cfg["hazmat"]),
    )


def settings_from_dict(cfg: dict, *, allow_unknown: bool = False) -> BatchSettings:
    cfg = validate_batch_config(cfg, allow_unknown=allow_unknown)
    origin = cfg["origin"]
    scheduler = cfg["scheduler"]
    provider = cfg["provider"]
    return BatchSettings(
        origin=GeoPoint(lat=float(origin["lat"]), lon=float(origin["lon"]), label=str(origin["label"])),
        vehicle_profile=vehicle_profile_from_dict(cfg["vehicle_profile"]),
        scheduler=SchedulerConfig(
            max_in_flight=int(scheduler["max_in_flight"]),
            launch_interval_seconds=float(scheduler["launch_interval_seconds"]),
            quota_retry_delay_seconds=float(scheduler["quota_retry_delay_seconds"]),
            quota_retry_max_attempts=scheduler["quota_retry_max_attempts"],
            error_message_max_length=int(scheduler["error_message_max_length"]),
        ),
        provider=ProviderConfig(
            base_url=str(provider["base_url"]).rstrip("/"),
            api_key_env=str(provider["api_key_env"]),
            country_restriction=str(provider["country_restriction"]),
            accepted_country_codes=tuple(str(code) for code in provider["accepted_country_codes"]),
            timeout_connect_seconds=float(provider["timeout_connect_seconds"]),
            timeout_read_seconds=float(provider["timeout_read_seconds"]),
        ),
        cache_max_entries=cfg["cache"]["max_entries"],
        max_destinations=int(cfg["limits"]["max_destinations"]),
        display_concurrency_limit=int(cfg["limits"]["display_concurrency_limit"]),
    )


def load_batch_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> BatchSettings:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return settings_from_dict(cfg, allow_unknown=allow_unknown)


def with_vehicle_overrides(settings: BatchSettings, **overrides: Any) -> BatchSettings:
    """Apply CLI vehicle overrides; ``None`` values are ignored."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return settings
    merged = {
        "weight": settings.vehicle_profile.weight,
        "height": settings.vehicle_profile.height,
        "width": settings.vehicle_profile.width,
        "length": settings.vehicle_profile.length,
        "axle_load": settings.vehicle_profile.axle_load,
        "hazmat": settings.vehicle_profile.hazmat,
    }
    merged.update(changes)
    return replace(settings, vehicle_profile=vehicle_profile_from_dict(merged))
