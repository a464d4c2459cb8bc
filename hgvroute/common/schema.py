"""Minimal strict schema for the YAML batch config."""

from __future__ import annotations

from hgvroute.common.errors import ConfigError

TOP_LEVEL_KEYS = {"origin", "vehicle_profile", "scheduler", "provider", "cache", "limits"}
ORIGIN_KEYS = {"label", "lat", "lon"}
VEHICLE_KEYS = {"weight", "height", "width", "length", "axle_load", "hazmat"}
SCHEDULER_KEYS = {
    "max_in_flight",
    "launch_interval_seconds",
    "quota_retry_delay_seconds",
    "quota_retry_max_attempts",
    "error_message_max_length",
}
PROVIDER_KEYS = {
    "base_url",
    "api_key_env",
    "country_restriction",
    "accepted_country_codes",
    "timeout_connect_seconds",
    "timeout_read_seconds",
}
CACHE_KEYS = {"max_entries"}
LIMITS_KEYS = {"max_destinations", "display_concurrency_limit"}


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_number(value: object, ctx: str, *, positive: bool = False, minimum: float | None = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx} must be a number")
    if positive and value <= 0:
        raise ConfigError(f"{ctx} must be > 0")
    if minimum is not None and value < minimum:
        raise ConfigError(f"{ctx} must be >= {minimum}")


def _assert_optional_int(value: object, ctx: str) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{ctx} must be null or a positive integer")


def _section(cfg: dict, name: str, keys: set[str], allow_unknown: bool) -> dict:
    section = _assert_mapping(cfg[name], name)
    _assert_required_keys(section, keys, name)
    _assert_no_unknown_keys(section, keys, name, allow_unknown)
    return section


def validate_vehicle_profile(profile: dict, *, ctx: str = "vehicle_profile") -> dict:
    _assert_mapping(profile, ctx)
    _assert_required_keys(profile, VEHICLE_KEYS, ctx)
    for key in sorted(VEHICLE_KEYS - {"hazmat"}):
        _assert_number(profile[key], f"{ctx}.{key}", positive=True)
    if not isinstance(profile["hazmat"], bool):
        raise ConfigError(f"{ctx}.hazmat must be a boolean")
    return profile


def validate_batch_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "batch config")
    _assert_required_keys(cfg, TOP_LEVEL_KEYS, "batch config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "batch config", allow_unknown)

    origin = _section(cfg, "origin", ORIGIN_KEYS, allow_unknown)
    _assert_number(origin["lat"], "origin.lat")
    _assert_number(origin["lon"], "origin.lon")
    if not -90 <= origin["lat"] <= 90 or not -180 <= origin["lon"] <= 180:
        raise ConfigError("origin lat/lon out of range")

    vehicle = _section(cfg, "vehicle_profile", VEHICLE_KEYS, allow_unknown)
    validate_vehicle_profile(vehicle)

    scheduler = _section(cfg, "scheduler", SCHEDULER_KEYS, allow_unknown)
    if isinstance(scheduler["max_in_flight"], bool) or not isinstance(scheduler["max_in_flight"], int):
        raise ConfigError("scheduler.max_in_flight must be an integer")
    _assert_number(scheduler["max_in_flight"], "scheduler.max_in_flight", positive=True)
    _assert_number(scheduler["launch_interval_seconds"], "scheduler.launch_interval_seconds", minimum=0)
    _assert_number(scheduler["quota_retry_delay_seconds"], "scheduler.quota_retry_delay_seconds", minimum=0)
    _assert_optional_int(scheduler["quota_retry_max_attempts"], "scheduler.quota_retry_max_attempts")
    _assert_number(scheduler["error_message_max_length"], "scheduler.error_message_max_length", positive=True)

    provider = _section(cfg, "provider", PROVIDER_KEYS, allow_unknown)
    codes = provider["accepted_country_codes"]
    if not isinstance(codes, list) or not codes:
        raise ConfigError("provider.accepted_country_codes must be a non-empty list")
    _assert_number(provider["timeout_connect_seconds"], "provider.timeout_connect_seconds", positive=True)
    _assert_number(provider["timeout_read_seconds"], "provider.timeout_read_seconds", positive=True)

    cache = _section(cfg, "cache", CACHE_KEYS, allow_unknown)
    _assert_optional_int(cache["max_entries"], "cache.max_entries")

    limits = _section(cfg, "limits", LIMITS_KEYS, allow_unknown)
    _assert_number(limits["max_destinations"], "limits.max_destinations", positive=True)
    _assert_number(limits["display_concurrency_limit"], "limits.display_concurrency_limit", positive=True)
    if scheduler["max_in_flight"] >= limits["display_concurrency_limit"]:
        raise ConfigError("scheduler.max_in_flight must be lower than limits.display_concurrency_limit")

    return cfg
