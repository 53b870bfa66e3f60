"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from erfinder.common.constants import ROUTE_PRIORITIES
from erfinder.common.errors import ConfigError

SETTINGS_SECTIONS = {
    "feed": {
        "required": {"base_url", "endpoint", "api_key_env", "num_of_rows", "timeout_seconds", "max_attempts", "backoff_seconds"},
        "optional": {"available_beds_field", "estimated_available_ratio", "utc_offset_hours"},
    },
    "places": {
        "required": {"base_url", "endpoint", "api_key_env", "timeout_seconds", "min_interval_seconds"},
        "optional": {"category_group_code", "page_size"},
    },
    "routing": {
        "required": {"base_url", "endpoint", "api_key_env", "timeout_seconds", "max_attempts", "top_k"},
        "optional": {"priority", "load_more_count"},
    },
    "search": {
        "required": {"max_distance_km", "stale_after_minutes", "fallback_location", "plausible_bbox"},
        "optional": {"no_data_markers"},
    },
    "snapshot": {
        "required": {"path", "max_age_minutes", "fresh_minutes", "max_distance_km"},
        "optional": {"max_bytes"},
    },
}
BBOX_KEYS = {"min_lat", "max_lat", "min_lon", "max_lon"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
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


def _assert_bbox(obj: dict, ctx: str) -> None:
    _assert_required_keys(obj, BBOX_KEYS, ctx)
    if obj["min_lat"] > obj["max_lat"] or obj["min_lon"] > obj["max_lon"]:
        raise ConfigError(f"{ctx} has inverted bounds")


def validate_settings_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, set(SETTINGS_SECTIONS), "settings")
    _assert_no_unknown_keys(cfg, set(SETTINGS_SECTIONS), "settings", allow_unknown)

    for section, keys in SETTINGS_SECTIONS.items():
        _assert_required_keys(cfg[section], keys["required"], section)
        _assert_no_unknown_keys(cfg[section], keys["required"] | keys["optional"], section, allow_unknown)

    _assert_required_keys(cfg["search"]["fallback_location"], {"lat", "lon"}, "search.fallback_location")
    _assert_bbox(cfg["search"]["plausible_bbox"], "search.plausible_bbox")

    if float(cfg["places"]["min_interval_seconds"]) < 0.1:
        raise ConfigError("places.min_interval_seconds must be at least 0.1")
    if float(cfg["feed"]["timeout_seconds"]) > 10:
        raise ConfigError("feed.timeout_seconds must not exceed 10")
    if float(cfg["routing"]["timeout_seconds"]) > 3:
        raise ConfigError("routing.timeout_seconds must not exceed 3")
    if int(cfg["routing"]["max_attempts"]) > 2:
        raise ConfigError("routing.max_attempts must not exceed 2")
    if int(cfg["routing"]["top_k"]) < 1:
        raise ConfigError("routing.top_k must be positive")
    priority = cfg["routing"].get("priority", "RECOMMEND")
    if priority not in ROUTE_PRIORITIES:
        raise ConfigError(f"routing.priority must be one of {', '.join(ROUTE_PRIORITIES)}")
    if float(cfg["snapshot"]["fresh_minutes"]) > float(cfg["snapshot"]["max_age_minutes"]):
        raise ConfigError("snapshot.fresh_minutes cannot exceed snapshot.max_age_minutes")

    return cfg


def validate_regions_config(cfg: dict) -> dict:
    _assert_required_keys(cfg, {"default_region", "regions"}, "regions")
    if not isinstance(cfg["regions"], list) or not cfg["regions"]:
        raise ConfigError("regions.regions must be a non-empty list")

    names: list[str] = []
    for idx, region in enumerate(cfg["regions"]):
        _assert_required_keys(region, {"name", "bbox"}, f"regions[{idx}]")
        _assert_bbox(region["bbox"], f"regions[{idx}].bbox")
        names.append(region["name"])

    dupes = {name for name in names if names.count(name) > 1}
    if dupes:
        raise ConfigError(f"Duplicate regions: {', '.join(sorted(dupes))}")

    return cfg
