"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from erfinder.common.errors import ConfigError
from erfinder.common.fs import read_yaml
from erfinder.common.schema import validate_regions_config, validate_settings_config


@dataclass(frozen=True)
class ConfigBundle:
    settings: dict
    regions: dict


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
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    def _overlay(name: str) -> Path | None:
        return (overlay_config_dir / name) if overlay_config_dir is not None else None

    settings = validate_settings_config(
        _load_yaml_with_overlay(config_dir / "settings.yml", _overlay("settings.yml")),
        allow_unknown=allow_unknown,
    )
    regions = validate_regions_config(
        _load_yaml_with_overlay(config_dir / "regions.yml", _overlay("regions.yml")),
    )
    return ConfigBundle(settings=settings, regions=regions)


def resolve_api_key(section: dict, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    env_name = section["api_key_env"]
    value = env.get(env_name, "").strip()
    if not value:
        raise ConfigError(f"Environment variable {env_name} is not set")
    return value
