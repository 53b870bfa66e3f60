from pathlib import Path

import pytest

from erfinder.common.config_loader import load_all_configs, resolve_api_key
from erfinder.common.errors import ConfigError


def _copy_config(tmp_path: Path) -> Path:
    base = tmp_path / "base"
    base.mkdir()
    for name in ("settings.yml", "regions.yml"):
        (base / name).write_text(Path("config", name).read_text(encoding="utf-8"), encoding="utf-8")
    return base


def test_load_all_configs_from_repo_config_dir():
    bundle = load_all_configs(Path("config"))
    assert bundle.settings["routing"]["top_k"] == 10
    assert bundle.settings["snapshot"]["max_age_minutes"] == 30
    assert bundle.regions["default_region"] == "서울특별시"
    assert bundle.regions["regions"][0]["name"] == "서울특별시"


def test_load_all_configs_applies_overlay_values(tmp_path: Path):
    base = _copy_config(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text(
        """routing:
  top_k: 5
snapshot:
  path: "/tmp/other.json"
""",
        encoding="utf-8",
    )

    bundle = load_all_configs(base, overlay_config_dir=overlay)

    assert bundle.settings["routing"]["top_k"] == 5
    assert bundle.settings["routing"]["priority"] == "RECOMMEND"
    assert bundle.settings["snapshot"]["path"] == "/tmp/other.json"


def test_load_all_configs_ignores_empty_overlay_file(tmp_path: Path):
    base = _copy_config(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text("", encoding="utf-8")

    bundle = load_all_configs(base, overlay_config_dir=overlay)
    assert bundle.settings["routing"]["top_k"] == 10


def test_missing_config_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_all_configs(tmp_path)


def test_resolve_api_key_reads_named_env_var():
    assert resolve_api_key({"api_key_env": "FEED_KEY"}, {"FEED_KEY": " abc "}) == "abc"


def test_resolve_api_key_missing_is_config_error():
    with pytest.raises(ConfigError, match="FEED_KEY"):
        resolve_api_key({"api_key_env": "FEED_KEY"}, {})
