from __future__ import annotations

import json
from pathlib import Path

from photo_gallery.image_engine.config import DAY_MS, MIB, CacheConfig
from photo_gallery.settings_manager import SettingsManager


def test_defaults_without_file(tmp_path: Path) -> None:
    sm = SettingsManager(tmp_path / "settings.json")

    assert sm.cache_config() == CacheConfig()
    assert sm.load_pacing_ms == 5
    assert sm.last_open_dir is None


def test_values_persist_across_instances(tmp_path: Path) -> None:
    settings_path = tmp_path / "nested" / "settings.json"
    sm = SettingsManager(settings_path)
    sm.set("cache_max_mb", 10)
    sm.set("cache_max_age_days", 1)

    reloaded = SettingsManager(settings_path)

    config = reloaded.cache_config()
    assert config.max_cache_bytes == 10 * MIB
    assert config.max_age_ms == DAY_MS
    assert json.loads(settings_path.read_text(encoding="utf-8"))["cache_max_mb"] == 10


def test_invalid_cache_values_fall_back_to_defaults(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"cache_max_mb": "lots", "load_pacing_ms": "x"}), encoding="utf-8")
    sm = SettingsManager(settings_path)

    assert sm.cache_config() == CacheConfig()
    assert sm.load_pacing_ms == 5


def test_non_positive_limits_fall_back_to_defaults(tmp_path: Path) -> None:
    sm = SettingsManager(tmp_path / "settings.json")
    sm.set("cache_max_mb", 0)
    assert sm.cache_config() == CacheConfig()


def test_corrupt_settings_file_is_ignored(tmp_path: Path) -> None:
    settings_path = tmp_path / "settings.json"
    settings_path.write_text("{not json", encoding="utf-8")
    sm = SettingsManager(settings_path)
    assert sm.data == {}


def test_last_open_dir_is_normalized_and_directory(tmp_path: Path) -> None:
    sm = SettingsManager(tmp_path / "settings.json")
    folder = tmp_path / "some_folder"
    folder.mkdir()

    sm.set("last_open_dir", str(folder))

    assert sm.last_open_dir is not None
    assert Path(sm.last_open_dir) == folder.resolve()


def test_setting_last_open_dir_to_file_coerces_to_parent_dir(tmp_path: Path) -> None:
    sm = SettingsManager(tmp_path / "settings.json")
    folder = tmp_path / "some_folder"
    folder.mkdir()
    file_path = folder / "x.png"
    file_path.write_bytes(b"x")

    sm.set("last_open_dir", str(file_path))

    assert sm.last_open_dir == str(folder.resolve())


def test_last_open_dir_defaults_to_unset(tmp_path: Path) -> None:
    sm = SettingsManager(tmp_path / "settings.json")

    assert "last_open_dir" in SettingsManager.DEFAULTS
    assert sm.get("last_open_dir") is None
    assert not sm.has("last_open_dir")
