from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .image_engine.config import DAY_MS, MIB, CacheConfig
from .logger import get_logger
from .path_utils import abs_dir, abs_path_str

_logger = get_logger("settings")

APP_DIR = Path.home() / ".photo_gallery"
DEFAULT_SETTINGS_PATH = APP_DIR / "settings.json"


class SettingsManager:
    def __init__(self, settings_path: str | Path = DEFAULT_SETTINGS_PATH):
        self.settings_path = str(settings_path)
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "cache_dir": str(APP_DIR / "cache"),
        "cache_max_age_days": 7,
        "cache_max_mb": 100,
        "load_pacing_ms": 5,
        "last_open_dir": None,
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            os.makedirs(os.path.dirname(self.settings_path) or ".", exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        if key == "last_open_dir" and value:
            # Stored normalized; a file path is coerced to its folder.
            value = abs_path_str(abs_dir(value))
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def last_open_dir(self) -> str | None:
        val = self.get("last_open_dir")
        return val if isinstance(val, str) and os.path.isdir(val) else None

    @property
    def cache_dir(self) -> Path:
        return Path(str(self.get("cache_dir"))).expanduser()

    @property
    def load_pacing_ms(self) -> int:
        try:
            return max(0, int(self.get("load_pacing_ms")))
        except (TypeError, ValueError):
            _logger.warning("invalid load_pacing_ms: %r", self.get("load_pacing_ms"))
            return int(self.DEFAULTS["load_pacing_ms"])

    def cache_config(self) -> CacheConfig:
        """Build the durable cache limits from settings, falling back to defaults."""
        try:
            max_age_days = float(self.get("cache_max_age_days"))
            max_mb = float(self.get("cache_max_mb"))
        except (TypeError, ValueError) as e:
            _logger.warning("invalid cache settings, using defaults: %s", e)
            return CacheConfig()
        if max_age_days <= 0 or max_mb <= 0:
            _logger.warning("non-positive cache limits in settings, using defaults")
            return CacheConfig()
        return CacheConfig(max_age_ms=int(max_age_days * DAY_MS), max_cache_bytes=int(max_mb * MIB))
