"""In-memory cache for deploy settings."""

from __future__ import annotations

import os
import threading
from typing import Any

from utils.file_utils import load_json
from utils.log_utils import tprint

DEFAULT_SETTINGS_PATH = "config/deploy_settings.json"

DEFAULTS: dict[str, Any] = {
    "log_level": "INFO",
    "deploy_folder": ".",
}

_lock = threading.Lock()
_settings_cache: dict[str, Any] = {}


def settings_path() -> str:
    """Return the settings file path, honouring DEPLOY_SETTINGS_PATH."""
    return os.getenv("DEPLOY_SETTINGS_PATH") or DEFAULT_SETTINGS_PATH


def refresh_settings() -> dict[str, Any]:
    """Reload settings from disk and replace the cache."""
    data = load_json(settings_path())
    if not isinstance(data, dict):
        data = {}
    with _lock:
        _settings_cache.clear()
        _settings_cache.update(DEFAULTS)
        _settings_cache.update(data)
        return dict(_settings_cache)


def get_settings() -> dict[str, Any]:
    """Return a copy of the cached settings."""
    with _lock:
        if _settings_cache:
            return dict(_settings_cache)
    return refresh_settings()


def is_deep_logging() -> bool:
    """Return True when log_level requests deep tracing."""
    level = str(get_settings().get("log_level", "")).upper()
    return level in {"DEEP"}


def deep_log(message: str) -> None:
    if is_deep_logging():
        tprint(message)
