"""
Engine settings persisted as settings.json under the data root.

A missing or unreadable file yields defaults, and each invalid value falls back
to its own default. GHS_AUTO_SWITCH and GHS_LOG_LEVEL override the file at
load time.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from .profile_store.rules import DEFAULT_HOST
from .registry_io import write_text_atomic

logger = logging.getLogger(__name__)

AUTO_SWITCH_ENV = "GHS_AUTO_SWITCH"
LOG_LEVEL_ENV = "GHS_LOG_LEVEL"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}
_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """
    Persisted engine settings.

    Notes
    -----
    Settings only control defaults and toggles. They never hold identity
    data; profiles and links live in their own registries.
    """

    auto_switch: bool
    external_timeout_seconds: float
    default_host: str
    log_level: str  # "DEBUG" | "INFO" | "WARNING" | "ERROR"

    @staticmethod
    def defaults() -> "EngineSettings":
        return EngineSettings(
            auto_switch=True,
            external_timeout_seconds=5.0,
            default_host=DEFAULT_HOST,
            log_level="WARNING",
        )


def _parse_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


def _from_payload(payload: dict[str, object]) -> EngineSettings:
    """Build settings from a JSON payload, keeping defaults for invalid values."""
    settings = EngineSettings.defaults()

    auto_switch = _parse_bool(payload.get("auto_switch"))
    if auto_switch is not None:
        settings = replace(settings, auto_switch=auto_switch)

    timeout = payload.get("external_timeout_seconds")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and 0 < timeout <= 120:
        settings = replace(settings, external_timeout_seconds=float(timeout))

    host = payload.get("default_host")
    if isinstance(host, str) and host.strip():
        settings = replace(settings, default_host=host.strip().lower())

    level = payload.get("log_level")
    if isinstance(level, str) and level.upper() in _LOG_LEVELS:
        settings = replace(settings, log_level=level.upper())

    return settings


def _apply_env_overrides(settings: EngineSettings) -> EngineSettings:
    auto_switch = _parse_bool(os.environ.get(AUTO_SWITCH_ENV))
    if auto_switch is not None:
        settings = replace(settings, auto_switch=auto_switch)
    level = os.environ.get(LOG_LEVEL_ENV, "").upper()
    if level in _LOG_LEVELS:
        settings = replace(settings, log_level=level)
    return settings


def load_settings(settings_path: Path) -> EngineSettings:
    """
    Load engine settings from disk.

    Parameters
    ----------
    settings_path:
        Path to settings.json.

    Returns
    -------
    EngineSettings
        Loaded settings with environment overrides applied, or defaults if the
        file is missing or unreadable.
    """
    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return _apply_env_overrides(EngineSettings.defaults())
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", settings_path, exc)
        return _apply_env_overrides(EngineSettings.defaults())

    if not isinstance(payload, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", settings_path)
        return _apply_env_overrides(EngineSettings.defaults())
    return _apply_env_overrides(_from_payload(payload))


def save_settings(settings_path: Path, settings: EngineSettings) -> None:
    """
    Save engine settings atomically.

    Notes
    -----
    Environment overrides are not persisted separately: the values passed in
    are written as given.
    """
    payload = {
        "auto_switch": settings.auto_switch,
        "external_timeout_seconds": settings.external_timeout_seconds,
        "default_host": settings.default_host,
        "log_level": settings.log_level,
    }
    write_text_atomic(settings_path, json.dumps(payload, indent=2, sort_keys=True) + "\n")
