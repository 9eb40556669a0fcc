"""Typed settings for the JournalMate notification service.

Settings are wrapped in Pydantic models so the scheduler, dispatcher and CLI
can rely on validated values. They are persisted as JSON and can be overridden
per process through ``JOURNALMATE_*`` environment variables.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dateutil import tz
from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_CONFIG_PATH = Path.home() / ".journalmate" / "notifications.json"


class NotificationSettings(BaseModel):
    """Tunables for scheduling and dispatch."""

    poll_interval_seconds: int = Field(
        300, ge=10, le=3600, description="Dispatcher poll period"
    )
    default_timezone: str = Field("UTC", description="Zone used when a user has none")
    morning_of_hour: int = Field(8, ge=0, le=23, description="Local hour for lead time 0")
    default_lead_minutes: int = Field(
        30, ge=1, le=1440, description="Lead for contexts without an interval policy"
    )
    accountability_hour: int = Field(9, ge=0, le=23)
    accountability_window_minutes: int = Field(5, ge=1, le=60)
    streak_min_days: int = Field(2, ge=1, description="Smallest streak worth protecting")
    history_enabled: bool = Field(True, description="Append history rows on dispatch")

    @field_validator("default_timezone")
    def _validate_timezone(cls, value: str) -> str:
        if not value or tz.gettz(value) is None:
            raise ValueError(f"default_timezone '{value}' is not a known IANA zone")
        return value


class Settings(BaseModel):
    """Root configuration state."""

    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


def load_settings(path: Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Load settings from disk or raise if invalid."""

    if not path.exists():
        raise FileNotFoundError(f"Settings file not found at {path}")
    payload = json.loads(path.read_text())
    try:
        return Settings.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def save_settings(settings: Settings, path: Path = DEFAULT_CONFIG_PATH) -> None:
    payload = settings.model_dump(mode="json")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2))


def bootstrap_settings(
    *,
    path: Path = DEFAULT_CONFIG_PATH,
    overrides: Optional[Dict[str, Any]] = None,
    persist: bool = True,
) -> Settings:
    """Create or load settings respecting explicit and environment overrides.

    Args:
        path: JSON settings file; created with defaults when missing
        overrides: Values for the ``notifications`` section taking precedence
            over the file
        persist: Write the resolved settings back to ``path``

    Raises:
        ValueError: If the merged configuration does not validate
    """

    if path.exists():
        settings = load_settings(path)
    else:
        settings = _default_settings()

    merged = settings.model_dump(mode="python")
    merged = _apply_overrides(merged, overrides or {})
    merged = _apply_env_overrides(merged)

    try:
        resolved = Settings.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    if persist:
        save_settings(resolved, path)
    return resolved


def _default_settings() -> Settings:
    return Settings.model_validate({"notifications": {}})


def _apply_overrides(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = base.copy()
    section = dict(merged.get("notifications", {}))
    for key, value in overrides.items():
        section[key] = value
    merged["notifications"] = section
    return merged


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    section = data.setdefault("notifications", {})
    _set_env_override(section, "poll_interval_seconds", "JOURNALMATE_POLL_INTERVAL", cast_int=True)
    _set_env_override(section, "default_timezone", "JOURNALMATE_DEFAULT_TIMEZONE")
    _set_env_override(section, "morning_of_hour", "JOURNALMATE_MORNING_OF_HOUR", cast_int=True)
    _set_env_override(section, "default_lead_minutes", "JOURNALMATE_DEFAULT_LEAD", cast_int=True)
    _set_env_override(section, "accountability_hour", "JOURNALMATE_ACCOUNTABILITY_HOUR", cast_int=True)
    _set_env_override(section, "streak_min_days", "JOURNALMATE_STREAK_MIN_DAYS", cast_int=True)
    _set_env_override(section, "history_enabled", "JOURNALMATE_HISTORY_ENABLED", cast_bool=True)
    return data


def _set_env_override(
    mapping: Dict[str, Any],
    key: str,
    env_name: str,
    *,
    cast_bool: bool = False,
    cast_int: bool = False,
) -> None:
    raw = os.getenv(env_name)
    if raw is None:
        return
    if cast_bool:
        mapping[key] = raw.lower() in {"1", "true", "yes"}
    elif cast_int:
        mapping[key] = int(raw)
    else:
        mapping[key] = raw
