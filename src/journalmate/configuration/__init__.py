"""Configuration loading utilities for JournalMate."""

from .settings import (
    DEFAULT_CONFIG_PATH,
    NotificationSettings,
    Settings,
    bootstrap_settings,
    load_settings,
    save_settings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "NotificationSettings",
    "Settings",
    "bootstrap_settings",
    "load_settings",
    "save_settings",
]
