"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    AuthSettings,
    CloudinarySettings,
    GoogleSheetsSettings,
    MindeeSettings,
    Settings,
    WorkerSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "CloudinarySettings",
    "GoogleSheetsSettings",
    "MindeeSettings",
    "Settings",
    "WorkerSettings",
    "get_settings",
    "validate_all_settings",
]
