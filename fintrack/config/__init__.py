"""Configuration package."""

from fintrack.config.settings import (
    ApiSettings,
    AppSettings,
    DashboardSettings,
    OcrSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "ApiSettings",
    "AppSettings",
    "DashboardSettings",
    "OcrSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
