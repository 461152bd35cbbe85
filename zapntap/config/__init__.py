"""Configuration package."""

from zapntap.config.settings import (
    DEFAULT_ELECTRICITY_RATE,
    AppSettings,
    ChargingSettings,
    CloudinarySettings,
    GoogleSheetsSettings,
    Settings,
    TesseractSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_ELECTRICITY_RATE",
    "AppSettings",
    "ChargingSettings",
    "CloudinarySettings",
    "GoogleSheetsSettings",
    "Settings",
    "TesseractSettings",
    "get_settings",
    "validate_all_settings",
]
