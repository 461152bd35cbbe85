"""
Configuration Management for ZapNTap

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ELECTRICITY_RATE = 0.6402


class ChargingSettings(BaseSettings):
    """Billing defaults for new charging sessions."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGING_",
        extra="ignore"
    )

    electricity_rate: float = Field(
        default=DEFAULT_ELECTRICITY_RATE,
        gt=0,
        description="Price per kWh used to cost new sessions"
    )
    default_previous_reading: float = Field(
        default=0.0,
        ge=0,
        description="Meter reading used as the baseline of the very first session"
    )
    currency: str = Field(
        default="ILS",
        max_length=3,
        description="Currency code the rate is expressed in"
    )


class TesseractSettings(BaseSettings):
    """Tesseract OCR engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TESSERACT_",
        extra="ignore"
    )

    cmd: Optional[str] = Field(
        default=None,
        description="Path to the tesseract binary (uses PATH when unset)"
    )
    language: str = Field(
        default="eng",
        description="Language model used for dictionary-aware correction"
    )
    # Accurate mode: LSTM engine, sparse text
    oem: int = Field(
        default=1,
        ge=0,
        le=3,
        description="OCR engine mode"
    )
    psm: int = Field(
        default=11,
        ge=0,
        le=13,
        description="Page segmentation mode"
    )
    upscale_min_width: int = Field(
        default=1000,
        ge=0,
        description="Images narrower than this are upscaled before recognition"
    )


class CloudinarySettings(BaseSettings):
    """Cloudinary photo storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="zapntap/meter_photos",
        description="Folder that meter photos are uploaded into"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    sessions_sheet_name: str = Field(
        default="Sessions",
        description="Name of the sheet for charging sessions"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Backends
    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Where charging sessions are persisted"
    )
    photo_backend: Literal["local", "cloudinary"] = Field(
        default="local",
        description="Where meter photos are stored"
    )
    photos_dir: str = Field(
        default="photos",
        description="Directory for locally stored meter photos"
    )
    preferences_path: Optional[str] = Field(
        default="preferences.json",
        description="JSON file holding the rate and default previous reading"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum photo size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp,heic",
        description="Comma-separated list of supported image formats"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def charging(self) -> ChargingSettings:
        return ChargingSettings()

    @property
    def tesseract(self) -> TesseractSettings:
        return TesseractSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for each section that failed to load.
    Only the sections needed by the configured backends are checked.
    """
    results = {}

    settings = get_settings()

    sections = ["app", "charging", "tesseract"]
    try:
        app = settings.app
    except Exception:
        app = None
    if app is not None:
        if app.storage_backend == "google_sheets":
            sections.append("google_sheets")
        if app.photo_backend == "cloudinary":
            sections.append("cloudinary")

    for name in sections:
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
