"""
Configuration Management for DinDin

Every external collaborator (spreadsheet, Gemini, session tokens) gets its
own pydantic-settings class read from environment variables or `.env`.

DESIGN DECISION: Sub-settings are built lazily by the root `Settings`.
A missing Gemini key or spreadsheet id only disables that collaborator
(see `src.orchestrator`); it never prevents the API from starting.
"""

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets data store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding the household data"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator("credentials_path")
    @classmethod
    def check_credentials_file(cls, v: str) -> str:
        """The file may be mounted after startup, so a missing one only warns."""
        if not Path(v).exists():
            warnings.warn(f"Service account file {v} does not exist yet.")
        return v


class GeminiSettings(BaseSettings):
    """Gemini vision model used to read bill slips and card statements."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=4096,
        ge=256,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AuthSettings(BaseSettings):
    """Session token verification (Supabase-issued JWTs)."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        extra="ignore"
    )

    jwt_secret: str = Field(
        ...,
        min_length=16,
        description="Secret used to verify session tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Signing algorithm of session tokens"
    )
    jwt_audience: str = Field(
        default="authenticated",
        description="Expected audience claim"
    )


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

    # Document upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_upload_types: str = Field(
        default="image/jpeg,image/png,image/gif,image/webp,application/pdf",
        description="Comma-separated list of accepted upload MIME types"
    )

    # Backups
    backup_filename_prefix: str = Field(
        default="dindin-backup",
        description="Prefix of downloaded backup files"
    )

    # Dashboard
    goal_alert_limit: int = Field(
        default=3,
        ge=1,
        le=20,
        description="How many goal alerts the dashboard shows"
    )

    @property
    def supported_types_list(self) -> list[str]:
        """Get supported upload types as a list."""
        return [t.strip().lower() for t in self.supported_upload_types.split(",")]

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
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "gemini", "auth", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
