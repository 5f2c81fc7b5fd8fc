"""
Configuration Management for Money Mates

Every tunable value, read from the environment (and .env) with pydantic-settings.

DESIGN DECISION: Each external collaborator (Sheets, Gemini) gets its own
settings group with its own env prefix, loaded only when first used, so
a device without Sheets credentials can still run on the in-memory store.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

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
        description="ID of the spreadsheet shared by both profiles"
    )

    # Sheet names within the spreadsheet
    documents_sheet_name: str = Field(
        default="Documents",
        description="Name of the sheet holding one row per document"
    )
    increments_sheet_name: str = Field(
        default="Increments",
        description="Name of the append-only sheet of pending field increments"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file is only a warning here; connecting reports it properly."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"No service account key at {v}; "
                "the shared spreadsheet will be unreachable until it exists."
            )
        return v


class GeminiSettings(BaseSettings):
    """
    Gemini text-completion configuration.

    The API key is optional here on purpose: a missing key is reported
    as a configuration error when a completion is actually requested,
    so the ledger keeps working without the coach.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash-lite",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=64,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Model temperature"
    )

    # Resilience
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single completion attempt"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts per completion (including the first)"
    )
    backoff_min_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Minimum wait between attempts"
    )
    backoff_max_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Maximum wait between attempts"
    )


class AppSettings(BaseSettings):
    """
    Device and display settings.

    Unprefixed environment variables, or the .env file.
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

    # Store
    store_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every document store operation"
    )
    sync_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="How often the shared store is polled for the partner's changes"
    )

    # Remembered login
    session_file: str = Field(
        default=str(Path.home() / ".money_mates" / "session.json"),
        description="Where the last active profile is remembered on this device"
    )
    session_ttl_days: int = Field(
        default=30,
        ge=1,
        description="How long a remembered profile stays valid"
    )

    # Display
    currency_symbol: str = Field(
        default="₱",
        description="Symbol of the single display currency"
    )
    default_cutoff_days: str = Field(
        default="15,0",
        description="Comma-separated cutoff days; 0 means last day of month"
    )

    # Coach context sizes
    coach_history_messages: int = Field(
        default=6,
        ge=0,
        description="Previous chat messages sent along with a new one"
    )
    coach_recent_transactions: int = Field(
        default=10,
        ge=0,
        description="Recent transactions included in the coach context"
    )
    coach_recent_periods: int = Field(
        default=3,
        ge=0,
        description="Recent cutoff periods included in the coach context"
    )

    @property
    def default_cutoff_days_list(self) -> list[int]:
        """Get default cutoff days as a list."""
        return [int(day.strip()) for day in self.default_cutoff_days.split(",")]

    @property
    def session_path(self) -> Path:
        """Get the session file as an expanded path."""
        return Path(self.session_file).expanduser()


class Settings(BaseSettings):
    """
    Root settings container.

    One entry point for every settings group.
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
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    The process-wide Settings instance.

    Tests that change the environment call get_settings.cache_clear().

    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check which settings groups load.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the groups that failed.
    Meant for a startup health check.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        gemini = settings.gemini
        results["gemini"] = bool(gemini.api_key)
        if not gemini.api_key:
            results["gemini_error"] = "GEMINI_API_KEY is not set"
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
