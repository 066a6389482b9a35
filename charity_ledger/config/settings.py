"""
Configuration Management for Charity Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The storage backend is chosen once from these settings at startup;
nothing else in the code branches on which backend is active.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageBackendKind(str, Enum):
    """Which record store implementation to use."""
    AUTO = "auto"                    # Google Sheets if configured, else local
    LOCAL = "local"
    GOOGLE_SHEETS = "google_sheets"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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

    # One worksheet per collection, named <prefix><collection>
    worksheet_prefix: str = Field(
        default="",
        description="Prefix added to every collection worksheet name"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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


class LocalStorageSettings(BaseSettings):
    """Local JSON file storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding one JSON file per collection"
    )
    audit_file_name: str = Field(
        default="charity.audit.v1.jsonl",
        description="Append-only audit log file inside data_dir"
    )


class StorageSettings(BaseSettings):
    """Storage backend selection."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: StorageBackendKind = Field(
        default=StorageBackendKind.AUTO,
        description="auto, local or google_sheets"
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
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    # Display
    currency_symbol: str = Field(
        default="$",
        max_length=5,
        description="Symbol shown in front of amounts in the UI"
    )

    # Validation thresholds
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a record date can be before we warn"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def local_storage(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    def google_sheets_configured(self) -> bool:
        """True when the Google Sheets settings load without errors."""
        try:
            _ = self.google_sheets
        except ValidationError:
            return False
        return True

    def resolve_backend(self) -> StorageBackendKind:
        """
        Resolve AUTO into a concrete backend.

        AUTO uses Google Sheets only when it is fully configured,
        and falls back to local files otherwise.
        """
        backend = self.storage.backend
        if backend != StorageBackendKind.AUTO:
            return backend
        if self.google_sheets_configured():
            return StorageBackendKind.GOOGLE_SHEETS
        return StorageBackendKind.LOCAL


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

    try:
        _ = settings.app
        results["app"] = True
    except ValidationError as e:
        results["app"] = False
        results["app_error"] = str(e)

    try:
        _ = settings.storage
        results["storage"] = True
    except ValidationError as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.local_storage
        results["local_storage"] = True
    except ValidationError as e:
        results["local_storage"] = False
        results["local_storage_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except ValidationError as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    return results
