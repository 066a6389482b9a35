"""Configuration package."""

from charity_ledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LocalStorageSettings,
    Settings,
    StorageBackendKind,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LocalStorageSettings",
    "Settings",
    "StorageBackendKind",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
