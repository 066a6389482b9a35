"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Two backends implement the same interface: local JSON files and Google Sheets.
Which one is used is decided once at startup (see charity_ledger.factory).
"""

from charity_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    RecordStore,
    StorageBackend,
    StorageError,
)
from charity_ledger.services.storage.local_json import (
    LocalJSONAuditStorage,
    LocalJSONBackend,
    LocalJSONRecordStore,
)
from charity_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBackend,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStore",
    "StorageBackend",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Local JSON implementation
    "LocalJSONAuditStorage",
    "LocalJSONBackend",
    "LocalJSONRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBackend",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
