"""Services package."""

from charity_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBackend,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    LocalJSONAuditStorage,
    LocalJSONBackend,
    LocalJSONRecordStore,
    NotFoundError,
    RecordStore,
    StorageBackend,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBackend",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "LocalJSONAuditStorage",
    "LocalJSONBackend",
    "LocalJSONRecordStore",
    "NotFoundError",
    "RecordStore",
    "StorageBackend",
    "StorageError",
]
