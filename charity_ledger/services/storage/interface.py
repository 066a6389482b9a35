"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Choose Google Sheets or local JSON files at startup without touching
   business logic
2. Use throwaway local storage in tests
3. Keep the ledger rules decoupled from how rows are laid out

The interface is intentionally simple - we're not building a full ORM.
Each collection is an ordered sequence of records with keyed CRUD.
The order returned by list_all() is store-defined; callers that need a
particular order must sort.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar
from uuid import uuid4

from charity_ledger.models.audit import AuditEvent
from charity_ledger.models.records import Collection, RecordBase


T = TypeVar("T", bound=RecordBase)

# Fields the store owns; callers can never overwrite them
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


def new_record_id() -> str:
    """Fresh opaque identifier for a record."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore(ABC, Generic[T]):
    """
    Abstract interface for one collection of records.

    Any storage implementation (Google Sheets, local files, etc.)
    must implement these methods. Values passed to create/update are
    plain field dicts; the store assigns id and timestamps.
    """

    def __init__(self, collection: Collection):
        self.collection = collection
        self.record_model: type[T] = collection.record_model

    @abstractmethod
    async def list_all(self) -> list[T]:
        """
        Return every record in the collection.

        Raises:
            StorageError: If the collection cannot be read
        """
        pass

    @abstractmethod
    async def get(self, record_id: str) -> Optional[T]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, values: dict[str, Any]) -> T:
        """
        Store a new record.

        Args:
            values: Field values without id/created_at/updated_at

        Returns:
            The stored record with identity and timestamps assigned

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update(self, record_id: str, values: dict[str, Any]) -> T:
        """
        Replace the given fields of an existing record and bump updated_at.

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def update_many(self, changes: dict[str, dict[str, Any]]) -> list[T]:
        """
        Apply several updates in a single write.

        Either every change is applied or none is.

        Args:
            changes: Mapping of record ID to the field values to replace

        Returns:
            The updated records, in the iteration order of changes

        Raises:
            NotFoundError: If any record doesn't exist (nothing is written)
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        """
        Permanently delete a record.

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If delete fails
        """
        pass

    def _build_new(self, values: dict[str, Any]) -> T:
        """Validate values into a new record with fresh identity."""
        now = utc_now()
        data = {k: v for k, v in values.items() if k not in IMMUTABLE_FIELDS}
        data.update(id=new_record_id(), created_at=now, updated_at=now)
        return self._validate(data)

    def _apply_changes(self, existing: T, values: dict[str, Any]) -> T:
        """Merge values over an existing record, keeping identity."""
        data = existing.model_dump()
        data.update({k: v for k, v in values.items() if k not in IMMUTABLE_FIELDS})
        data["updated_at"] = utc_now()
        return self._validate(data)

    def _validate(self, data: dict[str, Any]) -> T:
        try:
            return self.record_model.model_validate(data)
        except ValueError as e:
            raise StorageError(
                f"Invalid {self.collection.value} record: {e}"
            ) from e


class StorageBackend(ABC):
    """
    A family of record stores sharing one physical backend.

    Exactly one backend is active per process; it is chosen from
    configuration when the application starts.
    """

    name: str = "abstract"

    def __init__(self):
        self._stores: dict[Collection, RecordStore] = {}
        self._stores_guard = threading.Lock()

    def collection(self, collection: Collection) -> RecordStore:
        """Get (and cache) the store for one collection. Safe across threads."""
        with self._stores_guard:
            if collection not in self._stores:
                self._stores[collection] = self._open(collection)
            return self._stores[collection]

    @abstractmethod
    def _open(self, collection: Collection) -> RecordStore:
        pass

    @abstractmethod
    def audit_storage(self) -> "AuditStorageInterface":
        """Audit log storage living alongside the records."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Record not found in storage."""

    def __init__(self, collection: Collection, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection.value} record not found: {record_id}")


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
