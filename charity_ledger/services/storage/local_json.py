"""
Local JSON File Storage Implementation

DESIGN DECISION: When no remote store is configured, records live in
plain JSON files on the machine running the app:
1. Zero setup for a volunteer trying the app out
2. Files are human readable and easy to back up
3. One file per collection, named by a versioned key, so a shape change
   can move to a new key without clobbering old data

Each file holds a JSON array of records, newest first. Every write
replaces the whole file atomically (write to a temp file, then rename),
so a crash never leaves a half-written collection behind.

TRADEOFFS:
- Whole-file rewrite per mutation (fine for a small charity's volume)
- Single process only; there is no cross-process locking
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog

from charity_ledger.models.audit import AuditEvent
from charity_ledger.models.records import Collection
from charity_ledger.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    RecordStore,
    StorageBackend,
    StorageError,
    T,
)


logger = structlog.get_logger(__name__)


class LocalJSONRecordStore(RecordStore[T]):
    """
    One collection stored as a JSON array file.

    Newly created records are placed at the front of the array.
    """

    def __init__(self, collection: Collection, data_dir: Path):
        super().__init__(collection)
        self._data_dir = Path(data_dir)
        self.path = self._data_dir / f"{collection.storage_key}.json"

    def _read_all(self) -> list[T]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        if not isinstance(raw, list):
            raise StorageError(f"Expected a JSON array in {self.path}")

        return [self._validate(item) for item in raw]

    def _write_all(self, records: list[T]) -> None:
        payload = [record.model_dump(mode="json") for record in records]
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._data_dir,
                prefix=f".{self.collection.storage_key}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e

        logger.debug(
            "collection_written",
            collection=self.collection.value,
            record_count=len(records),
        )

    @staticmethod
    def _index_of(records: list[T], record_id: str) -> Optional[int]:
        for idx, record in enumerate(records):
            if record.id == record_id:
                return idx
        return None

    async def list_all(self) -> list[T]:
        return self._read_all()

    async def get(self, record_id: str) -> Optional[T]:
        records = self._read_all()
        idx = self._index_of(records, record_id)
        return records[idx] if idx is not None else None

    async def create(self, values: dict[str, Any]) -> T:
        records = self._read_all()
        record = self._build_new(values)
        records.insert(0, record)
        self._write_all(records)
        return record

    async def update(self, record_id: str, values: dict[str, Any]) -> T:
        updated = await self.update_many({record_id: values})
        return updated[0]

    async def update_many(self, changes: dict[str, dict[str, Any]]) -> list[T]:
        if not changes:
            return []

        records = self._read_all()
        updated = []
        for record_id, values in changes.items():
            idx = self._index_of(records, record_id)
            if idx is None:
                raise NotFoundError(self.collection, record_id)
            records[idx] = self._apply_changes(records[idx], values)
            updated.append(records[idx])

        self._write_all(records)
        return updated

    async def delete(self, record_id: str) -> None:
        records = self._read_all()
        idx = self._index_of(records, record_id)
        if idx is None:
            raise NotFoundError(self.collection, record_id)
        del records[idx]
        self._write_all(records)


class LocalJSONAuditStorage(AuditStorageInterface):
    """
    Audit events appended one JSON object per line.

    Append-only: the file is never rewritten.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(event.model_dump_json())
                f.write("\n")
            return True
        except OSError as e:
            logger.warning("audit_append_failed", error=str(e), path=str(self.path))
            return False

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        if not self.path.exists():
            return []
        events = []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        events.append(AuditEvent.model_validate_json(line))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read audit log {self.path}: {e}") from e

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]


class LocalJSONBackend(StorageBackend):
    """All collections as JSON files inside one data directory."""

    name = "local"

    def __init__(self, data_dir: Path, audit_file_name: str = "charity.audit.v1.jsonl"):
        super().__init__()
        self.data_dir = Path(data_dir)
        self._audit_file_name = audit_file_name

    def _open(self, collection: Collection) -> RecordStore:
        return LocalJSONRecordStore(collection, self.data_dir)

    def audit_storage(self) -> AuditStorageInterface:
        return LocalJSONAuditStorage(self.data_dir / self._audit_file_name)
