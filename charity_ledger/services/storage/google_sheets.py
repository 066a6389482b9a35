"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the remote storage backend because:
1. Trustees can view the charity's books directly in Sheets
2. No database server to run or pay for
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a small charity is fine)
- No transactions; multi-row ledger updates go out as one batch_update
- Limited query capabilities (we filter in Python)

Layout: one worksheet per collection, header row = record field names,
one record per row. Values are written RAW as strings and parsed back
through the record models.
"""

from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError
from gspread.utils import rowcol_to_a1
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from charity_ledger.config import GoogleSheetsSettings, get_settings
from charity_ledger.models.audit import AUDIT_COLUMNS, AuditEvent
from charity_ledger.models.records import Collection
from charity_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    RecordStore,
    StorageBackend,
    StorageError,
    T,
)


logger = structlog.get_logger(__name__)

# Retry transient Google API failures only
sheets_retry = retry(
    retry=retry_if_exception_type(APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet whose first row is the given header."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title, columns=len(columns))

        self._worksheets[title] = sheet
        return sheet


class GoogleSheetsRecordStore(RecordStore[T]):
    """
    Google Sheets implementation of one record collection.

    Rows keep the order they were appended in (oldest first).
    """

    def __init__(
        self,
        collection: Collection,
        client: GoogleSheetsClient,
        worksheet_title: Optional[str] = None,
    ):
        super().__init__(collection)
        self._client = client
        self.worksheet_title = worksheet_title or collection.value
        self.columns = list(self.record_model.model_fields)
        self._id_index = self.columns.index("id")

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self.worksheet_title, self.columns)

    def _record_to_row(self, record: T) -> list[str]:
        """Convert a record to a spreadsheet row in column order."""
        data = record.model_dump(mode="json")
        row = []
        for column in self.columns:
            value = data.get(column)
            if value is None:
                row.append("")
            elif isinstance(value, bool):
                row.append("true" if value else "false")
            else:
                row.append(str(value))
        return row

    def _row_to_record(self, row: list[str]) -> T:
        """Convert a spreadsheet row to a record. Empty cells take model defaults."""
        data: dict[str, Any] = {}
        for idx, column in enumerate(self.columns):
            if idx < len(row) and row[idx] != "":
                data[column] = row[idx]
        return self._validate(data)

    @sheets_retry
    def _fetch_rows(self) -> list[list[str]]:
        # Skip the header row
        return self._sheet().get_all_values()[1:]

    def _row_id(self, row: list[str]) -> str:
        return row[self._id_index] if len(row) > self._id_index else ""

    def _find_row(self, rows: list[list[str]], record_id: str) -> Optional[int]:
        """1-based sheet row number of a record, accounting for the header."""
        for idx, row in enumerate(rows, start=2):
            if self._row_id(row) == record_id:
                return idx
        return None

    def _row_range(self, row_number: int) -> str:
        start = rowcol_to_a1(row_number, 1)
        end = rowcol_to_a1(row_number, len(self.columns))
        return f"{start}:{end}"

    async def list_all(self) -> list[T]:
        try:
            rows = self._fetch_rows()
            return [self._row_to_record(row) for row in rows if self._row_id(row)]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list {self.collection.value}: {e}") from e

    async def get(self, record_id: str) -> Optional[T]:
        try:
            for row in self._fetch_rows():
                if self._row_id(row) == record_id:
                    return self._row_to_record(row)
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {self.collection.value} record: {e}") from e

    @sheets_retry
    def _append_row(self, row: list[str]) -> None:
        self._sheet().append_row(row, value_input_option="RAW")

    async def create(self, values: dict[str, Any]) -> T:
        record = self._build_new(values)
        try:
            self._append_row(self._record_to_row(record))
        except Exception as e:
            raise StorageError(f"Failed to save {self.collection.value} record: {e}") from e
        return record

    async def update(self, record_id: str, values: dict[str, Any]) -> T:
        updated = await self.update_many({record_id: values})
        return updated[0]

    async def update_many(self, changes: dict[str, dict[str, Any]]) -> list[T]:
        if not changes:
            return []
        try:
            rows = self._fetch_rows()
            batch = []
            updated = []
            for record_id, values in changes.items():
                row_number = self._find_row(rows, record_id)
                if row_number is None:
                    raise NotFoundError(self.collection, record_id)
                existing = self._row_to_record(rows[row_number - 2])
                record = self._apply_changes(existing, values)
                batch.append({
                    "range": self._row_range(row_number),
                    "values": [self._record_to_row(record)],
                })
                updated.append(record)

            self._batch_update(batch)
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {self.collection.value}: {e}") from e

    @sheets_retry
    def _batch_update(self, batch: list[dict]) -> None:
        self._sheet().batch_update(batch, value_input_option="RAW")

    async def delete(self, record_id: str) -> None:
        try:
            rows = self._fetch_rows()
            row_number = self._find_row(rows, record_id)
            if row_number is None:
                raise NotFoundError(self.collection, record_id)
            self._sheet().delete_rows(row_number)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {self.collection.value} record: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: GoogleSheetsClient, sheet_title: Optional[str] = None):
        self._client = client
        self._sheet_title = sheet_title or client.settings.audit_sheet_name

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._sheet_title, AUDIT_COLUMNS)

    @sheets_retry
    def _append_row(self, row: list[str]) -> None:
        self._sheet().append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append_row(event.to_row())
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e))
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            all_rows = self._sheet().get_all_values()[1:]

            events = []
            for row in all_rows:
                if row and row[0]:
                    try:
                        events.append(AuditEvent.from_row(row))
                    except ValueError:
                        continue

            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e


class GoogleSheetsBackend(StorageBackend):
    """All collections as worksheets inside one spreadsheet."""

    name = "google_sheets"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self.client = client or GoogleSheetsClient()

    def _open(self, collection: Collection) -> RecordStore:
        title = f"{self.client.settings.worksheet_prefix}{collection.value}"
        return GoogleSheetsRecordStore(collection, self.client, title)

    def audit_storage(self) -> AuditStorageInterface:
        return GoogleSheetsAuditStorage(self.client)
