"""
Tests for the Google Sheets backend.

No network access: worksheets are MagicMocks backed by in-memory rows.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from gspread.utils import a1_to_rowcol

from charity_ledger.audit import AuditLogger
from charity_ledger.config import AppSettings
from charity_ledger.ledger import LedgerService
from charity_ledger.models import AuditEventBuilder, Collection
from charity_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBackend,
    GoogleSheetsRecordStore,
    NotFoundError,
    StorageError,
)
from charity_ledger.validation import RecordValidator


DAY = date(2024, 3, 1)


def make_sheet(rows: list[list[str]]) -> MagicMock:
    """A worksheet mock whose calls read and write the given rows."""
    sheet = MagicMock()
    sheet.get_all_values.side_effect = lambda: [list(row) for row in rows]
    sheet.append_row.side_effect = lambda row, value_input_option=None: rows.append(list(row))

    def batch_update(batch, value_input_option=None):
        for item in batch:
            row_number, _ = a1_to_rowcol(item["range"].split(":")[0])
            rows[row_number - 1] = list(item["values"][0])

    sheet.batch_update.side_effect = batch_update
    sheet.delete_rows.side_effect = lambda row_number: rows.pop(row_number - 1)
    return sheet


def make_client() -> MagicMock:
    """A client whose worksheets are created on first use, header first."""
    client = MagicMock()
    client.settings.worksheet_prefix = "test_"
    client.settings.audit_sheet_name = "AuditLog"
    client.sheets = {}
    client.rows = {}

    def get_worksheet(title, columns):
        if title not in client.sheets:
            client.rows[title] = [list(columns)]
            client.sheets[title] = make_sheet(client.rows[title])
        return client.sheets[title]

    client.get_worksheet.side_effect = get_worksheet
    return client


def expense_values(**overrides) -> dict:
    values = {
        "name": "Rice",
        "unit": "kg",
        "price": Decimal("2.5"),
        "quantity": Decimal("4"),
        "expense_date": DAY,
    }
    values.update(overrides)
    return values


class TestGoogleSheetsRecordStore:

    def test_create_appends_row_in_header_order(self):
        async def scenario():
            client = make_client()
            store = GoogleSheetsRecordStore(Collection.EXPENSES, client, "expenses")

            record = await store.create(expense_values())

            header, row = client.rows["expenses"]
            assert header == store.columns
            assert row[header.index("id")] == record.id
            assert row[header.index("price")] == "2.5"
            assert row[header.index("notes")] == ""
            client.sheets["expenses"].append_row.assert_called_once()

        asyncio.run(scenario())

    def test_list_parses_rows_back_into_records(self):
        async def scenario():
            client = make_client()
            store = GoogleSheetsRecordStore(Collection.EXPENSES, client, "expenses")
            created = await store.create(expense_values(notes="bulk"))

            records = await store.list_all()

            assert len(records) == 1
            assert records[0].id == created.id
            assert records[0].price == Decimal("2.5")
            assert records[0].expense_date == DAY
            assert records[0].notes == "bulk"

        asyncio.run(scenario())

    def test_booleans_round_trip(self):
        async def scenario():
            client = make_client()
            store = GoogleSheetsRecordStore(Collection.FAMILY_MEMBERS, client, "members")
            await store.create({"name": "Ahmed family", "is_active": False, "payment_day": 5})

            member = (await store.list_all())[0]

            assert member.is_active is False
            assert member.payment_day == 5

        asyncio.run(scenario())

    def test_update_many_is_one_batch(self):
        async def scenario():
            client = make_client()
            store = GoogleSheetsRecordStore(Collection.EXPENSES, client, "expenses")
            first = await store.create(expense_values())
            second = await store.create(expense_values(name="Oil"))

            updated = await store.update_many({
                first.id: {"price": Decimal("3")},
                second.id: {"quantity": Decimal("1")},
            })

            sheet = client.sheets["expenses"]
            sheet.batch_update.assert_called_once()
            assert len(sheet.batch_update.call_args.args[0]) == 2
            assert [r.id for r in updated] == [first.id, second.id]
            stored = {r.id: r for r in await store.list_all()}
            assert stored[first.id].price == Decimal("3")
            assert stored[first.id].created_at == first.created_at
            assert stored[second.id].quantity == Decimal("1")

        asyncio.run(scenario())

    def test_update_unknown_writes_nothing(self):
        async def scenario():
            client = make_client()
            store = GoogleSheetsRecordStore(Collection.EXPENSES, client, "expenses")
            record = await store.create(expense_values())

            with pytest.raises(NotFoundError):
                await store.update_many({
                    record.id: {"price": Decimal("3")},
                    "missing": {"price": Decimal("3")},
                })

            client.sheets["expenses"].batch_update.assert_not_called()

        asyncio.run(scenario())

    def test_delete(self):
        async def scenario():
            client = make_client()
            store = GoogleSheetsRecordStore(Collection.EXPENSES, client, "expenses")
            keep = await store.create(expense_values(name="Keep"))
            drop = await store.create(expense_values(name="Drop"))

            await store.delete(drop.id)

            assert [r.id for r in await store.list_all()] == [keep.id]
            client.sheets["expenses"].delete_rows.assert_called_once_with(3)
            with pytest.raises(NotFoundError):
                await store.delete(drop.id)

        asyncio.run(scenario())

    def test_get_missing_returns_none(self):
        async def scenario():
            store = GoogleSheetsRecordStore(Collection.EXPENSES, make_client(), "expenses")
            assert await store.get("missing") is None

        asyncio.run(scenario())

    def test_read_failure_becomes_storage_error(self):
        async def scenario():
            client = MagicMock()
            client.get_worksheet.return_value.get_all_values.side_effect = RuntimeError("boom")
            store = GoogleSheetsRecordStore(Collection.EXPENSES, client, "expenses")

            with pytest.raises(StorageError):
                await store.list_all()

        asyncio.run(scenario())

    def test_unparseable_row_becomes_storage_error(self):
        async def scenario():
            client = make_client()
            store = GoogleSheetsRecordStore(Collection.EXPENSES, client, "expenses")
            await store.create(expense_values())
            row = client.rows["expenses"][1]
            row[store.columns.index("price")] = "not-a-number"

            with pytest.raises(StorageError):
                await store.list_all()

        asyncio.run(scenario())


class TestGoogleSheetsBackend:

    def test_worksheet_titles_use_prefix(self):
        client = make_client()
        backend = GoogleSheetsBackend(client)

        store = backend.collection(Collection.SALES)

        assert store.worksheet_title == "test_sales"
        assert backend.collection(Collection.SALES) is store

    def test_ledger_balances_on_sheets(self):
        async def scenario():
            backend = GoogleSheetsBackend(make_client())
            ledger = LedgerService(
                backend,
                audit_logger=AuditLogger(),
                validator=RecordValidator(AppSettings()),
            )

            first = await ledger.create_bank_transaction(
                {"type": "cash_received", "amount": "100", "transaction_date": DAY}
            )
            second = await ledger.create_bank_transaction(
                {"type": "cash_withdrawn", "amount": "30", "transaction_date": DAY}
            )
            await ledger.create_bank_transaction(
                {"type": "cash_received", "amount": "50", "transaction_date": DAY}
            )
            await ledger.update_bank_transaction(
                second.id, {"type": "cash_withdrawn", "amount": "10", "transaction_date": DAY}
            )
            await ledger.delete_bank_transaction(first.id)

            transactions = await ledger.list_bank_transactions()
            assert [t.running_balance for t in transactions] == [Decimal("-10"), Decimal("40")]

        asyncio.run(scenario())


class TestGoogleSheetsAuditStorage:

    def test_append_and_read_back(self):
        async def scenario():
            client = make_client()
            storage = GoogleSheetsAuditStorage(client)
            event = AuditEventBuilder.record_created("sales", "s1")

            assert await storage.append_event(event)

            events = await storage.get_recent_events()
            assert [e.event_id for e in events] == [event.event_id]

        asyncio.run(scenario())

    def test_append_failure_returns_false(self):
        async def scenario():
            client = MagicMock()
            client.get_worksheet.side_effect = RuntimeError("offline")
            storage = GoogleSheetsAuditStorage(client, "AuditLog")

            assert await storage.append_event(AuditEventBuilder.record_deleted("sales", "s1")) is False

        asyncio.run(scenario())
