"""
Ledger Maintenance Service

Every write to the books goes through LedgerService. It owns the rules
that keep derived values consistent with the inputs they come from:

1. Sales: weight, expected cash and arrears are resolved on every write.
   Arrears is never taken from the caller.
2. Bank transactions: running balances are recomputed over the whole
   collection, in chronological order, after every create/update/delete.
3. Consumed items: unit and price are copied from the source expense or
   custom item at write time and never re-synced afterwards.

DESIGN DECISION: One threading.Lock per collection.
Every mutation, and every read of the bank collection, holds the lock,
so no caller ever sees a half-recomputed ledger. One service is shared by
every Streamlit session thread, each running its own event loop, so the
lock has to hold across threads and loops. A contended acquire waits in a
worker thread, never on the event loop. The store itself is assumed to
have a single writer (this process).

Failures:
- ValidationError: bad input, nothing written, do not retry
- NotFoundError: update/delete of an unknown id
- StorageError: propagated unchanged, no partial-state cleanup
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Optional, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from charity_ledger.audit import AuditLogger
from charity_ledger.ledger.calculator import (
    chronological_order,
    compute_arrears,
    compute_expected_cash,
    compute_running_balances,
    compute_weight_sold,
)
from charity_ledger.models.records import (
    BankTransaction,
    BankTransactionInput,
    Collection,
    CustomItem,
    CustomItemInput,
    CustomProduct,
    CustomProductInput,
    FamilyMember,
    FamilyMemberInput,
    FamilyPayment,
    FamilyPaymentInput,
    GeneralExpense,
    GeneralExpenseInput,
    InputBase,
    ItemConsumed,
    ItemConsumedInput,
    MiscExpense,
    MiscExpenseInput,
    Product,
    ProductInput,
    RecordBase,
    Sale,
    SaleInput,
    SourceType,
)
from charity_ledger.models.validation import ValidationIssue, ValidationResult
from charity_ledger.services.storage import (
    NotFoundError,
    RecordStore,
    StorageBackend,
    StorageError,
)
from charity_ledger.services.storage.interface import utc_now
from charity_ledger.validation import RecordValidator, ValidationError, issues_from_pydantic


logger = structlog.get_logger(__name__)

InputData = Union[BaseModel, dict[str, Any]]

# Input model and validator method for each collection
_RULES: dict[Collection, tuple[type[InputBase], str]] = {
    Collection.PRODUCTS: (ProductInput, "validate_product"),
    Collection.SALES: (SaleInput, "validate_sale"),
    Collection.EXPENSES: (GeneralExpenseInput, "validate_general_expense"),
    Collection.MISC_EXPENSES: (MiscExpenseInput, "validate_misc_expense"),
    Collection.CUSTOM_ITEMS: (CustomItemInput, "validate_custom_item"),
    Collection.CUSTOM_PRODUCTS: (CustomProductInput, "validate_custom_product"),
    Collection.CONSUMED_ITEMS: (ItemConsumedInput, "validate_consumed_item"),
    Collection.BANK_TRANSACTIONS: (BankTransactionInput, "validate_bank_transaction"),
    Collection.FAMILY_PAYMENTS: (FamilyPaymentInput, "validate_family_payment"),
    Collection.FAMILY_MEMBERS: (FamilyMemberInput, "validate_family_member"),
}

_SOURCE_COLLECTIONS = {
    SourceType.GENERAL_EXPENSE: Collection.EXPENSES,
    SourceType.CUSTOM_ITEM: Collection.CUSTOM_ITEMS,
}


class LedgerService:
    """
    Keeps derived ledger values consistent with their inputs.

    Inputs may be the collection's *Input model or a plain dict of its
    fields (as a form submits them). Unknown keys, including any
    caller-supplied arrears or running balance, are ignored.
    """

    def __init__(
        self,
        backend: StorageBackend,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._backend = backend
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or RecordValidator()
        self._locks: dict[Collection, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _store(self, collection: Collection) -> RecordStore:
        return self._backend.collection(collection)

    def _lock(self, collection: Collection) -> threading.Lock:
        with self._locks_guard:
            if collection not in self._locks:
                self._locks[collection] = threading.Lock()
            return self._locks[collection]

    @asynccontextmanager
    async def _locked(self, collection: Collection) -> AsyncIterator[None]:
        """Hold the collection's lock for the duration of the block."""
        lock = self._lock(collection)
        if not lock.acquire(blocking=False):
            waiter = asyncio.ensure_future(asyncio.to_thread(lock.acquire))
            try:
                await asyncio.shield(waiter)
            except asyncio.CancelledError:
                # The worker thread still gets the lock; hand it straight back
                waiter.add_done_callback(lambda _: lock.release())
                raise
        try:
            yield
        finally:
            lock.release()

    @asynccontextmanager
    async def _storage_guard(self, collection: Collection, operation: str) -> AsyncIterator[None]:
        """Audit store failures on their way out. NotFoundError is the caller's problem."""
        try:
            yield
        except NotFoundError:
            raise
        except StorageError as e:
            await self._audit.log_storage_error(
                entity_type=collection.value,
                operation=operation,
                error_message=str(e),
            )
            raise

    async def _rejection(
        self,
        collection: Collection,
        issues: list[ValidationIssue],
        record_id: Optional[str] = None,
    ) -> ValidationError:
        """Audit a validation failure and build the exception to raise."""
        await self._audit.log_validation_failed(
            entity_type=collection.value,
            issues=[issue.model_dump() for issue in issues],
            entity_id=record_id,
        )
        return ValidationError(collection.value, issues)

    async def _parse(
        self,
        collection: Collection,
        data: InputData,
        record_id: Optional[str] = None,
    ) -> InputBase:
        """Coerce raw input into the collection's input model."""
        model, _ = _RULES[collection]
        if isinstance(data, model):
            return data
        if isinstance(data, BaseModel):
            data = data.model_dump()
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise await self._rejection(collection, issues_from_pydantic(e), record_id) from e

    async def _resolve(
        self,
        collection: Collection,
        data: InputBase,
    ) -> tuple[dict[str, Any], ValidationResult]:
        """
        Turn a parsed input into storable field values.

        Returns the values and the validation result; the values are only
        meaningful when the result has no errors.
        """
        if collection == Collection.SALES:
            return self._resolve_sale(data)
        if collection == Collection.CONSUMED_ITEMS:
            data, missing = await self._snapshot_source(data)
            if missing is not None:
                return data.model_dump(), ValidationResult(
                    entity_type=collection.value, issues=[missing]
                )
        _, method = _RULES[collection]
        result = getattr(self._validator, method)(data)
        return data.model_dump(), result

    def _resolve_sale(self, data: SaleInput) -> tuple[dict[str, Any], ValidationResult]:
        weight = data.weight
        if data.weight_before_sale is not None and data.weight_after_sale is not None:
            weight = compute_weight_sold(data.weight_before_sale, data.weight_after_sale)

        expected_cash = data.expected_cash
        if expected_cash is None and weight is not None:
            expected_cash = compute_expected_cash(weight, data.price_per_kg)

        result = self._validator.validate_sale(data, weight, expected_cash)
        values = data.model_dump()
        values["weight"] = weight
        values["expected_cash"] = expected_cash
        if expected_cash is not None:
            values["arrears"] = compute_arrears(
                expected_cash,
                data.received_cash,
                data.topup,
                data.charity,
                data.credit,
            )
        return values, result

    async def _snapshot_source(
        self,
        data: ItemConsumedInput,
    ) -> tuple[ItemConsumedInput, Optional[ValidationIssue]]:
        """
        Copy unit and price from the source record when not given.

        Returns the input and, when the source does not exist, the issue
        describing it.
        """
        if not data.source_id:
            return data, None

        source_collection = _SOURCE_COLLECTIONS[data.source_type]
        source = await self._store(source_collection).get(data.source_id)
        if source is None:
            return data, ValidationIssue(
                field="source_id",
                issue_type="not_found",
                message=f"No {source_collection.value} record with id {data.source_id}",
                severity="error",
            )

        updates: dict[str, Any] = {}
        if data.unit is None:
            updates["unit"] = source.unit
        if data.price is None and isinstance(source, GeneralExpense):
            updates["price"] = source.price
        return (data.model_copy(update=updates) if updates else data), None

    async def _prepare(
        self,
        collection: Collection,
        data: InputData,
        record_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Parse, resolve and validate. Raises ValidationError on any error."""
        parsed = await self._parse(collection, data, record_id)
        values, result = await self._resolve(collection, parsed)
        if result.has_errors:
            raise await self._rejection(collection, result.issues, record_id)
        for issue in result.issues:
            if issue.severity != "error":
                logger.warning(
                    "validation_warning",
                    collection=collection.value,
                    record_id=record_id,
                    field=issue.field,
                    message=issue.message,
                )
        return values

    async def check(self, collection: Collection, data: InputData) -> ValidationResult:
        """
        Validate an input without writing it.

        Used by the UI to show warnings before the volunteer saves.
        """
        model, _ = _RULES[collection]
        try:
            parsed = model.model_validate(data.model_dump() if isinstance(data, BaseModel) else data)
        except PydanticValidationError as e:
            return ValidationResult(entity_type=collection.value, issues=issues_from_pydantic(e))
        _, result = await self._resolve(collection, parsed)
        return result

    # -------------------------------------------------------------------------
    # Generic CRUD
    # -------------------------------------------------------------------------

    async def create_record(self, collection: Collection, data: InputData) -> RecordBase:
        if collection == Collection.BANK_TRANSACTIONS:
            return await self.create_bank_transaction(data)

        values = await self._prepare(collection, data)
        async with self._locked(collection):
            async with self._storage_guard(collection, "create"):
                record = await self._store(collection).create(values)

        await self._audit.log_record_created(collection.value, record.id)
        if collection == Collection.SALES:
            await self._audit.log_sale_arrears(
                sale_id=record.id,
                expected_cash=str(record.expected_cash),
                arrears=str(record.arrears),
            )
        return record

    async def update_record(
        self,
        collection: Collection,
        record_id: str,
        data: InputData,
    ) -> RecordBase:
        if collection == Collection.BANK_TRANSACTIONS:
            return await self.update_bank_transaction(record_id, data)

        values = await self._prepare(collection, data, record_id)
        async with self._locked(collection):
            async with self._storage_guard(collection, "update"):
                record = await self._store(collection).update(record_id, values)

        await self._audit.log_record_updated(collection.value, record.id)
        if collection == Collection.SALES:
            await self._audit.log_sale_arrears(
                sale_id=record.id,
                expected_cash=str(record.expected_cash),
                arrears=str(record.arrears),
            )
        return record

    async def delete_record(self, collection: Collection, record_id: str) -> None:
        if collection == Collection.BANK_TRANSACTIONS:
            return await self.delete_bank_transaction(record_id)

        async with self._locked(collection):
            async with self._storage_guard(collection, "delete"):
                await self._store(collection).delete(record_id)
        await self._audit.log_record_deleted(collection.value, record_id)

    async def get_record(self, collection: Collection, record_id: str) -> Optional[RecordBase]:
        async with self._storage_guard(collection, "get"):
            return await self._store(collection).get(record_id)

    async def list_records(self, collection: Collection) -> list[RecordBase]:
        """All records of a collection in store order (bank: chronological)."""
        if collection == Collection.BANK_TRANSACTIONS:
            return await self.list_bank_transactions()
        async with self._storage_guard(collection, "list"):
            return await self._store(collection).list_all()

    # -------------------------------------------------------------------------
    # Sales
    # -------------------------------------------------------------------------

    async def create_sale(self, data: InputData) -> Sale:
        return await self.create_record(Collection.SALES, data)

    async def update_sale(self, sale_id: str, data: InputData) -> Sale:
        """Replace a sale's inputs. Arrears is recomputed every time."""
        return await self.update_record(Collection.SALES, sale_id, data)

    async def delete_sale(self, sale_id: str) -> None:
        await self.delete_record(Collection.SALES, sale_id)

    async def get_sale(self, sale_id: str) -> Optional[Sale]:
        return await self.get_record(Collection.SALES, sale_id)

    async def list_sales(self) -> list[Sale]:
        return await self.list_records(Collection.SALES)

    # -------------------------------------------------------------------------
    # Bank transactions
    # -------------------------------------------------------------------------

    @staticmethod
    def _balance_changes(transactions: list[BankTransaction]) -> dict[str, dict[str, Any]]:
        """Running balances that differ from what is stored, keyed by id."""
        ordered = chronological_order(transactions)
        balances = compute_running_balances(ordered)
        return {
            transaction.id: {"running_balance": balance}
            for transaction, balance in zip(ordered, balances)
            if transaction.running_balance != balance
        }

    @staticmethod
    def _closing_balance(transactions: list[BankTransaction]) -> Decimal:
        balances = compute_running_balances(chronological_order(transactions))
        return balances[-1] if balances else Decimal("0")

    async def _log_recompute(self, transactions: list[BankTransaction], changed: int) -> None:
        await self._audit.log_balances_recomputed(
            transaction_count=len(transactions),
            changed_count=changed,
            closing_balance=str(self._closing_balance(transactions)),
        )

    async def create_bank_transaction(self, data: InputData) -> BankTransaction:
        """
        Add a cash movement and bring every running balance up to date.

        The new record takes the next sequence number, so it sorts after
        existing transactions on the same date.
        """
        collection = Collection.BANK_TRANSACTIONS
        values = await self._prepare(collection, data)
        store = self._store(collection)

        async with self._locked(collection):
            async with self._storage_guard(collection, "create"):
                existing = await store.list_all()
                values["sequence"] = max((t.sequence for t in existing), default=-1) + 1

                # Balances including the new transaction, before it has an id
                provisional = BankTransaction.model_construct(
                    **values,
                    created_at=utc_now(),
                )
                ordered = chronological_order([*existing, provisional])
                balances = compute_running_balances(ordered)

                changes: dict[str, dict[str, Any]] = {}
                for transaction, balance in zip(ordered, balances):
                    if transaction is provisional:
                        values["running_balance"] = balance
                    elif transaction.running_balance != balance:
                        changes[transaction.id] = {"running_balance": balance}

                record = await store.create(values)
                if changes:
                    await store.update_many(changes)

        await self._audit.log_record_created(collection.value, record.id)
        await self._log_recompute([*existing, record], len(changes))
        return record

    async def update_bank_transaction(self, transaction_id: str, data: InputData) -> BankTransaction:
        """Replace a transaction's fields and recompute every balance in one batch."""
        collection = Collection.BANK_TRANSACTIONS
        values = await self._prepare(collection, data, transaction_id)
        store = self._store(collection)

        async with self._locked(collection):
            async with self._storage_guard(collection, "update"):
                existing = await store.list_all()
                target = next((t for t in existing if t.id == transaction_id), None)
                if target is None:
                    raise NotFoundError(collection, transaction_id)

                updated = target.model_copy(update=values)
                merged = [updated if t.id == transaction_id else t for t in existing]

                changes = self._balance_changes(merged)
                new_balance = changes.pop(transaction_id, {}).get(
                    "running_balance", target.running_balance
                )
                # The target is always written: its fields changed
                batch = {transaction_id: {**values, "running_balance": new_balance}, **changes}
                results = await store.update_many(batch)

        record = next(r for r in results if r.id == transaction_id)
        await self._audit.log_record_updated(collection.value, transaction_id)
        await self._log_recompute(merged, len(changes))
        return record

    async def delete_bank_transaction(self, transaction_id: str) -> None:
        """Remove a transaction and shift every later balance accordingly."""
        collection = Collection.BANK_TRANSACTIONS
        store = self._store(collection)

        async with self._locked(collection):
            async with self._storage_guard(collection, "delete"):
                existing = await store.list_all()
                if not any(t.id == transaction_id for t in existing):
                    raise NotFoundError(collection, transaction_id)

                await store.delete(transaction_id)
                remaining = [t for t in existing if t.id != transaction_id]
                changes = self._balance_changes(remaining)
                if changes:
                    await store.update_many(changes)

        await self._audit.log_record_deleted(collection.value, transaction_id)
        await self._log_recompute(remaining, len(changes))

    async def get_bank_transaction(self, transaction_id: str) -> Optional[BankTransaction]:
        collection = Collection.BANK_TRANSACTIONS
        async with self._locked(collection):
            return await self.get_record(collection, transaction_id)

    async def list_bank_transactions(self) -> list[BankTransaction]:
        """Every transaction, oldest first."""
        collection = Collection.BANK_TRANSACTIONS
        async with self._locked(collection):
            async with self._storage_guard(collection, "list"):
                transactions = await self._store(collection).list_all()
        return chronological_order(transactions)

    async def recalculate_running_balances(self) -> int:
        """
        Repair stored running balances.

        Needed when the bank collection was edited by something other than
        this service. Returns the number of records whose balance changed.
        """
        collection = Collection.BANK_TRANSACTIONS
        store = self._store(collection)

        async with self._locked(collection):
            async with self._storage_guard(collection, "recalculate"):
                transactions = await store.list_all()
                changes = self._balance_changes(transactions)
                if changes:
                    await store.update_many(changes)

        logger.info(
            "running_balances_recalculated",
            transaction_count=len(transactions),
            changed_count=len(changes),
        )
        await self._log_recompute(transactions, len(changes))
        return len(changes)

    # -------------------------------------------------------------------------
    # Products & catalog
    # -------------------------------------------------------------------------

    async def create_product(self, data: InputData) -> Product:
        return await self.create_record(Collection.PRODUCTS, data)

    async def update_product(self, product_id: str, data: InputData) -> Product:
        return await self.update_record(Collection.PRODUCTS, product_id, data)

    async def delete_product(self, product_id: str) -> None:
        await self.delete_record(Collection.PRODUCTS, product_id)

    async def get_product(self, product_id: str) -> Optional[Product]:
        return await self.get_record(Collection.PRODUCTS, product_id)

    async def list_products(self) -> list[Product]:
        return await self.list_records(Collection.PRODUCTS)

    async def create_custom_item(self, data: InputData) -> CustomItem:
        return await self.create_record(Collection.CUSTOM_ITEMS, data)

    async def update_custom_item(self, item_id: str, data: InputData) -> CustomItem:
        return await self.update_record(Collection.CUSTOM_ITEMS, item_id, data)

    async def delete_custom_item(self, item_id: str) -> None:
        await self.delete_record(Collection.CUSTOM_ITEMS, item_id)

    async def get_custom_item(self, item_id: str) -> Optional[CustomItem]:
        return await self.get_record(Collection.CUSTOM_ITEMS, item_id)

    async def list_custom_items(self) -> list[CustomItem]:
        return await self.list_records(Collection.CUSTOM_ITEMS)

    async def create_custom_product(self, data: InputData) -> CustomProduct:
        return await self.create_record(Collection.CUSTOM_PRODUCTS, data)

    async def update_custom_product(self, product_id: str, data: InputData) -> CustomProduct:
        return await self.update_record(Collection.CUSTOM_PRODUCTS, product_id, data)

    async def delete_custom_product(self, product_id: str) -> None:
        await self.delete_record(Collection.CUSTOM_PRODUCTS, product_id)

    async def get_custom_product(self, product_id: str) -> Optional[CustomProduct]:
        return await self.get_record(Collection.CUSTOM_PRODUCTS, product_id)

    async def list_custom_products(self) -> list[CustomProduct]:
        return await self.list_records(Collection.CUSTOM_PRODUCTS)

    # -------------------------------------------------------------------------
    # Expenses & consumption
    # -------------------------------------------------------------------------

    async def create_general_expense(self, data: InputData) -> GeneralExpense:
        return await self.create_record(Collection.EXPENSES, data)

    async def update_general_expense(self, expense_id: str, data: InputData) -> GeneralExpense:
        return await self.update_record(Collection.EXPENSES, expense_id, data)

    async def delete_general_expense(self, expense_id: str) -> None:
        await self.delete_record(Collection.EXPENSES, expense_id)

    async def get_general_expense(self, expense_id: str) -> Optional[GeneralExpense]:
        return await self.get_record(Collection.EXPENSES, expense_id)

    async def list_general_expenses(self) -> list[GeneralExpense]:
        return await self.list_records(Collection.EXPENSES)

    async def create_misc_expense(self, data: InputData) -> MiscExpense:
        return await self.create_record(Collection.MISC_EXPENSES, data)

    async def update_misc_expense(self, expense_id: str, data: InputData) -> MiscExpense:
        return await self.update_record(Collection.MISC_EXPENSES, expense_id, data)

    async def delete_misc_expense(self, expense_id: str) -> None:
        await self.delete_record(Collection.MISC_EXPENSES, expense_id)

    async def get_misc_expense(self, expense_id: str) -> Optional[MiscExpense]:
        return await self.get_record(Collection.MISC_EXPENSES, expense_id)

    async def list_misc_expenses(self) -> list[MiscExpense]:
        return await self.list_records(Collection.MISC_EXPENSES)

    async def create_consumed_item(self, data: InputData) -> ItemConsumed:
        """Record consumption, copying unit/price from the source if missing."""
        return await self.create_record(Collection.CONSUMED_ITEMS, data)

    async def update_consumed_item(self, item_id: str, data: InputData) -> ItemConsumed:
        return await self.update_record(Collection.CONSUMED_ITEMS, item_id, data)

    async def delete_consumed_item(self, item_id: str) -> None:
        await self.delete_record(Collection.CONSUMED_ITEMS, item_id)

    async def get_consumed_item(self, item_id: str) -> Optional[ItemConsumed]:
        return await self.get_record(Collection.CONSUMED_ITEMS, item_id)

    async def list_consumed_items(self) -> list[ItemConsumed]:
        return await self.list_records(Collection.CONSUMED_ITEMS)

    # -------------------------------------------------------------------------
    # Family support
    # -------------------------------------------------------------------------

    async def create_family_member(self, data: InputData) -> FamilyMember:
        return await self.create_record(Collection.FAMILY_MEMBERS, data)

    async def update_family_member(self, member_id: str, data: InputData) -> FamilyMember:
        return await self.update_record(Collection.FAMILY_MEMBERS, member_id, data)

    async def delete_family_member(self, member_id: str) -> None:
        await self.delete_record(Collection.FAMILY_MEMBERS, member_id)

    async def get_family_member(self, member_id: str) -> Optional[FamilyMember]:
        return await self.get_record(Collection.FAMILY_MEMBERS, member_id)

    async def list_family_members(self) -> list[FamilyMember]:
        return await self.list_records(Collection.FAMILY_MEMBERS)

    async def create_family_payment(self, data: InputData) -> FamilyPayment:
        return await self.create_record(Collection.FAMILY_PAYMENTS, data)

    async def update_family_payment(self, payment_id: str, data: InputData) -> FamilyPayment:
        return await self.update_record(Collection.FAMILY_PAYMENTS, payment_id, data)

    async def delete_family_payment(self, payment_id: str) -> None:
        await self.delete_record(Collection.FAMILY_PAYMENTS, payment_id)

    async def get_family_payment(self, payment_id: str) -> Optional[FamilyPayment]:
        return await self.get_record(Collection.FAMILY_PAYMENTS, payment_id)

    async def list_family_payments(self) -> list[FamilyPayment]:
        return await self.list_records(Collection.FAMILY_PAYMENTS)
