"""
Data Models Package

This package contains all Pydantic models used in Charity Ledger.
All data flowing through the system must conform to these schemas.
"""

from charity_ledger.models.records import (
    RECORD_MODELS,
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
    ItemConsumed,
    ItemConsumedInput,
    ItemUnit,
    MiscExpense,
    MiscExpenseInput,
    PaymentType,
    Product,
    ProductInput,
    ProductUnit,
    RecordBase,
    Sale,
    SaleInput,
    SourceType,
    TransactionType,
)
from charity_ledger.models.validation import ValidationIssue, ValidationResult
from charity_ledger.models.reports import (
    BankAccountSummary,
    DailySummary,
    FamilyPaymentSummary,
    MonthTotals,
    OverallTotals,
    SaleRow,
)
from charity_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "RECORD_MODELS",
    "BankTransaction",
    "BankTransactionInput",
    "Collection",
    "CustomItem",
    "CustomItemInput",
    "CustomProduct",
    "CustomProductInput",
    "FamilyMember",
    "FamilyMemberInput",
    "FamilyPayment",
    "FamilyPaymentInput",
    "GeneralExpense",
    "GeneralExpenseInput",
    "ItemConsumed",
    "ItemConsumedInput",
    "ItemUnit",
    "MiscExpense",
    "MiscExpenseInput",
    "PaymentType",
    "Product",
    "ProductInput",
    "ProductUnit",
    "RecordBase",
    "Sale",
    "SaleInput",
    "SourceType",
    "TransactionType",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Report models
    "BankAccountSummary",
    "DailySummary",
    "FamilyPaymentSummary",
    "MonthTotals",
    "OverallTotals",
    "SaleRow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
