"""
Core Record Models for Charity Ledger

These models define the schemas for every collection the ledger stores.
Each entity has two shapes:
1. An *Input* model - the writable fields a caller submits
2. A record model - the input plus store-assigned identity and timestamps
   (and, for sales and bank transactions, derived values)

DESIGN DECISION: Input models only coerce types (dates, decimals, enums).
Numeric business constraints (non-negative amounts, positive weights) are
checked by RecordValidator so a caller gets every problem at once instead
of the first one pydantic trips over.

Money and weights are Decimal so that arithmetic on derived values is exact.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ProductUnit(str, Enum):
    """Units a sellable product is measured in."""
    KG = "kg"
    PACK = "pack"


class ItemUnit(str, Enum):
    """Units for purchased and consumed items."""
    KG = "kg"
    PACK = "pack"
    PIECE = "piece"
    LITER = "liter"
    DOZEN = "dozen"
    GRAM = "gram"
    BOTTLE = "bottle"
    PACKET = "packet"


class TransactionType(str, Enum):
    """
    Direction of a bank cash movement.

    cash_received adds to the running balance, cash_withdrawn subtracts.
    """
    CASH_RECEIVED = "cash_received"
    CASH_WITHDRAWN = "cash_withdrawn"


class SourceType(str, Enum):
    """Where a consumed item was taken from."""
    GENERAL_EXPENSE = "general_expense"
    CUSTOM_ITEM = "custom_item"


class PaymentType(str, Enum):
    """Kinds of family support payment."""
    MONTHLY_SUPPORT = "monthly_support"
    EMERGENCY = "emergency"
    SPECIAL_OCCASION = "special_occasion"
    EDUCATION = "education"
    MEDICAL = "medical"
    OTHER = "other"


class Collection(str, Enum):
    """
    Every collection the record store holds.

    The value is the logical table/worksheet name.
    """
    PRODUCTS = "products"
    SALES = "sales"
    EXPENSES = "expenses"
    MISC_EXPENSES = "misc_expenses"
    CUSTOM_ITEMS = "custom_items"
    CUSTOM_PRODUCTS = "custom_products"
    CONSUMED_ITEMS = "consumed_items"
    BANK_TRANSACTIONS = "bank_transactions"
    FAMILY_PAYMENTS = "family_payments"
    FAMILY_MEMBERS = "family_members"

    @property
    def storage_key(self) -> str:
        """Versioned key used by the local store for this collection."""
        return f"charity.{self.value}.{_KEY_VERSIONS.get(self, 'v1')}"

    @property
    def record_model(self) -> type["RecordBase"]:
        return RECORD_MODELS[self]


# Bump a version when a collection's stored shape changes incompatibly
_KEY_VERSIONS = {
    Collection.PRODUCTS: "v4",
    Collection.SALES: "v2",
}


# =============================================================================
# BASE MODELS
# =============================================================================

class InputBase(BaseModel):
    """Base for caller-submitted fields. Unknown keys are dropped."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class RecordBase(BaseModel):
    """
    Identity and timestamps assigned by the record store.

    id and created_at never change after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier"
    )
    created_at: datetime = Field(
        ...,
        description="When the record was first stored"
    )
    updated_at: datetime = Field(
        ...,
        description="Last write timestamp"
    )


# =============================================================================
# PRODUCTS & SALES
# =============================================================================

class ProductInput(InputBase):
    """A product bought in for resale."""
    name: str = Field(..., max_length=200)
    unit: ProductUnit
    sale_price: Decimal = Decimal("0")
    quantity: Decimal = Decimal("0")
    buying_date: date


class Product(ProductInput, RecordBase):
    pass


class SaleInput(InputBase):
    """
    Writable fields of a sale.

    weight may be given directly or derived from the container weights
    before and after the sale. expected_cash defaults to weight x price
    but a caller may override it. There is deliberately no arrears field:
    arrears is always computed by the ledger.
    """
    product_id: str = Field(..., max_length=100)
    weight_before_sale: Optional[Decimal] = None
    weight_after_sale: Optional[Decimal] = None
    weight: Optional[Decimal] = None
    price_per_kg: Decimal
    expected_cash: Optional[Decimal] = None
    received_cash: Decimal = Decimal("0")
    topup: Decimal = Decimal("0")
    charity: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    sale_date: date


class Sale(RecordBase):
    """A stored sale with its derived values resolved."""
    product_id: str
    weight_before_sale: Optional[Decimal] = None
    weight_after_sale: Optional[Decimal] = None
    weight: Decimal
    price_per_kg: Decimal
    expected_cash: Decimal
    received_cash: Decimal = Decimal("0")
    topup: Decimal = Decimal("0")
    charity: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    sale_date: date
    arrears: Decimal = Field(
        ...,
        description="expected_cash - (received_cash + topup + charity + credit)"
    )

    @property
    def total_received(self) -> Decimal:
        return self.received_cash + self.topup + self.charity + self.credit


# =============================================================================
# BANK ACCOUNT
# =============================================================================

class BankTransactionInput(InputBase):
    """A cash movement into or out of the bank account."""
    type: TransactionType
    amount: Decimal
    transaction_date: date
    description: str = Field(default="", max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)
    reference: Optional[str] = Field(default=None, max_length=100)


class BankTransaction(BankTransactionInput, RecordBase):
    """
    A stored bank transaction.

    sequence is the creation order within the collection and breaks ties
    between transactions on the same date. running_balance is maintained
    by the ledger for the whole collection on every write.
    """
    sequence: int = Field(default=0, ge=0)
    running_balance: Decimal = Decimal("0")


# =============================================================================
# EXPENSES & CONSUMPTION
# =============================================================================

class GeneralExpenseInput(InputBase):
    """A purchase of stock or supplies."""
    name: str = Field(..., max_length=200)
    unit: ItemUnit
    price: Decimal
    quantity: Decimal
    weight: Optional[Decimal] = None
    expense_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)


class GeneralExpense(GeneralExpenseInput, RecordBase):

    @property
    def total_cost(self) -> Decimal:
        return self.price * self.quantity


class MiscExpenseInput(InputBase):
    """Any other expense the user names freely."""
    name: str = Field(..., max_length=200)
    price: Decimal
    quantity: Decimal = Decimal("1")
    expense_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)


class MiscExpense(MiscExpenseInput, RecordBase):

    @property
    def total_cost(self) -> Decimal:
        return self.price * self.quantity


class ItemConsumedInput(InputBase):
    """
    An item used up on a given day.

    If source_id is set and unit or price are missing, the ledger copies
    them from the source record when the consumption is written. Later
    changes to the source are not reflected here.
    """
    item_name: str = Field(..., max_length=200)
    unit: Optional[ItemUnit] = None
    quantity: Decimal
    weight: Optional[Decimal] = None
    price: Optional[Decimal] = None
    consumption_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)
    source_type: SourceType = SourceType.GENERAL_EXPENSE
    source_id: Optional[str] = None


class ItemConsumed(RecordBase):
    item_name: str
    unit: ItemUnit
    quantity: Decimal
    weight: Optional[Decimal] = None
    price: Optional[Decimal] = None
    consumption_date: date
    notes: Optional[str] = None
    source_type: SourceType
    source_id: Optional[str] = None

    @property
    def total_cost(self) -> Decimal:
        return (self.price or Decimal("0")) * self.quantity


# =============================================================================
# CATALOG ENTRIES
# =============================================================================

class CustomItemInput(InputBase):
    name: str = Field(..., max_length=200)
    unit: ItemUnit


class CustomItem(CustomItemInput, RecordBase):
    pass


class CustomProductInput(InputBase):
    name: str = Field(..., max_length=200)
    unit: ProductUnit


class CustomProduct(CustomProductInput, RecordBase):
    pass


# =============================================================================
# FAMILY SUPPORT
# =============================================================================

class FamilyMemberInput(InputBase):
    """A family the charity supports."""
    name: str = Field(..., max_length=200)
    relationship: str = Field(default="", max_length=100)
    monthly_amount: Optional[Decimal] = None
    payment_day: Optional[int] = None
    is_active: bool = True
    notes: Optional[str] = Field(default=None, max_length=1000)


class FamilyMember(FamilyMemberInput, RecordBase):
    pass


class FamilyPaymentInput(InputBase):
    """
    A payment made to a family.

    family_member_name is free text, not a reference to a FamilyMember.
    """
    family_member_name: str = Field(..., max_length=200)
    amount: Decimal
    payment_date: date
    payment_type: PaymentType = PaymentType.MONTHLY_SUPPORT
    description: str = Field(default="", max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_recurring: bool = False
    next_payment_due: Optional[date] = None


class FamilyPayment(FamilyPaymentInput, RecordBase):
    pass


RECORD_MODELS: dict[Collection, type[RecordBase]] = {
    Collection.PRODUCTS: Product,
    Collection.SALES: Sale,
    Collection.EXPENSES: GeneralExpense,
    Collection.MISC_EXPENSES: MiscExpense,
    Collection.CUSTOM_ITEMS: CustomItem,
    Collection.CUSTOM_PRODUCTS: CustomProduct,
    Collection.CONSUMED_ITEMS: ItemConsumed,
    Collection.BANK_TRANSACTIONS: BankTransaction,
    Collection.FAMILY_PAYMENTS: FamilyPayment,
    Collection.FAMILY_MEMBERS: FamilyMember,
}
