"""
Report Models

Read-only summaries folded over the stored collections.
Nothing here is persisted.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


ZERO = Decimal("0")


class DailySummary(BaseModel):
    """Activity for one calendar day."""
    day: date
    sales_revenue: Decimal = ZERO
    consumption_cost: Decimal = ZERO
    expense_cost: Decimal = ZERO
    sales_count: int = 0
    consumption_count: int = 0
    expense_count: int = 0

    @property
    def total_cost(self) -> Decimal:
        return self.consumption_cost + self.expense_cost

    @property
    def profit(self) -> Decimal:
        return self.sales_revenue - self.total_cost


class OverallTotals(BaseModel):
    """All-time totals across sales, expenses and consumption."""
    total_sales_revenue: Decimal = ZERO
    total_consumption_cost: Decimal = ZERO
    total_expense_cost: Decimal = ZERO
    total_misc_expense_cost: Decimal = ZERO
    total_sales: int = 0
    total_consumption: int = 0
    total_expenses: int = 0

    @property
    def total_cost(self) -> Decimal:
        return (
            self.total_consumption_cost
            + self.total_expense_cost
            + self.total_misc_expense_cost
        )

    @property
    def total_profit(self) -> Decimal:
        return self.total_sales_revenue - self.total_cost


class MonthTotals(BaseModel):
    """Totals for one calendar month, built from daily summaries."""
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    sales_revenue: Decimal = ZERO
    consumption_cost: Decimal = ZERO
    expense_cost: Decimal = ZERO
    active_days: int = 0

    @property
    def total_cost(self) -> Decimal:
        return self.consumption_cost + self.expense_cost

    @property
    def profit(self) -> Decimal:
        return self.sales_revenue - self.total_cost


class BankAccountSummary(BaseModel):
    """Headline figures for the bank account page."""
    total_cash_received: Decimal = ZERO
    total_cash_withdrawn: Decimal = ZERO
    last_transaction_date: Optional[date] = None
    transaction_count: int = 0

    @property
    def current_balance(self) -> Decimal:
        return self.total_cash_received - self.total_cash_withdrawn


class FamilyPaymentSummary(BaseModel):
    """Headline figures for the family payments page."""
    total_paid_this_month: Decimal = ZERO
    total_paid_this_year: Decimal = ZERO
    active_family_members: int = 0
    upcoming_payments: int = 0
    last_payment_date: Optional[date] = None
    payment_count: int = 0


class SaleRow(BaseModel):
    """A sale joined with its product name for display."""
    sale_id: str
    product_name: str
    sale_date: date
    weight: Decimal
    price_per_kg: Decimal
    expected_cash: Decimal
    total_received: Decimal
    arrears: Decimal
