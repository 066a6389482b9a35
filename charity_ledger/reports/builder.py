"""
Report Builder

Bridge between the ledger and the summary pages. Reads every collection
it needs through LedgerService, then hands the records to the pure
functions in charity_ledger.reports.summaries.
"""

from datetime import date
from typing import Optional

import structlog
from pydantic import BaseModel

from charity_ledger.ledger import LedgerService
from charity_ledger.models.reports import (
    BankAccountSummary,
    DailySummary,
    FamilyPaymentSummary,
    MonthTotals,
    OverallTotals,
    SaleRow,
)
from charity_ledger.reports.summaries import (
    bank_account_summary,
    daily_summaries,
    family_payment_summary,
    month_totals,
    overall_totals,
    sale_rows,
)


logger = structlog.get_logger(__name__)


class SummaryReport(BaseModel):
    """Everything the summary page shows."""
    today: Optional[DailySummary] = None
    month: MonthTotals
    overall: OverallTotals
    daily: list[DailySummary]


class ReportBuilder:
    """
    Builds read-only reports from stored records.

    GUARANTEES:
    - Only returns figures folded from real stored data
    - Never writes
    """

    def __init__(self, ledger: LedgerService):
        self._ledger = ledger

    async def summary(self, today: Optional[date] = None) -> SummaryReport:
        today = today or date.today()

        sales = await self._ledger.list_sales()
        consumed = await self._ledger.list_consumed_items()
        expenses = await self._ledger.list_general_expenses()
        misc = await self._ledger.list_misc_expenses()

        daily = daily_summaries(sales, consumed, expenses, misc)
        todays = next((s for s in daily if s.day == today), None)

        logger.info("summary_report_built", days=len(daily), sales=len(sales))
        return SummaryReport(
            today=todays,
            month=month_totals(daily, today.strftime("%Y-%m")),
            overall=overall_totals(sales, consumed, expenses, misc),
            daily=daily,
        )

    async def bank_account(self) -> BankAccountSummary:
        return bank_account_summary(await self._ledger.list_bank_transactions())

    async def family_payments(self, today: Optional[date] = None) -> FamilyPaymentSummary:
        payments = await self._ledger.list_family_payments()
        members = await self._ledger.list_family_members()
        return family_payment_summary(payments, members, today)

    async def sales(self) -> list[SaleRow]:
        """Sales with product names; deleted products show as "Unknown"."""
        sales = await self._ledger.list_sales()
        products = await self._ledger.list_products()
        return sale_rows(sales, products)
