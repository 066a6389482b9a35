"""
Report Summaries

DESIGN DECISION: Reporting is DETERMINISTIC and read-only.
Every figure here is folded from stored records; nothing is estimated
and nothing is written back.

Missing references are handled defensively: a sale whose product has
been deleted is shown against "Unknown" rather than dropped.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from charity_ledger.models.records import (
    BankTransaction,
    FamilyMember,
    FamilyPayment,
    GeneralExpense,
    ItemConsumed,
    MiscExpense,
    Product,
    Sale,
    TransactionType,
)
from charity_ledger.models.reports import (
    ZERO,
    BankAccountSummary,
    DailySummary,
    FamilyPaymentSummary,
    MonthTotals,
    OverallTotals,
    SaleRow,
)


UNKNOWN_PRODUCT = "Unknown"


def sale_revenue(sale: Sale) -> Decimal:
    """Money actually taken for a sale, whatever form it came in."""
    return sale.received_cash + sale.topup + sale.charity + sale.credit


def daily_summaries(
    sales: Iterable[Sale],
    consumed_items: Iterable[ItemConsumed],
    expenses: Iterable[GeneralExpense],
    misc_expenses: Iterable[MiscExpense],
) -> list[DailySummary]:
    """
    One summary per day that has any activity, newest first.

    General and miscellaneous expenses both count as expense cost.
    """
    days: dict[date, DailySummary] = {}

    def summary_for(day: date) -> DailySummary:
        if day not in days:
            days[day] = DailySummary(day=day)
        return days[day]

    for sale in sales:
        summary = summary_for(sale.sale_date)
        summary.sales_revenue += sale_revenue(sale)
        summary.sales_count += 1

    for item in consumed_items:
        summary = summary_for(item.consumption_date)
        summary.consumption_cost += item.total_cost
        summary.consumption_count += 1

    for expense in [*expenses, *misc_expenses]:
        summary = summary_for(expense.expense_date)
        summary.expense_cost += expense.total_cost
        summary.expense_count += 1

    return sorted(days.values(), key=lambda s: s.day, reverse=True)


def overall_totals(
    sales: Iterable[Sale],
    consumed_items: Iterable[ItemConsumed],
    expenses: Iterable[GeneralExpense],
    misc_expenses: Iterable[MiscExpense],
) -> OverallTotals:
    sales = list(sales)
    consumed_items = list(consumed_items)
    expenses = list(expenses)
    misc_expenses = list(misc_expenses)

    return OverallTotals(
        total_sales_revenue=sum((sale_revenue(s) for s in sales), ZERO),
        total_consumption_cost=sum((i.total_cost for i in consumed_items), ZERO),
        total_expense_cost=sum((e.total_cost for e in expenses), ZERO),
        total_misc_expense_cost=sum((e.total_cost for e in misc_expenses), ZERO),
        total_sales=len(sales),
        total_consumption=len(consumed_items),
        total_expenses=len(expenses) + len(misc_expenses),
    )


def month_totals(summaries: Iterable[DailySummary], month: str) -> MonthTotals:
    """
    Fold daily summaries for one month.

    Args:
        summaries: Output of daily_summaries()
        month: "YYYY-MM"
    """
    totals = MonthTotals(month=month)
    for summary in summaries:
        if summary.day.strftime("%Y-%m") != month:
            continue
        totals.sales_revenue += summary.sales_revenue
        totals.consumption_cost += summary.consumption_cost
        totals.expense_cost += summary.expense_cost
        totals.active_days += 1
    return totals


def bank_account_summary(transactions: Iterable[BankTransaction]) -> BankAccountSummary:
    summary = BankAccountSummary()
    for transaction in transactions:
        if transaction.type == TransactionType.CASH_RECEIVED:
            summary.total_cash_received += transaction.amount
        else:
            summary.total_cash_withdrawn += transaction.amount
        summary.transaction_count += 1
        if (
            summary.last_transaction_date is None
            or transaction.transaction_date > summary.last_transaction_date
        ):
            summary.last_transaction_date = transaction.transaction_date
    return summary


def family_payment_summary(
    payments: Iterable[FamilyPayment],
    members: Iterable[FamilyMember],
    today: Optional[date] = None,
) -> FamilyPaymentSummary:
    """
    Headline figures for family support.

    A payment is upcoming when an active member with a monthly amount
    has a payment day still ahead in the current month.
    """
    today = today or date.today()
    summary = FamilyPaymentSummary()

    for payment in payments:
        summary.payment_count += 1
        if payment.payment_date.year == today.year:
            summary.total_paid_this_year += payment.amount
            if payment.payment_date.month == today.month:
                summary.total_paid_this_month += payment.amount
        if summary.last_payment_date is None or payment.payment_date > summary.last_payment_date:
            summary.last_payment_date = payment.payment_date

    for member in members:
        if not member.is_active:
            continue
        summary.active_family_members += 1
        if member.monthly_amount and member.payment_day and member.payment_day > today.day:
            summary.upcoming_payments += 1

    return summary


def sale_rows(sales: Iterable[Sale], products: Iterable[Product]) -> list[SaleRow]:
    """Sales joined with product names, newest sale date first."""
    names = {product.id: product.name for product in products}
    rows = [
        SaleRow(
            sale_id=sale.id,
            product_name=names.get(sale.product_id, UNKNOWN_PRODUCT),
            sale_date=sale.sale_date,
            weight=sale.weight,
            price_per_kg=sale.price_per_kg,
            expected_cash=sale.expected_cash,
            total_received=sale.total_received,
            arrears=sale.arrears,
        )
        for sale in sales
    ]
    return sorted(rows, key=lambda r: r.sale_date, reverse=True)
