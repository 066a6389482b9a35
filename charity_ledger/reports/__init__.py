"""Reporting package."""

from charity_ledger.reports.builder import ReportBuilder, SummaryReport
from charity_ledger.reports.summaries import (
    UNKNOWN_PRODUCT,
    bank_account_summary,
    daily_summaries,
    family_payment_summary,
    month_totals,
    overall_totals,
    sale_revenue,
    sale_rows,
)

__all__ = [
    "ReportBuilder",
    "SummaryReport",
    "UNKNOWN_PRODUCT",
    "bank_account_summary",
    "daily_summaries",
    "family_payment_summary",
    "month_totals",
    "overall_totals",
    "sale_revenue",
    "sale_rows",
]
