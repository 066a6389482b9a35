"""Tests for report summaries."""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

from charity_ledger.audit import AuditLogger
from charity_ledger.config import AppSettings
from charity_ledger.ledger import LedgerService
from charity_ledger.models import (
    BankTransaction,
    FamilyMember,
    FamilyPayment,
    GeneralExpense,
    ItemConsumed,
    MiscExpense,
    Product,
    Sale,
)
from charity_ledger.reports import (
    UNKNOWN_PRODUCT,
    ReportBuilder,
    bank_account_summary,
    daily_summaries,
    family_payment_summary,
    month_totals,
    overall_totals,
    sale_revenue,
    sale_rows,
)
from charity_ledger.services.storage import LocalJSONBackend
from charity_ledger.validation import RecordValidator


NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)
MAR_1 = date(2024, 3, 1)
MAR_2 = date(2024, 3, 2)
FEB_1 = date(2024, 2, 1)


def meta(record_id: str) -> dict:
    return {"id": record_id, "created_at": NOW, "updated_at": NOW}


def make_sale(record_id: str, day: date, received: str, product_id: str = "p1") -> Sale:
    return Sale(
        **meta(record_id),
        product_id=product_id,
        weight=Decimal("1"),
        price_per_kg=Decimal("10"),
        expected_cash=Decimal("10"),
        received_cash=Decimal(received),
        topup=Decimal("1"),
        sale_date=day,
        arrears=Decimal("10") - Decimal(received) - Decimal("1"),
    )


def make_expense(record_id: str, day: date, price: str, quantity: str = "1") -> GeneralExpense:
    return GeneralExpense(
        **meta(record_id),
        name="Rice",
        unit="kg",
        price=Decimal(price),
        quantity=Decimal(quantity),
        expense_date=day,
    )


def make_misc(record_id: str, day: date, price: str) -> MiscExpense:
    return MiscExpense(**meta(record_id), name="Bus", price=Decimal(price), expense_date=day)


def make_consumed(record_id: str, day: date, price, quantity: str) -> ItemConsumed:
    return ItemConsumed(
        **meta(record_id),
        item_name="Oil",
        unit="liter",
        price=Decimal(price) if price is not None else None,
        quantity=Decimal(quantity),
        consumption_date=day,
        source_type="general_expense",
    )


class TestDailySummaries:

    def test_sale_revenue(self):
        assert sale_revenue(make_sale("s1", MAR_1, "5")) == Decimal("6")

    def test_groups_by_day_newest_first(self):
        summaries = daily_summaries(
            sales=[make_sale("s1", MAR_1, "9"), make_sale("s2", MAR_2, "4")],
            consumed_items=[make_consumed("c1", MAR_1, "2", "3")],
            expenses=[make_expense("e1", MAR_1, "1", "2")],
            misc_expenses=[make_misc("m1", FEB_1, "7")],
        )

        assert [s.day for s in summaries] == [MAR_2, MAR_1, FEB_1]
        mar_1 = summaries[1]
        assert mar_1.sales_revenue == Decimal("10")
        assert mar_1.consumption_cost == Decimal("6")
        assert mar_1.expense_cost == Decimal("2")
        assert mar_1.total_cost == Decimal("8")
        assert mar_1.profit == Decimal("2")
        assert (mar_1.sales_count, mar_1.consumption_count, mar_1.expense_count) == (1, 1, 1)
        assert summaries[2].expense_cost == Decimal("7")

    def test_consumption_without_price_costs_nothing(self):
        summaries = daily_summaries([], [make_consumed("c1", MAR_1, None, "3")], [], [])
        assert summaries[0].consumption_cost == Decimal("0")
        assert summaries[0].consumption_count == 1

    def test_empty(self):
        assert daily_summaries([], [], [], []) == []


class TestTotals:

    def test_overall_totals(self):
        totals = overall_totals(
            sales=[make_sale("s1", MAR_1, "9")],
            consumed_items=[make_consumed("c1", MAR_1, "1", "2")],
            expenses=[make_expense("e1", MAR_1, "3")],
            misc_expenses=[make_misc("m1", MAR_1, "1")],
        )
        assert totals.total_sales_revenue == Decimal("10")
        assert totals.total_cost == Decimal("6")
        assert totals.total_profit == Decimal("4")
        assert totals.total_expenses == 2

    def test_month_totals_only_counts_that_month(self):
        summaries = daily_summaries(
            [make_sale("s1", MAR_1, "9"), make_sale("s2", FEB_1, "4")],
            [],
            [make_expense("e1", MAR_2, "3")],
            [],
        )
        march = month_totals(summaries, "2024-03")
        assert march.sales_revenue == Decimal("10")
        assert march.expense_cost == Decimal("3")
        assert march.active_days == 2
        assert march.profit == Decimal("7")


class TestBankAndFamilySummaries:

    def test_bank_account_summary(self):
        transactions = [
            BankTransaction(**meta("t1"), type="cash_received", amount="100", transaction_date=FEB_1),
            BankTransaction(**meta("t2"), type="cash_withdrawn", amount="30", transaction_date=MAR_2),
            BankTransaction(**meta("t3"), type="cash_received", amount="5", transaction_date=MAR_1),
        ]
        summary = bank_account_summary(transactions)
        assert summary.total_cash_received == Decimal("105")
        assert summary.total_cash_withdrawn == Decimal("30")
        assert summary.current_balance == Decimal("75")
        assert summary.last_transaction_date == MAR_2
        assert summary.transaction_count == 3

    def test_bank_account_summary_empty(self):
        summary = bank_account_summary([])
        assert summary.current_balance == Decimal("0")
        assert summary.last_transaction_date is None

    def test_family_payment_summary(self):
        payments = [
            FamilyPayment(**meta("p1"), family_member_name="A", amount="50", payment_date=MAR_1),
            FamilyPayment(**meta("p2"), family_member_name="B", amount="20", payment_date=FEB_1),
            FamilyPayment(**meta("p3"), family_member_name="A", amount="99", payment_date=date(2023, 3, 1)),
        ]
        members = [
            FamilyMember(**meta("f1"), name="A", monthly_amount="50", payment_day=20),
            FamilyMember(**meta("f2"), name="B", monthly_amount="20", payment_day=2),
            FamilyMember(**meta("f3"), name="C", monthly_amount="20", payment_day=25, is_active=False),
            FamilyMember(**meta("f4"), name="D", payment_day=28),
        ]

        summary = family_payment_summary(payments, members, today=date(2024, 3, 10))

        assert summary.total_paid_this_month == Decimal("50")
        assert summary.total_paid_this_year == Decimal("70")
        assert summary.active_family_members == 3
        assert summary.upcoming_payments == 1
        assert summary.last_payment_date == MAR_1
        assert summary.payment_count == 3


class TestSaleRows:

    def test_missing_product_shows_unknown(self):
        products = [Product(**meta("p1"), name="Dates", unit="kg", buying_date=FEB_1)]
        rows = sale_rows(
            [make_sale("s1", MAR_1, "9", "p1"), make_sale("s2", MAR_2, "9", "gone")],
            products,
        )
        assert [(r.sale_id, r.product_name) for r in rows] == [
            ("s2", UNKNOWN_PRODUCT),
            ("s1", "Dates"),
        ]
        assert rows[1].total_received == Decimal("10")


class TestReportBuilder:

    def test_summary_reads_through_ledger(self, tmp_path):
        async def scenario():
            ledger = LedgerService(
                LocalJSONBackend(tmp_path),
                audit_logger=AuditLogger(),
                validator=RecordValidator(AppSettings()),
            )
            await ledger.create_sale({
                "product_id": "p1", "weight": "2", "price_per_kg": "10",
                "received_cash": "20", "sale_date": MAR_1,
            })
            await ledger.create_misc_expense({"name": "Bus", "price": "3", "expense_date": MAR_1})
            await ledger.create_bank_transaction(
                {"type": "cash_received", "amount": "40", "transaction_date": MAR_1}
            )

            builder = ReportBuilder(ledger)
            report = await builder.summary(today=MAR_1)
            bank = await builder.bank_account()
            rows = await builder.sales()

            assert report.today.profit == Decimal("17")
            assert report.month.active_days == 1
            assert report.overall.total_profit == Decimal("17")
            assert bank.current_balance == Decimal("40")
            assert rows[0].product_name == UNKNOWN_PRODUCT

        asyncio.run(scenario())
