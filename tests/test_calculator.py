"""Tests for the derived-value calculator."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from charity_ledger.ledger.calculator import (
    chronological_order,
    compute_arrears,
    compute_expected_cash,
    compute_running_balances,
    compute_weight_sold,
    signed_amount,
    total_cost,
)
from charity_ledger.models.records import BankTransaction, TransactionType


BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_transaction(
    transaction_id: str,
    type: str,
    amount: str,
    day: date = date(2024, 1, 1),
    sequence: int = 0,
) -> BankTransaction:
    created = BASE + timedelta(seconds=sequence)
    return BankTransaction(
        id=transaction_id,
        created_at=created,
        updated_at=created,
        type=type,
        amount=Decimal(amount),
        transaction_date=day,
        sequence=sequence,
    )


class TestSaleArithmetic:

    def test_arrears_shortfall(self):
        assert compute_arrears(
            Decimal("32"), Decimal("20"), Decimal("5"), Decimal("0"), Decimal("0")
        ) == Decimal("7")

    def test_arrears_overpayment_is_negative(self):
        assert compute_arrears(
            Decimal("10"), Decimal("12"), Decimal("0"), Decimal("0"), Decimal("0")
        ) == Decimal("-2")

    def test_arrears_counts_every_payment_kind(self):
        assert compute_arrears(
            Decimal("100"), Decimal("10"), Decimal("20"), Decimal("30"), Decimal("40")
        ) == Decimal("0")

    def test_weight_sold_is_exact(self):
        assert compute_weight_sold(Decimal("5.5"), Decimal("2.3")) == Decimal("3.2")

    def test_weight_sold_is_not_clamped(self):
        assert compute_weight_sold(Decimal("1"), Decimal("2")) == Decimal("-1")

    def test_expected_cash(self):
        assert compute_expected_cash(Decimal("3.2"), Decimal("10")) == Decimal("32")

    def test_total_cost(self):
        assert total_cost(Decimal("2.5"), Decimal("4")) == Decimal("10")


class TestRunningBalances:

    def test_signed_amount(self):
        assert signed_amount(TransactionType.CASH_RECEIVED, Decimal("5")) == Decimal("5")
        assert signed_amount(TransactionType.CASH_WITHDRAWN, Decimal("5")) == Decimal("-5")

    def test_signed_amount_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            signed_amount("cash_borrowed", Decimal("5"))

    def test_running_balances(self):
        transactions = [
            make_transaction("a", "cash_received", "100", sequence=0),
            make_transaction("b", "cash_withdrawn", "30", sequence=1),
            make_transaction("c", "cash_received", "50", sequence=2),
        ]
        assert compute_running_balances(transactions) == [
            Decimal("100"), Decimal("70"), Decimal("120"),
        ]

    def test_first_balance_is_its_own_signed_amount(self):
        transactions = [make_transaction("a", "cash_withdrawn", "10")]
        assert compute_running_balances(transactions) == [Decimal("-10")]

    def test_empty(self):
        assert compute_running_balances([]) == []

    def test_chronological_order_sorts_by_date_then_sequence(self):
        late = make_transaction("late", "cash_received", "1", day=date(2024, 2, 1), sequence=0)
        second = make_transaction("second", "cash_received", "1", sequence=2)
        first = make_transaction("first", "cash_received", "1", sequence=1)

        ordered = chronological_order([late, second, first])

        assert [t.id for t in ordered] == ["first", "second", "late"]

    def test_chronological_order_does_not_mutate_input(self):
        transactions = [
            make_transaction("b", "cash_received", "1", sequence=1),
            make_transaction("a", "cash_received", "1", sequence=0),
        ]
        chronological_order(transactions)
        assert [t.id for t in transactions] == ["b", "a"]
