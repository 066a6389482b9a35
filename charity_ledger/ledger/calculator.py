"""
Derived-Value Calculator

Pure, stateless arithmetic for the values the ledger derives from
user input. Nothing here clamps or rounds: a negative arrears is an
overpayment, a negative weight is a data-entry error the caller must
reject.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from charity_ledger.models.records import BankTransaction, TransactionType


def compute_arrears(
    expected_cash: Decimal,
    received_cash: Decimal,
    topup: Decimal,
    charity: Decimal,
    credit: Decimal,
) -> Decimal:
    """Shortfall (positive) or overpayment (negative) on a sale."""
    return expected_cash - (received_cash + topup + charity + credit)


def compute_weight_sold(weight_before_sale: Decimal, weight_after_sale: Decimal) -> Decimal:
    return weight_before_sale - weight_after_sale


def compute_expected_cash(weight: Decimal, price_per_kg: Decimal) -> Decimal:
    return weight * price_per_kg


def total_cost(price: Decimal, quantity: Decimal) -> Decimal:
    return price * quantity


def signed_amount(transaction_type: TransactionType, amount: Decimal) -> Decimal:
    """Contribution of one transaction to the running balance."""
    if transaction_type == TransactionType.CASH_RECEIVED:
        return amount
    if transaction_type == TransactionType.CASH_WITHDRAWN:
        return -amount
    raise ValueError(f"Unknown transaction type: {transaction_type!r}")


def compute_running_balances(transactions: Iterable[BankTransaction]) -> list[Decimal]:
    """
    Cumulative signed sums over transactions in the order given.

    The caller decides the order; see chronological_order().
    """
    balances = []
    balance = Decimal("0")
    for transaction in transactions:
        balance += signed_amount(transaction.type, transaction.amount)
        balances.append(balance)
    return balances


def chronological_key(transaction: BankTransaction) -> tuple:
    return (transaction.transaction_date, transaction.sequence, transaction.created_at)


def chronological_order(transactions: Sequence[BankTransaction]) -> list[BankTransaction]:
    """Oldest first: by transaction date, then by creation order."""
    return sorted(transactions, key=chronological_key)
