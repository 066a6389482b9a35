"""Ledger rules: derived-value arithmetic and the maintenance service."""

from charity_ledger.ledger.calculator import (
    chronological_order,
    compute_arrears,
    compute_expected_cash,
    compute_running_balances,
    compute_weight_sold,
    signed_amount,
    total_cost,
)
from charity_ledger.ledger.service import LedgerService

__all__ = [
    "LedgerService",
    "chronological_order",
    "compute_arrears",
    "compute_expected_cash",
    "compute_running_balances",
    "compute_weight_sold",
    "signed_amount",
    "total_cost",
]
