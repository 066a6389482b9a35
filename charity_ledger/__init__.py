"""
Charity Ledger - Source Package

Bookkeeping for a small charity shop: products, sales, expenses,
consumption, bank cash and family support payments.

DESIGN PRINCIPLES:
1. Derived values are always recomputed, never trusted from input
2. Fail early, fail visibly
3. The bank ledger is consistent as a whole after every write
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Charity Ledger Team"
