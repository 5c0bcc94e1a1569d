"""
Split Ledger - Source Package

An expense-splitting ledger: people, expenses attributed to them,
payments recorded against each expense, and the balances derived
from all of it.

DESIGN PRINCIPLES:
1. Money is Decimal in memory and decimal text at rest, never float
2. Balances are derived, never stored
3. Payments only ever move an expense forward (no refunds, no undo)
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Split Ledger Team"
