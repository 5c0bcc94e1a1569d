"""Balance computation package."""

from splitledger.balances.engine import (
    BalanceEngine,
    compute_person_balance,
    compute_total_balances,
)

__all__ = ["BalanceEngine", "compute_person_balance", "compute_total_balances"]
