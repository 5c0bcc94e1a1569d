"""
Balance Engine

DESIGN DECISION: Balances are DERIVED, never stored.
The engine reads people and expenses from storage and reduces them to
owed / owing / net figures. It has no state of its own and never writes.

Per expense, remaining = amountPaidFor - amountPaid:
- remaining > 0 adds to totalOwed (still outstanding)
- remaining < 0 adds |remaining| to totalOwing (overpaid)
- remaining == 0 contributes nothing

All accumulation is in Decimal; figures only become floats when they
are rendered to JSON.

The people list and the expense list are two separate reads. If the
backend does not give snapshot isolation, a concurrent write can make
a result reflect a torn read across expenses. That is accepted here.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

import structlog

from splitledger.config import BalanceSource
from splitledger.errors import NotFoundError
from splitledger.models.ledger import (
    ZERO,
    Expense,
    Person,
    PersonBalance,
    PersonWithBalance,
    TotalBalances,
)
from splitledger.services.storage import LedgerStorageInterface


logger = structlog.get_logger(__name__)


def compute_person_balance(
    person: Person,
    expenses: Iterable[Expense],
    paid_amounts: Optional[Mapping[str, Decimal]] = None,
) -> PersonBalance:
    """
    Reduce one person's expenses to a balance.

    Args:
        person: The person the balance is for
        expenses: Their expenses; expenses attributed to anyone else are ignored
        paid_amounts: Optional expense id -> paid amount override. When given,
                      it replaces each expense's cached amountPaid.
    """
    total_owed = ZERO
    total_owing = ZERO
    transaction_count = 0

    for expense in expenses:
        if expense.paid_for_person_id != person.id:
            continue
        transaction_count += 1

        if paid_amounts is not None:
            paid = paid_amounts.get(expense.id, ZERO)
        else:
            paid = expense.amount_paid
        remaining = expense.amount_paid_for - paid

        if remaining > 0:
            total_owed += remaining
        elif remaining < 0:
            total_owing += -remaining

    return PersonBalance(
        total_owed=total_owed,
        total_owing=total_owing,
        net_balance=total_owed - total_owing,
        transaction_count=transaction_count,
    )


def compute_total_balances(
    balances: Iterable[Union[PersonBalance, PersonWithBalance]],
) -> TotalBalances:
    """Sum per-person balances into ledger-wide figures."""
    total_owed = ZERO
    total_owing = ZERO
    net_balance = ZERO
    for balance in balances:
        total_owed += balance.total_owed
        total_owing += balance.total_owing
        net_balance += balance.net_balance
    return TotalBalances(
        total_owed=total_owed,
        total_owing=total_owing,
        net_balance=net_balance,
    )


class BalanceEngine:
    """
    Computes balances from what is currently in storage.

    GUARANTEES:
    - Read only
    - Totals are the sum of the per-person figures it returns
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        source: BalanceSource = BalanceSource.CACHED,
    ):
        self._storage = storage
        self._source = source

    @property
    def source(self) -> BalanceSource:
        return self._source

    async def _paid_amounts(
        self,
        expenses: Iterable[Expense],
    ) -> Optional[dict[str, Decimal]]:
        """Sum payment history per expense, when configured to do so."""
        if self._source != BalanceSource.PAYMENTS:
            return None

        paid = {}
        for expense in expenses:
            payments = await self._storage.list_payments(expense.id)
            paid[expense.id] = sum((p.amount for p in payments), ZERO)
            if paid[expense.id] != expense.amount_paid:
                logger.warning(
                    "amount_paid_drift",
                    expense_id=expense.id,
                    cached=str(expense.amount_paid),
                    from_payments=str(paid[expense.id]),
                )
        return paid

    async def _balances_for(self, people: list[Person]) -> list[PersonWithBalance]:
        expenses = await self._storage.list_expenses()
        paid_amounts = await self._paid_amounts(expenses)

        by_person: dict[str, list[Expense]] = defaultdict(list)
        for expense in expenses:
            by_person[expense.paid_for_person_id].append(expense)

        return [
            PersonWithBalance.from_parts(
                person,
                compute_person_balance(person, by_person[person.id], paid_amounts),
            )
            for person in people
        ]

    async def people_with_balances(self) -> list[PersonWithBalance]:
        """Every person with their derived balance."""
        people = await self._storage.list_people()
        result = await self._balances_for(people)
        logger.debug("balances_computed", people=len(result), source=self._source.value)
        return result

    async def person_balance(self, person_id: str) -> PersonWithBalance:
        """
        One person's balance.

        Raises:
            NotFoundError: If the person does not exist
        """
        person = await self._storage.get_person(person_id)
        if person is None:
            raise NotFoundError("person", person_id)
        result = await self._balances_for([person])
        return result[0]

    async def total_balances(self) -> TotalBalances:
        """Ledger-wide figures, summed from the per-person balances."""
        return compute_total_balances(await self.people_with_balances())
