"""
In-Memory Storage Implementation

Keeps every record in process-local dicts. Used for tests, local runs
and as the default backend when no durable store is configured.

Records are copied on the way in and on the way out, so callers can
never mutate stored state by accident.
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import (
    Expense,
    ExpenseWithPerson,
    NewExpense,
    NewPerson,
    Payment,
    PaymentRequest,
    Person,
    utc_now,
)
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    newest_first,
)


logger = structlog.get_logger(__name__)


def new_id() -> str:
    """Generate an opaque record identifier."""
    return uuid4().hex


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger store."""

    def __init__(self):
        self._people: dict[str, Person] = {}
        self._expenses: dict[str, Expense] = {}
        self._payments: dict[str, Payment] = {}

    # People

    async def list_people(self) -> list[Person]:
        return [p.model_copy() for p in self._people.values()]

    async def get_person(self, person_id: str) -> Optional[Person]:
        person = self._people.get(person_id)
        return person.model_copy() if person else None

    async def create_person(self, person: NewPerson) -> Person:
        stored = Person(id=new_id(), **person.model_dump())
        self._people[stored.id] = stored
        return stored.model_copy()

    async def delete_person(self, person_id: str) -> bool:
        return self._people.pop(person_id, None) is not None

    # Expenses

    def _join(self, expense: Expense) -> Optional[ExpenseWithPerson]:
        person = self._people.get(expense.paid_for_person_id)
        if person is None:
            logger.debug(
                "orphaned_expense_skipped",
                expense_id=expense.id,
                person_id=expense.paid_for_person_id,
            )
            return None
        return ExpenseWithPerson(
            **expense.model_dump(),
            person=person.model_copy(),
        )

    async def list_expenses(self) -> list[ExpenseWithPerson]:
        joined = [self._join(e) for e in self._expenses.values()]
        return newest_first([e for e in joined if e is not None])

    async def get_expense(self, expense_id: str) -> Optional[ExpenseWithPerson]:
        expense = self._expenses.get(expense_id)
        if expense is None:
            return None
        return self._join(expense)

    async def create_expense(self, expense: NewExpense) -> Expense:
        stored = Expense(
            id=new_id(),
            **expense.model_dump(),
            created_at=utc_now(),
        )
        self._expenses[stored.id] = stored
        return stored.model_copy()

    async def update_expense(
        self,
        expense_id: str,
        updates: dict[str, Any],
    ) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        if expense is None:
            return None

        merged = {**expense.model_dump(), **updates, "id": expense.id}
        updated = Expense.model_validate(merged)
        self._expenses[expense_id] = updated
        return updated.model_copy()

    # Payments

    async def list_payments(self, expense_id: str) -> list[Payment]:
        return [
            p.model_copy()
            for p in self._payments.values()
            if p.expense_id == expense_id
        ]

    async def create_payment(
        self,
        expense_id: str,
        payment: PaymentRequest,
    ) -> Payment:
        stored = Payment(
            id=new_id(),
            expense_id=expense_id,
            **payment.model_dump(),
            created_at=utc_now(),
        )
        self._payments[stored.id] = stored
        return stored.model_copy()


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy())
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
