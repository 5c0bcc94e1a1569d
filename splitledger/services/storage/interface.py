"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep one set of business logic over several backends
2. Use in-memory storage for testing and local runs
3. Swap Google Sheets for a real database later

The interface is intentionally simple - we're not building a full ORM.
Each method is atomic for a single record. There are no multi-record
transactions: business operations issue their writes one after another
against a single-writer, last-write-wins store.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from splitledger.errors import StorageError, StoreUnavailableError
from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import (
    Expense,
    ExpenseWithPerson,
    NewExpense,
    NewPerson,
    Payment,
    PaymentRequest,
    Person,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (in-memory, Google Sheets, ...)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # People
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_people(self) -> list[Person]:
        """Return every stored person."""
        pass

    @abstractmethod
    async def get_person(self, person_id: str) -> Optional[Person]:
        """
        Retrieve a person by ID.

        Returns:
            The person if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_person(self, person: NewPerson) -> Person:
        """
        Store a new person.

        Returns:
            The stored person with its assigned ID

        Raises:
            StoreUnavailableError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_person(self, person_id: str) -> bool:
        """
        Delete a person by ID.

        Expenses referencing the person are NOT deleted; they become
        orphaned and drop out of expense reads.

        Returns:
            True iff a record existed and was removed
        """
        pass

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_expenses(self) -> list[ExpenseWithPerson]:
        """
        List expenses joined with their person, newest first.

        Expenses whose person no longer exists are silently skipped.
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: str) -> Optional[ExpenseWithPerson]:
        """
        Retrieve an expense joined with its person.

        Returns:
            The expense, or None if it is unknown or orphaned
        """
        pass

    @abstractmethod
    async def create_expense(self, expense: NewExpense) -> Expense:
        """
        Store a new expense.

        Defaults: isPaid=False, amountPaid=0, paidAt=None, createdAt=now.
        """
        pass

    @abstractmethod
    async def update_expense(
        self,
        expense_id: str,
        updates: dict[str, Any],
    ) -> Optional[Expense]:
        """
        Merge the given fields into an existing expense.

        Args:
            expense_id: The expense's unique identifier
            updates: Attribute name -> new value (snake_case names)

        Returns:
            The updated expense, or None if the ID is unknown
        """
        pass

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_payments(self, expense_id: str) -> list[Payment]:
        """Return all payments recorded against an expense (any order)."""
        pass

    @abstractmethod
    async def create_payment(
        self,
        expense_id: str,
        payment: PaymentRequest,
    ) -> Payment:
        """
        Append a payment record.

        Assigns the ID and createdAt=now. Does not touch the expense.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


def newest_first(expenses: list[ExpenseWithPerson]) -> list[ExpenseWithPerson]:
    """
    Order expenses by createdAt, newest first.

    Expenses sharing a timestamp keep reverse insertion order.
    """
    ordered = list(reversed(expenses))
    ordered.sort(key=lambda e: e.created_at, reverse=True)
    return ordered


__all__ = [
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "StorageError",
    "StoreUnavailableError",
    "newest_first",
]
