"""
Main Orchestrator for Split Ledger

This module ties together all the components and defines the
operations the request layers (HTTP API, dashboard) call:
1. People (list, create, delete)
2. Expenses (list, get, details with payments, create, patch)
3. Payments (apply)
4. Balances (per person, totals)

DESIGN DECISION: The store is constructed once, by the process entry
point, and injected into every component. There is no module-level store.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.balances import BalanceEngine
from splitledger.config import BalanceSource, Settings, StorageBackend, get_settings
from splitledger.errors import InvalidInputError, NotFoundError
from splitledger.models.ledger import (
    Expense,
    ExpenseUpdate,
    ExpenseWithPayments,
    ExpenseWithPerson,
    NewExpense,
    NewPerson,
    Payment,
    PaymentOutcome,
    PaymentType,
    Person,
    PersonWithBalance,
    TotalBalances,
    ValidationIssue,
)
from splitledger.payments import PaymentApplication
from splitledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from splitledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class LedgerService:
    """
    Facade over the ledger components.

    Every mutating operation is written to the audit trail.
    Errors propagate as LedgerError subclasses with their kind intact.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        balance_engine: Optional[BalanceEngine] = None,
        payments: Optional[PaymentApplication] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger
        self._balances = balance_engine or BalanceEngine(storage)
        self._payments = payments or PaymentApplication(
            storage,
            validator=self._validator,
            audit_logger=audit_logger,
        )

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    # -------------------------------------------------------------------------
    # People
    # -------------------------------------------------------------------------

    async def list_people(self) -> list[Person]:
        return await self._storage.list_people()

    async def create_person(
        self,
        person: NewPerson,
        correlation_id: Optional[UUID] = None,
    ) -> Person:
        created = await self._storage.create_person(person)
        if self._audit_logger:
            await self._audit_logger.log_person_created(
                person_id=created.id,
                name=created.name,
                correlation_id=correlation_id,
            )
        return created

    async def delete_person(
        self,
        person_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a person.

        Their expenses are left in place and drop out of expense reads.

        Raises:
            NotFoundError: If the person does not exist
        """
        orphaned = [
            e for e in await self._storage.list_expenses()
            if e.paid_for_person_id == person_id
        ]
        if not await self._storage.delete_person(person_id):
            raise NotFoundError("person", person_id)

        if orphaned:
            logger.warning(
                "expenses_orphaned",
                person_id=person_id,
                expense_ids=[e.id for e in orphaned],
            )
        if self._audit_logger:
            await self._audit_logger.log_person_deleted(
                person_id=person_id,
                orphaned_expenses=len(orphaned),
                correlation_id=correlation_id,
            )

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    async def people_with_balances(self) -> list[PersonWithBalance]:
        return await self._balances.people_with_balances()

    async def person_balance(self, person_id: str) -> PersonWithBalance:
        return await self._balances.person_balance(person_id)

    async def total_balances(self) -> TotalBalances:
        return await self._balances.total_balances()

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def list_expenses(self) -> list[ExpenseWithPerson]:
        return await self._storage.list_expenses()

    async def get_expense(self, expense_id: str) -> ExpenseWithPerson:
        """
        Raises:
            NotFoundError: If the expense is unknown or orphaned
        """
        expense = await self._storage.get_expense(expense_id)
        if expense is None:
            raise NotFoundError("expense", expense_id)
        return expense

    async def get_expense_details(self, expense_id: str) -> ExpenseWithPayments:
        """An expense with its payment history, oldest payment first."""
        expense = await self.get_expense(expense_id)
        payments = await self._storage.list_payments(expense_id)
        payments.sort(key=lambda p: p.created_at)
        return ExpenseWithPayments(**expense.model_dump(), payments=payments)

    async def list_payments(self, expense_id: str) -> list[Payment]:
        await self.get_expense(expense_id)
        return await self._storage.list_payments(expense_id)

    async def create_expense(
        self,
        expense: NewExpense,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Raises:
            InvalidInputError: Bad amount, or the person does not exist
        """
        expense = self._validator.new_expense(expense)
        if await self._storage.get_person(expense.paid_for_person_id) is None:
            raise InvalidInputError(
                "Invalid expense data",
                [ValidationIssue(
                    field="paidForPersonId",
                    issue_type="unknown_person",
                    message=f"No person with id {expense.paid_for_person_id}",
                )],
            )

        created = await self._storage.create_expense(expense)
        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                expense_id=created.id,
                person_id=created.paid_for_person_id,
                amount=str(created.amount_paid_for),
                category=created.category,
                correlation_id=correlation_id,
            )
        return created

    async def update_expense(
        self,
        expense_id: str,
        update: ExpenseUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Patch an expense's descriptive fields."""
        await self.get_expense(expense_id)

        changes = update.model_dump(exclude_unset=True)
        updated = await self._storage.update_expense(expense_id, changes)
        if updated is None:
            raise NotFoundError("expense", expense_id)

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense_id=expense_id,
                fields=sorted(changes),
                correlation_id=correlation_id,
            )
        return updated

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    async def apply_payment(
        self,
        expense_id: str,
        amount: Any,
        payment_type: Any = PaymentType.FULL,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentOutcome:
        return await self._payments.apply_payment(
            expense_id=expense_id,
            amount=amount,
            payment_type=payment_type,
            notes=notes,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id or create_correlation_id(),
        )


@dataclass
class LedgerComponents:
    """Everything the process entry point owns."""

    service: LedgerService
    storage: LedgerStorageInterface
    audit_storage: Optional[AuditStorageInterface]
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStorageInterface] = None,
) -> LedgerComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        storage: Pre-built ledger store. Overrides the configured backend.

    Returns:
        LedgerComponents wired around one store
    """
    settings = settings or get_settings()
    app_settings = settings.app

    sheets_client = None
    audit_storage: Optional[AuditStorageInterface] = None

    if storage is None:
        if app_settings.storage_backend == StorageBackend.GOOGLE_SHEETS:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        else:
            storage = InMemoryLedgerStorage()
            audit_storage = InMemoryAuditStorage()
    else:
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    validator = LedgerValidator(Decimal(str(app_settings.max_amount)))

    service = LedgerService(
        storage=storage,
        balance_engine=BalanceEngine(storage, source=app_settings.balance_source),
        payments=PaymentApplication(
            storage,
            validator=validator,
            audit_logger=audit_logger,
        ),
        validator=validator,
        audit_logger=audit_logger,
    )

    logger.info(
        "components_created",
        storage=type(storage).__name__,
        balance_source=BalanceSource(app_settings.balance_source).value,
    )

    return LedgerComponents(
        service=service,
        storage=storage,
        audit_storage=audit_storage,
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )


SAMPLE_PEOPLE = [
    NewPerson(name="John Smith", initials="JS", color="#00D4AA"),
    NewPerson(name="Emily Rodriguez", initials="EM", color="#FF6B6B"),
    NewPerson(name="Mike Johnson", initials="MJ", color="#F39C12"),
]


async def seed_sample_data(service: LedgerService) -> bool:
    """
    Insert demo people and expenses into an empty ledger.

    The paid demo expense is paid through a real payment so the
    payment history matches its amountPaid.

    Returns:
        True if data was inserted, False if the ledger was not empty
    """
    if await service.list_people():
        return False

    people = [await service.create_person(p) for p in SAMPLE_PEOPLE]

    await service.create_expense(NewExpense(
        amount_paid_for=Decimal("45.50"),
        paid_for_person_id=people[0].id,
        payment_method="upi",
        bank_app="gpay",
        category="food",
        notes="Lunch at restaurant",
    ))
    movie = await service.create_expense(NewExpense(
        amount_paid_for=Decimal("32.00"),
        paid_for_person_id=people[1].id,
        payment_method="credit_card",
        category="other",
        notes="Movie tickets",
    ))
    await service.apply_payment(movie.id, movie.amount_paid_for, PaymentType.FULL)

    logger.info("sample_data_seeded", people=len(people))
    return True
