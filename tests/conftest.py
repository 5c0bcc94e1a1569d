"""Shared fixtures for the Split Ledger tests."""

import asyncio
from decimal import Decimal

import pytest

from splitledger.audit import AuditLogger
from splitledger.models.ledger import NewExpense, NewPerson
from splitledger.orchestrator import LedgerService
from splitledger.payments import PaymentApplication
from splitledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from splitledger.validation import LedgerValidator


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def validator():
    return LedgerValidator(max_amount=Decimal("10000000"))


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def payments(storage, validator, audit_logger):
    return PaymentApplication(storage, validator=validator, audit_logger=audit_logger)


@pytest.fixture
def service(storage, validator, audit_logger, payments):
    return LedgerService(
        storage,
        payments=payments,
        validator=validator,
        audit_logger=audit_logger,
    )


@pytest.fixture
def person(storage):
    return run(storage.create_person(
        NewPerson(name="John Smith", initials="JS", color="#00D4AA")
    ))


@pytest.fixture
def lunch(storage, person):
    """A 45.50 unpaid expense for John."""
    return run(storage.create_expense(NewExpense(
        amount_paid_for=Decimal("45.50"),
        paid_for_person_id=person.id,
        category="food",
        payment_method="upi",
        bank_app="gpay",
        notes="Lunch at restaurant",
    )))
