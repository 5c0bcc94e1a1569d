"""Tests for the LedgerService facade and component wiring."""

import logging
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import run
from splitledger.audit import configure_logging
from splitledger.config import BalanceSource, Settings, StorageBackend
from splitledger.errors import InvalidInputError, NotFoundError
from splitledger.models.audit import AuditEventType
from splitledger.models.ledger import (
    ExpenseUpdate,
    NewExpense,
    NewPerson,
    PaymentType,
)
from splitledger.orchestrator import (
    SAMPLE_PEOPLE,
    create_app_components,
    seed_sample_data,
)
from splitledger.services.storage import InMemoryLedgerStorage


def new_expense(person_id, amount="45.50"):
    return NewExpense(
        amount_paid_for=Decimal(amount),
        paid_for_person_id=person_id,
        category="food",
        payment_method="upi",
    )


class TestPeople:
    """Tests for person operations."""

    def test_create_person_is_audited(self, service, audit_storage):
        correlation_id = uuid4()
        created = run(service.create_person(
            NewPerson(name="Emily Rodriguez", initials="EM", color="#FF6B6B"),
            correlation_id=correlation_id,
        ))
        events = run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [AuditEventType.PERSON_CREATED]
        assert events[0].entity_id == created.id

    def test_delete_unknown_person(self, service):
        with pytest.raises(NotFoundError):
            run(service.delete_person("missing"))

    def test_delete_person_orphans_expenses(self, service, storage, audit_storage, person, lunch):
        """Test that expenses stay stored but drop out of reads."""
        run(service.delete_person(person.id))

        assert run(service.list_people()) == []
        assert run(service.list_expenses()) == []
        with pytest.raises(NotFoundError):
            run(service.get_expense(lunch.id))

        # Still in the store, just unreachable through reads
        assert run(storage.update_expense(lunch.id, {})) is not None

        events = run(audit_storage.get_events_by_entity("person", person.id))
        assert events[-1].event_type == AuditEventType.PERSON_DELETED
        assert events[-1].details["orphaned_expenses"] == 1


class TestExpenses:
    """Tests for expense operations."""

    def test_create_expense(self, service, person):
        created = run(service.create_expense(new_expense(person.id, "45.5")))
        assert str(created.amount_paid_for) == "45.50"
        assert created.is_paid is False

        listed = run(service.list_expenses())
        assert [e.id for e in listed] == [created.id]
        assert listed[0].person.id == person.id

    def test_create_expense_for_unknown_person(self, service):
        with pytest.raises(InvalidInputError) as exc_info:
            run(service.create_expense(new_expense("missing")))
        assert exc_info.value.issues[0].issue_type == "unknown_person"
        assert run(service.storage.list_expenses()) == []

    def test_get_unknown_expense(self, service):
        with pytest.raises(NotFoundError):
            run(service.get_expense("missing"))

    def test_update_expense(self, service, lunch):
        updated = run(service.update_expense(
            lunch.id, ExpenseUpdate(notes="Team lunch", bank_app="paytm")
        ))
        assert updated.notes == "Team lunch"
        assert updated.bank_app == "paytm"
        assert updated.amount_paid_for == Decimal("45.50")

    def test_update_unknown_expense(self, service):
        with pytest.raises(NotFoundError):
            run(service.update_expense("missing", ExpenseUpdate(notes="x")))

    def test_details_lists_payments_oldest_first(self, service, lunch):
        run(service.apply_payment(lunch.id, "20.00", PaymentType.PARTIAL))
        run(service.apply_payment(lunch.id, "25.50"))

        details = run(service.get_expense_details(lunch.id))

        assert details.is_paid is True
        assert [str(p.amount) for p in details.payments] == ["20.00", "25.50"]
        assert details.person.name == "John Smith"

    def test_list_payments_unknown_expense(self, service):
        with pytest.raises(NotFoundError):
            run(service.list_payments("missing"))


class TestBalances:
    """Tests for balances through the service."""

    def test_overpayment_shows_as_owing(self, service, person, lunch):
        run(service.apply_payment(lunch.id, "20.00"))
        run(service.apply_payment(lunch.id, "25.50"))
        run(service.apply_payment(lunch.id, "5.00"))

        balance = run(service.person_balance(person.id))
        totals = run(service.total_balances())

        assert balance.total_owed == Decimal("0")
        assert balance.total_owing == Decimal("5.00")
        assert totals.total_owing == Decimal("5.00")
        assert totals.net_balance == Decimal("-5.00")


class TestComponents:
    """Tests for create_app_components."""

    def test_memory_backend(self):
        settings = Settings()
        components = create_app_components(settings)
        assert components.sheets_client is None
        assert components.audit_logger.storage is components.audit_storage

    def test_injected_storage(self):
        storage = InMemoryLedgerStorage()
        components = create_app_components(Settings(), storage=storage)
        assert components.storage is storage
        assert components.service.storage is storage

    def test_reads_backend_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LEDGER_BALANCE_SOURCE", "payments")
        settings = Settings()
        assert settings.app.storage_backend == StorageBackend.MEMORY
        assert settings.app.balance_source == BalanceSource.PAYMENTS
        components = create_app_components(settings)
        assert isinstance(components.storage, InMemoryLedgerStorage)


class TestLogging:
    """Tests for configure_logging."""

    def test_debug_mode_forces_debug_level(self):
        try:
            configure_logging("WARNING", "json", debug=True)
            assert logging.getLogger().level == logging.DEBUG
        finally:
            configure_logging("INFO", "json")
        assert logging.getLogger().level == logging.INFO

    def test_debug_mode_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DEBUG_MODE", "true")
        assert Settings().app.debug_mode is True


class TestSeed:
    """Tests for demo data."""

    def test_seed_empty_ledger(self, service):
        assert run(seed_sample_data(service)) is True

        people = run(service.list_people())
        assert [p.name for p in people] == [p.name for p in SAMPLE_PEOPLE]

        expenses = run(service.list_expenses())
        assert len(expenses) == 2
        movie = next(e for e in expenses if e.notes == "Movie tickets")
        assert movie.is_paid is True
        assert movie.amount_paid == Decimal("32.00")
        assert len(run(service.list_payments(movie.id))) == 1

        totals = run(service.total_balances())
        assert totals.total_owed == Decimal("45.50")

    def test_seed_skips_populated_ledger(self, service, person):
        assert run(seed_sample_data(service)) is False
        assert len(run(service.list_people())) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
