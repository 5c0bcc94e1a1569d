"""
Tests for payment application.

Covers the paid/unpaid transition, overpayment, idempotent replays,
concurrent payments and the partially-applied failure.
"""

import asyncio
import gc
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import run
from splitledger.audit import AuditLogger
from splitledger.errors import (
    ErrorKind,
    InvalidInputError,
    NotFoundError,
    PaymentPartiallyAppliedError,
    StoreUnavailableError,
)
from splitledger.models.audit import AuditEventType
from splitledger.models.ledger import NewExpense, NewPerson, PaymentType
from splitledger.payments import PaymentApplication
from splitledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


class FailingPaymentStorage(InMemoryLedgerStorage):
    """In-memory store whose payment appends always fail."""

    async def create_payment(self, expense_id, payment):
        raise StoreUnavailableError("payments sheet unreachable")


class TestPaymentTransitions:
    """Tests for amountPaid / isPaid / paidAt bookkeeping."""

    def test_partial_then_full_then_over(self, payments, storage, lunch):
        """Test the 45.50 expense paid 20.00, 25.50 then 5.00."""
        first = run(payments.apply_payment(lunch.id, "20.00", PaymentType.PARTIAL))
        assert str(first.expense.amount_paid) == "20.00"
        assert first.expense.is_paid is False
        assert first.expense.paid_at is None
        assert first.newly_paid is False

        second = run(payments.apply_payment(lunch.id, "25.50"))
        assert str(second.expense.amount_paid) == "45.50"
        assert second.expense.is_paid is True
        assert second.expense.paid_at is not None
        assert second.newly_paid is True

        third = run(payments.apply_payment(lunch.id, "5.00", PaymentType.CUSTOM))
        assert str(third.expense.amount_paid) == "50.50"
        assert third.expense.is_paid is True
        assert third.expense.paid_at == second.expense.paid_at
        assert third.newly_paid is False
        assert third.expense.remaining == Decimal("-5.00")

        history = run(storage.list_payments(lunch.id))
        assert sorted(p.amount for p in history) == [
            Decimal("5.00"),
            Decimal("20.00"),
            Decimal("25.50"),
        ]

    def test_single_full_payment(self, payments, lunch):
        outcome = run(payments.apply_payment(lunch.id, Decimal("45.50")))
        assert outcome.expense.is_paid is True
        assert outcome.payment.payment_type == PaymentType.FULL
        assert outcome.payment.amount == Decimal("45.50")

    def test_payment_type_does_not_decide_paid(self, payments, lunch):
        """Test that a 'full' payment of too little leaves the expense unpaid."""
        outcome = run(payments.apply_payment(lunch.id, "10.00", PaymentType.FULL))
        assert outcome.expense.is_paid is False

    def test_result_is_persisted(self, payments, storage, lunch):
        run(payments.apply_payment(lunch.id, "20.00"))
        stored = run(storage.get_expense(lunch.id))
        assert stored.amount_paid == Decimal("20.00")
        assert stored.is_paid is False

    def test_amount_normalized(self, payments, lunch):
        outcome = run(payments.apply_payment(lunch.id, 20))
        assert str(outcome.payment.amount) == "20.00"
        assert str(outcome.expense.amount_paid) == "20.00"

    def test_payment_keeps_notes(self, payments, lunch):
        outcome = run(payments.apply_payment(lunch.id, "5", notes="cash at the door"))
        assert outcome.payment.notes == "cash at the door"


class TestPaymentErrors:
    """Tests for rejected payments."""

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", None, "1.001", "1e30", "1E+40"])
    def test_invalid_amount(self, payments, storage, lunch, amount):
        with pytest.raises(InvalidInputError) as exc_info:
            run(payments.apply_payment(lunch.id, amount))
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT

        stored = run(storage.get_expense(lunch.id))
        assert stored.amount_paid == Decimal("0")
        assert run(storage.list_payments(lunch.id)) == []

    def test_invalid_payment_type(self, payments, lunch):
        with pytest.raises(InvalidInputError):
            run(payments.apply_payment(lunch.id, "5", "refund"))

    def test_unknown_expense(self, payments):
        with pytest.raises(NotFoundError) as exc_info:
            run(payments.apply_payment("missing", "5"))
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_orphaned_expense(self, payments, storage, person, lunch):
        run(storage.delete_person(person.id))
        with pytest.raises(NotFoundError):
            run(payments.apply_payment(lunch.id, "5"))


class TestIdempotency:
    """Tests for replayed payment requests."""

    def test_replay_is_not_applied_twice(self, payments, storage, audit_storage, lunch):
        first = run(payments.apply_payment(lunch.id, "20", idempotency_key="abc"))
        again = run(payments.apply_payment(lunch.id, "20", idempotency_key="abc"))

        assert first.replayed is False
        assert again.replayed is True
        assert again.payment.id == first.payment.id
        assert again.expense.amount_paid == Decimal("20.00")
        assert len(run(storage.list_payments(lunch.id))) == 1

        events = run(audit_storage.get_events_by_entity("expense", lunch.id))
        assert AuditEventType.PAYMENT_REPLAYED in [e.event_type for e in events]

    def test_different_keys_both_apply(self, payments, lunch):
        run(payments.apply_payment(lunch.id, "20", idempotency_key="a"))
        outcome = run(payments.apply_payment(lunch.id, "20", idempotency_key="b"))
        assert outcome.expense.amount_paid == Decimal("40.00")

    def test_no_key_always_applies(self, payments, lunch):
        run(payments.apply_payment(lunch.id, "20"))
        outcome = run(payments.apply_payment(lunch.id, "20"))
        assert outcome.expense.amount_paid == Decimal("40.00")


class TestConcurrency:
    """Tests for concurrent payments on one expense."""

    def test_concurrent_payments_are_all_counted(self, payments, storage, lunch):
        async def pay_many():
            return await asyncio.gather(*[
                payments.apply_payment(lunch.id, "1.50") for _ in range(10)
            ])

        outcomes = run(pay_many())

        stored = run(storage.get_expense(lunch.id))
        assert stored.amount_paid == Decimal("15.00")
        assert len(run(storage.list_payments(lunch.id))) == 10
        assert sorted(o.expense.amount_paid for o in outcomes)[-1] == Decimal("15.00")

    def test_only_one_payment_flips_to_paid(self, payments, lunch):
        async def pay_many():
            return await asyncio.gather(*[
                payments.apply_payment(lunch.id, "45.50") for _ in range(3)
            ])

        outcomes = run(pay_many())
        assert sum(1 for o in outcomes if o.newly_paid) == 1

    def test_locks_are_released_after_use(self, payments, lunch):
        """Test that unknown ids and finished payments leave no lock behind."""
        async def pay_unknown():
            for i in range(1000):
                try:
                    await payments.apply_payment(f"nope-{i}", "1.00")
                except NotFoundError:
                    pass

        run(pay_unknown())
        run(payments.apply_payment(lunch.id, "1.00"))
        gc.collect()

        assert len(payments._locks) == 0


class TestPartialFailure:
    """Tests for an expense written without its payment record."""

    def test_partially_applied(self, validator):
        storage = FailingPaymentStorage()
        audit_storage = InMemoryAuditStorage()
        payments = PaymentApplication(
            storage,
            validator=validator,
            audit_logger=AuditLogger(audit_storage),
        )
        person = run(storage.create_person(
            NewPerson(name="John Smith", initials="JS", color="#00D4AA")
        ))
        expense = run(storage.create_expense(NewExpense(
            amount_paid_for=Decimal("45.50"),
            paid_for_person_id=person.id,
            category="food",
            payment_method="upi",
        )))

        with pytest.raises(PaymentPartiallyAppliedError) as exc_info:
            run(payments.apply_payment(expense.id, "20"))

        error = exc_info.value
        assert error.kind == ErrorKind.PARTIAL_FAILURE
        assert error.expense.amount_paid == Decimal("20.00")
        assert isinstance(error.cause, StoreUnavailableError)

        # The expense write is not rolled back
        stored = run(storage.get_expense(expense.id))
        assert stored.amount_paid == Decimal("20.00")

        events = run(audit_storage.get_events_by_entity("expense", expense.id))
        assert [e.event_type for e in events] == [
            AuditEventType.PAYMENT_PARTIALLY_APPLIED
        ]


class TestPaymentAudit:
    """Tests for audit events written by payment application."""

    def test_events_share_correlation_id(self, payments, audit_storage, lunch):
        correlation_id = uuid4()
        run(payments.apply_payment(lunch.id, "45.50", correlation_id=correlation_id))

        events = run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [
            AuditEventType.PAYMENT_APPLIED,
            AuditEventType.EXPENSE_PAID,
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
