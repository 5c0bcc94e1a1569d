"""Tests for balance computation."""

from decimal import Decimal

import pytest

from conftest import run
from splitledger.balances import (
    BalanceEngine,
    compute_person_balance,
    compute_total_balances,
)
from splitledger.config import BalanceSource
from splitledger.errors import NotFoundError
from splitledger.models.ledger import (
    Expense,
    NewExpense,
    NewPerson,
    PaymentRequest,
    Person,
)


JOHN = Person(id="p1", name="John Smith", initials="JS", color="#00D4AA")
EMILY = Person(id="p2", name="Emily Rodriguez", initials="EM", color="#FF6B6B")


def expense(expense_id, person_id, amount_paid_for, amount_paid="0"):
    return Expense(
        id=expense_id,
        amount_paid_for=Decimal(amount_paid_for),
        amount_paid=Decimal(amount_paid),
        paid_for_person_id=person_id,
        category="food",
        payment_method="upi",
    )


class TestComputePersonBalance:
    """Tests for the per-person reduction."""

    def test_no_expenses(self):
        balance = compute_person_balance(JOHN, [])
        assert balance.total_owed == Decimal("0")
        assert balance.total_owing == Decimal("0")
        assert balance.net_balance == Decimal("0")
        assert balance.transaction_count == 0

    def test_outstanding_expense(self):
        balance = compute_person_balance(JOHN, [expense("e1", "p1", "45.50", "20.00")])
        assert balance.total_owed == Decimal("25.50")
        assert balance.total_owing == Decimal("0")
        assert balance.net_balance == Decimal("25.50")
        assert balance.transaction_count == 1

    def test_overpaid_expense(self):
        balance = compute_person_balance(JOHN, [expense("e1", "p1", "45.50", "50.50")])
        assert balance.total_owed == Decimal("0")
        assert balance.total_owing == Decimal("5.00")
        assert balance.net_balance == Decimal("-5.00")

    def test_settled_expense_still_counted(self):
        balance = compute_person_balance(JOHN, [expense("e1", "p1", "32.00", "32.00")])
        assert balance.total_owed == Decimal("0")
        assert balance.total_owing == Decimal("0")
        assert balance.transaction_count == 1

    def test_mixed_expenses(self):
        balance = compute_person_balance(JOHN, [
            expense("e1", "p1", "45.50", "20.00"),
            expense("e2", "p1", "10.00", "12.50"),
            expense("e3", "p1", "0.10"),
            expense("e4", "p1", "0.20"),
        ])
        assert balance.total_owed == Decimal("25.80")
        assert balance.total_owing == Decimal("2.50")
        assert balance.net_balance == balance.total_owed - balance.total_owing
        assert balance.transaction_count == 4

    def test_ignores_other_people(self):
        balance = compute_person_balance(JOHN, [expense("e1", "p2", "45.50")])
        assert balance.transaction_count == 0
        assert balance.total_owed == Decimal("0")

    def test_paid_amounts_override(self):
        """Test that payment sums replace the cached paid amount."""
        balance = compute_person_balance(
            JOHN,
            [expense("e1", "p1", "45.50", "45.50")],
            paid_amounts={"e1": Decimal("20.00")},
        )
        assert balance.total_owed == Decimal("25.50")

    def test_paid_amounts_missing_expense_counts_as_unpaid(self):
        balance = compute_person_balance(
            JOHN,
            [expense("e1", "p1", "45.50", "45.50")],
            paid_amounts={},
        )
        assert balance.total_owed == Decimal("45.50")


class TestComputeTotalBalances:
    """Tests for the ledger-wide sums."""

    def test_empty(self):
        totals = compute_total_balances([])
        assert totals.total_owed == Decimal("0")
        assert totals.net_balance == Decimal("0")

    def test_totals_are_sum_of_people(self):
        expenses = [
            expense("e1", "p1", "45.50", "20.00"),
            expense("e2", "p2", "32.00", "40.00"),
        ]
        balances = [
            compute_person_balance(JOHN, expenses),
            compute_person_balance(EMILY, expenses),
        ]
        totals = compute_total_balances(balances)
        assert totals.total_owed == Decimal("25.50")
        assert totals.total_owing == Decimal("8.00")
        assert totals.net_balance == Decimal("17.50")
        assert totals.net_balance == totals.total_owed - totals.total_owing


class TestBalanceEngine:
    """Tests for balances read from storage."""

    def test_people_with_balances(self, storage, person, lunch):
        other = run(storage.create_person(
            NewPerson(name="Mike Johnson", initials="MJ", color="#F39C12")
        ))
        engine = BalanceEngine(storage)

        result = {p.id: p for p in run(engine.people_with_balances())}

        assert result[person.id].total_owed == Decimal("45.50")
        assert result[person.id].transaction_count == 1
        assert result[other.id].total_owed == Decimal("0")
        assert result[other.id].transaction_count == 0

    def test_person_balance_unknown(self, storage):
        with pytest.raises(NotFoundError):
            run(BalanceEngine(storage).person_balance("missing"))

    def test_orphaned_expenses_do_not_count(self, storage, person, lunch):
        engine = BalanceEngine(storage)
        run(storage.delete_person(person.id))
        totals = run(engine.total_balances())
        assert totals.total_owed == Decimal("0")

    def test_totals_match_people(self, storage, person, lunch):
        run(storage.update_expense(lunch.id, {"amount_paid": Decimal("50.50")}))
        other = run(storage.create_person(
            NewPerson(name="Emily Rodriguez", initials="EM", color="#FF6B6B")
        ))
        run(storage.create_expense(NewExpense(
            amount_paid_for=Decimal("32.00"),
            paid_for_person_id=other.id,
            category="other",
            payment_method="credit_card",
        )))
        engine = BalanceEngine(storage)

        people = run(engine.people_with_balances())
        totals = run(engine.total_balances())

        assert totals.total_owed == sum(p.total_owed for p in people)
        assert totals.total_owing == sum(p.total_owing for p in people)
        assert totals.total_owed == Decimal("32.00")
        assert totals.total_owing == Decimal("5.00")
        assert totals.net_balance == Decimal("27.00")

    def test_payments_source_reads_payment_history(self, storage, person, lunch):
        """Test that PAYMENTS mode ignores a drifted cached amount."""
        run(storage.create_payment(lunch.id, PaymentRequest(amount=Decimal("20.00"))))
        run(storage.update_expense(lunch.id, {"amount_paid": Decimal("45.50")}))

        cached = run(BalanceEngine(storage).person_balance(person.id))
        derived = run(
            BalanceEngine(storage, source=BalanceSource.PAYMENTS).person_balance(person.id)
        )

        assert cached.total_owed == Decimal("0")
        assert derived.total_owed == Decimal("25.50")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
