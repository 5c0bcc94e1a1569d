"""
Payment Application

Applying a payment is the only way an expense moves from UNPAID to PAID.

Flow:
1. Validate the amount (positive decimal, at most two fractional digits)
2. Fetch the expense (NotFound if missing or orphaned)
3. newAmountPaid = amountPaid + amount
4. isPaid = newAmountPaid >= amountPaidFor
5. Write the expense back; paidAt is set only on the unpaid -> paid crossing
6. Append the payment record

Steps 5 and 6 are two separate writes. If step 6 fails after step 5
succeeded, the caller gets PaymentPartiallyAppliedError.

CRITICAL: Nothing here ever lowers amountPaid or flips isPaid back to
false. There is no refund and no undo.
"""

import asyncio
import weakref
from typing import Any, Optional
from uuid import UUID

import structlog

from splitledger.audit import AuditLogger
from splitledger.errors import NotFoundError, PaymentPartiallyAppliedError
from splitledger.models.ledger import (
    Expense,
    ExpenseWithPerson,
    Payment,
    PaymentOutcome,
    PaymentRequest,
    PaymentType,
    to_cents,
    utc_now,
)
from splitledger.services.storage import LedgerStorageInterface
from splitledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)


def strip_person(expense: ExpenseWithPerson) -> Expense:
    return Expense(**expense.model_dump(exclude={"person"}))


class PaymentApplication:
    """
    Applies payments to expenses.

    Applications on the same expense are serialized with a per-expense
    lock, so concurrent payments inside one process never lose an
    increment. Separate processes sharing a store are not coordinated.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger
        # Entries vanish once no application holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, expense_id: str) -> asyncio.Lock:
        lock = self._locks.get(expense_id)
        if lock is None:
            lock = self._locks[expense_id] = asyncio.Lock()
        return lock

    async def _find_replay(
        self,
        expense_id: str,
        idempotency_key: str,
    ) -> Optional[Payment]:
        for payment in await self._storage.list_payments(expense_id):
            if payment.idempotency_key == idempotency_key:
                return payment
        return None

    async def apply_payment(
        self,
        expense_id: str,
        amount: Any,
        payment_type: Any = PaymentType.FULL,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentOutcome:
        """
        Apply a payment to an expense.

        Args:
            expense_id: Expense to pay towards
            amount: Raw amount (str, int, float or Decimal)
            payment_type: full, partial or custom (informational)
            notes: Optional free text stored on the payment
            idempotency_key: If a payment with this key already exists on
                             the expense, nothing is written again
            correlation_id: Ties the audit events of one request together

        Raises:
            InvalidInputError: Bad amount or payment type
            NotFoundError: Unknown or orphaned expense
            StoreUnavailableError: Storage failed before anything was written
            PaymentPartiallyAppliedError: Expense written, payment record not
        """
        request = self._validator.payment_request(
            amount=amount,
            payment_type=payment_type,
            notes=notes,
            idempotency_key=idempotency_key,
        )

        async with self._lock_for(expense_id):
            current = await self._storage.get_expense(expense_id)
            if current is None:
                raise NotFoundError("expense", expense_id)

            if request.idempotency_key:
                previous = await self._find_replay(expense_id, request.idempotency_key)
                if previous is not None:
                    return await self._replayed(current, previous, correlation_id)

            return await self._apply(current, request, correlation_id)

    async def _replayed(
        self,
        current: ExpenseWithPerson,
        previous: Payment,
        correlation_id: Optional[UUID],
    ) -> PaymentOutcome:
        logger.info(
            "payment_replayed",
            expense_id=current.id,
            payment_id=previous.id,
        )
        if self._audit_logger:
            await self._audit_logger.log_payment_replayed(
                expense_id=current.id,
                payment_id=previous.id,
                idempotency_key=previous.idempotency_key,
                correlation_id=correlation_id,
            )
        return PaymentOutcome(
            expense=strip_person(current),
            payment=previous,
            newly_paid=False,
            replayed=True,
        )

    async def _apply(
        self,
        current: ExpenseWithPerson,
        request: PaymentRequest,
        correlation_id: Optional[UUID],
    ) -> PaymentOutcome:
        new_amount_paid = to_cents(current.amount_paid + request.amount)
        is_paid_now = new_amount_paid >= current.amount_paid_for
        newly_paid = is_paid_now and not current.is_paid

        updates: dict[str, Any] = {
            "amount_paid": new_amount_paid,
            "is_paid": is_paid_now,
        }
        if newly_paid:
            updates["paid_at"] = utc_now()

        updated = await self._storage.update_expense(current.id, updates)
        if updated is None:
            # Deleted between the read and the write
            raise NotFoundError("expense", current.id)

        try:
            payment = await self._storage.create_payment(current.id, request)
        except Exception as e:
            logger.error(
                "payment_record_failed",
                expense_id=current.id,
                amount=str(request.amount),
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_payment_partially_applied(
                    expense_id=current.id,
                    amount=str(request.amount),
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise PaymentPartiallyAppliedError(updated, e) from e

        logger.info(
            "payment_applied",
            expense_id=current.id,
            payment_id=payment.id,
            amount=str(payment.amount),
            amount_paid=str(updated.amount_paid),
            is_paid=updated.is_paid,
        )
        if self._audit_logger:
            await self._audit_logger.log_payment_applied(
                expense_id=current.id,
                payment_id=payment.id,
                amount=str(payment.amount),
                amount_paid=str(updated.amount_paid),
                payment_type=payment.payment_type.value,
                correlation_id=correlation_id,
            )
            if newly_paid:
                await self._audit_logger.log_expense_paid(
                    expense_id=current.id,
                    amount_paid_for=str(updated.amount_paid_for),
                    amount_paid=str(updated.amount_paid),
                    correlation_id=correlation_id,
                )

        return PaymentOutcome(
            expense=updated,
            payment=payment,
            newly_paid=newly_paid,
        )
