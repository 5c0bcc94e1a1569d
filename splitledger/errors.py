"""
Ledger Error Taxonomy

Every failure the core can produce is a LedgerError carrying an
ErrorKind. Request layers map the kind to a status code; the core
itself never deals in status codes.

Orphaned records are not an error: expenses whose person was deleted
are dropped from read results instead.
"""

from enum import Enum
from typing import Optional

from splitledger.models.ledger import Expense, ValidationIssue


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    STORE_UNAVAILABLE = "store_unavailable"
    PARTIAL_FAILURE = "partial_failure"


class LedgerError(Exception):
    """Base exception for ledger operations."""

    kind: ErrorKind = ErrorKind.STORE_UNAVAILABLE


class NotFoundError(LedgerError):
    """Referenced person, expense or payment does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class InvalidInputError(LedgerError):
    """Malformed or out-of-range input. Never retried."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


class StorageError(LedgerError):
    """Base exception for storage backend failures."""

    kind = ErrorKind.STORE_UNAVAILABLE


class StoreUnavailableError(StorageError):
    """
    Could not reach or write to the storage backend.

    Transient: reads may be retried. Payment application may only be
    retried safely with an idempotency key.
    """
    pass


class PaymentPartiallyAppliedError(LedgerError):
    """
    The expense was updated but its payment record could not be written.

    The expense's amountPaid now includes the payment; the payment
    history does not.
    """

    kind = ErrorKind.PARTIAL_FAILURE

    def __init__(self, expense: Expense, cause: Exception):
        self.expense = expense
        self.cause = cause
        super().__init__(
            f"Expense {expense.id} was updated but the payment record "
            f"was not written: {cause}"
        )
