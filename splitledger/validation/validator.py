"""
Ledger Input Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SHAPE VALIDATION:
- Required fields, types, lengths
- Handled by the pydantic input models

STAGE 2 - MONEY VALIDATION:
- Amount parses as a finite decimal
- Amount is positive
- At most two fractional digits (no sub-cent amounts)
- Below the configured sanity ceiling

IMPORTANT: Validation NEVER silently fixes issues. Anything that fails
is reported back as ValidationIssues inside an InvalidInputError.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError

from splitledger.config import get_settings
from splitledger.errors import InvalidInputError
from splitledger.models.ledger import (
    NewExpense,
    PaymentRequest,
    PaymentType,
    ValidationIssue,
    to_cents,
)


def issues_from_validation_error(error: ValidationError) -> list[ValidationIssue]:
    """Translate pydantic errors into ValidationIssues."""
    issues = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        issues.append(ValidationIssue(
            field=field,
            issue_type=err.get("type", "invalid"),
            message=err.get("msg", "Invalid value"),
        ))
    return issues


class LedgerValidator:
    """
    Validates money amounts and request payloads.

    Raises InvalidInputError; never returns a partially valid value.
    """

    def __init__(self, max_amount: Optional[Decimal] = None):
        """
        Args:
            max_amount: Largest accepted amount. Defaults to the
                        configured LEDGER_MAX_AMOUNT.
        """
        if max_amount is None:
            max_amount = Decimal(str(get_settings().app.max_amount))
        self._max_amount = max_amount

    def check_amount(self, raw: Any, field: str = "amount") -> list[ValidationIssue]:
        """Return every issue with a raw money value (empty list if valid)."""
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field} is required",
            )]

        if isinstance(raw, bool):
            return [ValidationIssue(
                field=field,
                issue_type="not_numeric",
                message=f"{field} must be a number",
            )]

        try:
            value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
        except (InvalidOperation, ValueError):
            return [ValidationIssue(
                field=field,
                issue_type="not_numeric",
                message=f"{field} must be a number, got {raw!r}",
                suggested_fix="Use digits with an optional decimal point, e.g. 20.00",
            )]

        if not value.is_finite():
            return [ValidationIssue(
                field=field,
                issue_type="not_finite",
                message=f"{field} must be a finite number",
            )]

        issues = []
        if value <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="not_positive",
                message=f"{field} must be greater than zero",
            ))
        # Only quantize values inside the ceiling; "1e30" overflows the context
        in_range = value.copy_abs() <= self._max_amount
        if in_range and value != to_cents(value):
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_precise",
                message=f"{field} has more than two decimal places",
                suggested_fix="Round to the nearest cent",
            ))
        if value > self._max_amount:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_large",
                message=f"{field} exceeds the maximum of {self._max_amount}",
            ))
        return issues

    def parse_amount(self, raw: Any, field: str = "amount") -> Decimal:
        """
        Parse a money value.

        Returns:
            The amount with exactly two fractional digits

        Raises:
            InvalidInputError: If the value is not a valid positive amount
        """
        issues = self.check_amount(raw, field)
        if issues:
            raise InvalidInputError(f"Invalid {field}", issues)
        # check_amount has bounded the value, so quantizing cannot overflow
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
        return to_cents(value)

    def payment_request(
        self,
        amount: Any,
        payment_type: Any = PaymentType.FULL,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentRequest:
        """Build a validated PaymentRequest from raw values."""
        parsed = self.parse_amount(amount, "amount")
        try:
            return PaymentRequest(
                amount=parsed,
                payment_type=payment_type if payment_type is not None else PaymentType.FULL,
                notes=notes,
                idempotency_key=idempotency_key,
            )
        except ValidationError as e:
            raise InvalidInputError(
                "Invalid payment data",
                issues_from_validation_error(e),
            )

    def new_expense(self, expense: NewExpense) -> NewExpense:
        """Check the money semantics of an already shape-valid expense."""
        amount = self.parse_amount(expense.amount_paid_for, "amountPaidFor")
        return expense.model_copy(update={"amount_paid_for": amount})
