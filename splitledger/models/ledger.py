"""
Core Data Models for Split Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and the HTTP API
4. Keep the durable field names (camelCase) separate from Python attribute names

DESIGN DECISION: Money is always Decimal in memory and decimal text at rest.
Binary floats only ever appear when balance figures are rendered as JSON.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


CENTS = Decimal("0.01")
ZERO = Decimal("0")


def utc_now() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(timezone.utc)


def to_cents(value: Decimal) -> Decimal:
    """Round a money value to two fractional digits."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


# Balance figures are accumulated as Decimal and only become floats
# when rendered to JSON.
BalanceAmount = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


class LedgerModel(BaseModel):
    """
    Base for every ledger record.

    Attributes are snake_case; the aliases are the durable schema names
    used in storage and on the wire.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentType(str, Enum):
    """
    How a payment was described by the person recording it.

    Informational only: the paid/unpaid decision is always made
    from the amounts, never from this tag.
    """
    FULL = "full"
    PARTIAL = "partial"
    CUSTOM = "custom"


# =============================================================================
# PEOPLE
# =============================================================================

class NewPerson(LedgerModel):
    """Fields accepted when creating a person."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    initials: str = Field(
        ...,
        min_length=1,
        max_length=5,
        description="Short label shown in avatars"
    )
    color: str = Field(
        ...,
        min_length=1,
        max_length=30,
        description="Display color (e.g. #00D4AA)"
    )
    avatar: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Optional avatar glyph or image reference"
    )


class Person(NewPerson):
    """A stored person. Immutable except for deletion."""

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier"
    )


# =============================================================================
# EXPENSES
# =============================================================================

class NewExpense(LedgerModel):
    """
    Fields accepted when creating an expense.

    isPaid / amountPaid are not accepted here: they are derived
    from the payments applied later.
    """

    amount_paid_for: Annotated[
        Decimal,
        Field(gt=0, decimal_places=2, description="Amount owed")
    ]
    paid_for_person_id: str = Field(
        ...,
        min_length=1,
        description="Person this expense was incurred for"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Free-form category tag"
    )
    payment_method: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="How the expense was paid (upi, cash, credit_card, ...)"
    )
    bank_app: Optional[str] = Field(
        default=None,
        max_length=50,
        description="App used for the payment, if any"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
    )


class ExpenseUpdate(LedgerModel):
    """
    Direct patch of an expense's descriptive fields.

    Money and status fields are excluded; they only change
    through payment application.
    """
    model_config = ConfigDict(extra="forbid")

    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    payment_method: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bank_app: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('category', 'payment_method')
    @classmethod
    def reject_explicit_null(cls, v: Optional[str]) -> str:
        """category and paymentMethod can be omitted but never cleared."""
        if v is None:
            raise ValueError("cannot be null")
        return v


class Expense(LedgerModel):
    """A stored expense."""

    id: str = Field(..., min_length=1)
    amount_paid_for: Decimal
    paid_for_person_id: str
    category: str
    payment_method: str
    bank_app: Optional[str] = None
    notes: Optional[str] = None

    # Cached payment state, maintained by payment application
    is_paid: bool = False
    amount_paid: Decimal = ZERO

    created_at: datetime = Field(default_factory=utc_now)
    paid_at: Optional[datetime] = Field(
        default=None,
        description="When the expense first became fully paid"
    )

    @property
    def remaining(self) -> Decimal:
        """Outstanding amount; negative when overpaid."""
        return self.amount_paid_for - self.amount_paid


class ExpenseWithPerson(Expense):
    """An expense joined with the person it is attributed to."""

    person: Person


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentRequest(LedgerModel):
    """A request to record a payment against an expense."""

    amount: Annotated[
        Decimal,
        Field(gt=0, decimal_places=2, description="Amount contributed")
    ]
    payment_type: PaymentType = PaymentType.FULL
    notes: Optional[str] = Field(default=None, max_length=500)
    idempotency_key: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="Client-chosen key; replays with the same key are not re-applied"
    )


class Payment(LedgerModel):
    """A single recorded contribution towards an expense."""

    id: str = Field(..., min_length=1)
    expense_id: str
    amount: Decimal
    payment_type: PaymentType = PaymentType.FULL
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    idempotency_key: Optional[str] = None


class ExpenseWithPayments(ExpenseWithPerson):
    """An expense with its full payment history."""

    payments: list[Payment] = Field(default_factory=list)


class PaymentOutcome(LedgerModel):
    """Result of applying a payment."""

    expense: Expense
    payment: Payment
    newly_paid: bool = Field(
        default=False,
        description="Did this payment flip the expense from unpaid to paid?"
    )
    replayed: bool = Field(
        default=False,
        description="Was this an idempotent replay of an earlier payment?"
    )


# =============================================================================
# BALANCES
# =============================================================================

class PersonBalance(LedgerModel):
    """Derived balance figures for one person."""

    total_owed: BalanceAmount = ZERO
    total_owing: BalanceAmount = ZERO
    net_balance: BalanceAmount = ZERO
    transaction_count: int = Field(default=0, ge=0)


class PersonWithBalance(Person):
    """A person together with their derived balance."""

    total_owed: BalanceAmount = ZERO
    total_owing: BalanceAmount = ZERO
    net_balance: BalanceAmount = ZERO
    transaction_count: int = Field(default=0, ge=0)

    @classmethod
    def from_parts(cls, person: Person, balance: PersonBalance) -> "PersonWithBalance":
        return cls(**person.model_dump(), **balance.model_dump())


class TotalBalances(LedgerModel):
    """Ledger-wide balance figures, the sum of every person's balance."""

    total_owed: BalanceAmount = ZERO
    total_owing: BalanceAmount = ZERO
    net_balance: BalanceAmount = ZERO


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_numeric', 'not_positive')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )
