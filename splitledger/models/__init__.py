"""
Data Models Package

This package contains all Pydantic models used in Split Ledger.
All data flowing through the system must conform to these schemas.
"""

from splitledger.models.ledger import (
    Expense,
    ExpenseUpdate,
    ExpenseWithPayments,
    ExpenseWithPerson,
    NewExpense,
    NewPerson,
    Payment,
    PaymentOutcome,
    PaymentRequest,
    PaymentType,
    Person,
    PersonBalance,
    PersonWithBalance,
    TotalBalances,
    ValidationIssue,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Expense",
    "ExpenseUpdate",
    "ExpenseWithPayments",
    "ExpenseWithPerson",
    "NewExpense",
    "NewPerson",
    "Payment",
    "PaymentOutcome",
    "PaymentRequest",
    "PaymentType",
    "Person",
    "PersonBalance",
    "PersonWithBalance",
    "TotalBalances",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
