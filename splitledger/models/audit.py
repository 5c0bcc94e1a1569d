"""
Audit Models for Split Ledger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Complete traceability of who was charged and who paid what
2. Debugging information when payment application partially fails
3. A record to reconcile cached amounts against

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from splitledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # People
    PERSON_CREATED = "person_created"
    PERSON_DELETED = "person_deleted"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"

    # Payments
    PAYMENT_APPLIED = "payment_applied"
    PAYMENT_REPLAYED = "payment_replayed"
    EXPENSE_PAID = "expense_paid"
    PAYMENT_PARTIALLY_APPLIED = "payment_partially_applied"

    # System events
    SYSTEM_ERROR = "system_error"
    STORE_UNAVAILABLE = "store_unavailable"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('person', 'expense', 'payment')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g. one request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.person_created(person_id, name)
        event = AuditEventBuilder.payment_applied(expense_id, payment_id, ...)
    """

    @staticmethod
    def person_created(
        person_id: str,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_CREATED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person created: {name}",
            details={"name": name},
        )

    @staticmethod
    def person_deleted(
        person_id: str,
        orphaned_expenses: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_DELETED,
            severity=AuditSeverity.WARNING if orphaned_expenses else AuditSeverity.INFO,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person deleted, {orphaned_expenses} expense(s) orphaned",
            details={"orphaned_expenses": orphaned_expenses},
        )

    @staticmethod
    def expense_created(
        expense_id: str,
        person_id: str,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense created: {amount} ({category})",
            details={
                "person_id": person_id,
                "amount_paid_for": amount,
                "category": category,
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def payment_applied(
        expense_id: str,
        payment_id: str,
        amount: str,
        amount_paid: str,
        payment_type: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_APPLIED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} applied, {amount_paid} paid so far",
            details={
                "payment_id": payment_id,
                "amount": amount,
                "amount_paid": amount_paid,
                "payment_type": payment_type,
            },
        )

    @staticmethod
    def payment_replayed(
        expense_id: str,
        payment_id: str,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_REPLAYED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Duplicate payment request ignored",
            details={
                "payment_id": payment_id,
                "idempotency_key": idempotency_key,
            },
        )

    @staticmethod
    def expense_paid(
        expense_id: str,
        amount_paid_for: str,
        amount_paid: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_PAID,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense fully paid: {amount_paid} of {amount_paid_for}",
            details={
                "amount_paid_for": amount_paid_for,
                "amount_paid": amount_paid,
            },
        )

    @staticmethod
    def payment_partially_applied(
        expense_id: str,
        amount: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_PARTIALLY_APPLIED,
            severity=AuditSeverity.CRITICAL,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense updated but payment record was not written",
            error_code="partial_failure",
            error_message=error_message,
            details={"amount": amount},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def store_unavailable(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            description=f"Ledger store unavailable during {operation}",
            error_code="store_unavailable",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
