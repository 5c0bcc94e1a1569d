"""
Audit Logger

DESIGN DECISION: Every mutation of the ledger is logged.
This provides:
1. Complete traceability of charges and payments
2. Evidence when an operation partially failed
3. A history to reconcile cached paid amounts against

The audit logger:
- Is async so it fits the storage interface
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from splitledger.models.audit import AuditEvent, AuditEventBuilder
from splitledger.services.storage import AuditStorageInterface


SHARED_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def configure_logging(
    level: str = "INFO",
    log_format: str = "json",
    debug: bool = False,
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Called by process entry points once settings are loaded. Debug mode
    forces DEBUG level and the console renderer.
    """
    if debug:
        level, log_format = "DEBUG", "console"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )
    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[*SHARED_PROCESSORS, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configure structlog for local logging
structlog.configure(
    processors=[*SHARED_PROCESSORS, structlog.processors.JSONRenderer()],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("splitledger.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_person_created(
        self,
        person_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.person_created(
            person_id=person_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_person_deleted(
        self,
        person_id: str,
        orphaned_expenses: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.person_deleted(
            person_id=person_id,
            orphaned_expenses=orphaned_expenses,
            correlation_id=correlation_id,
        ))

    async def log_expense_created(
        self,
        expense_id: str,
        person_id: str,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_created(
            expense_id=expense_id,
            person_id=person_id,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_payment_applied(
        self,
        expense_id: str,
        payment_id: str,
        amount: str,
        amount_paid: str,
        payment_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a payment that was applied to an expense."""
        await self.log(AuditEventBuilder.payment_applied(
            expense_id=expense_id,
            payment_id=payment_id,
            amount=amount,
            amount_paid=amount_paid,
            payment_type=payment_type,
            correlation_id=correlation_id,
        ))

    async def log_payment_replayed(
        self,
        expense_id: str,
        payment_id: str,
        idempotency_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_replayed(
            expense_id=expense_id,
            payment_id=payment_id,
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
        ))

    async def log_expense_paid(
        self,
        expense_id: str,
        amount_paid_for: str,
        amount_paid: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the unpaid -> paid transition of an expense."""
        await self.log(AuditEventBuilder.expense_paid(
            expense_id=expense_id,
            amount_paid_for=amount_paid_for,
            amount_paid=amount_paid,
            correlation_id=correlation_id,
        ))

    async def log_payment_partially_applied(
        self,
        expense_id: str,
        amount: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_partially_applied(
            expense_id=expense_id,
            amount=amount,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_store_unavailable(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_unavailable(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g. one request).
    Pass it through all subsequent operations.
    """
    return uuid4()
