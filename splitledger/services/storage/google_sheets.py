"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the durable backend because:
1. The people sharing expenses can look at the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for a household ledger)
- No transactions (payment application orders its writes instead)
- Limited query capabilities (we filter in Python)

Each record type lives in its own worksheet, one record per row, with
a header row of durable field names. Money is written as decimal text
with value_input_option="RAW" so Sheets never turns it into a float.
"""

import json
from datetime import datetime
from typing import Any, Optional, Type, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from splitledger.config import GoogleSheetsSettings, get_settings
from splitledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitledger.models.ledger import (
    Expense,
    ExpenseWithPerson,
    NewExpense,
    NewPerson,
    Payment,
    PaymentRequest,
    Person,
    utc_now,
)
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StoreUnavailableError,
    newest_first,
)
from splitledger.services.storage.memory import new_id


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# Column mappings (durable field names)
PEOPLE_COLUMNS = [
    "id",
    "name",
    "initials",
    "color",
    "avatar",
]

EXPENSE_COLUMNS = [
    "id",
    "amountPaidFor",
    "paidForPersonId",
    "category",
    "paymentMethod",
    "bankApp",
    "notes",
    "isPaid",
    "amountPaid",
    "createdAt",
    "paidAt",
]

PAYMENT_COLUMNS = [
    "id",
    "expenseId",
    "amount",
    "paymentType",
    "notes",
    "createdAt",
    "idempotencyKey",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]


# Reads and in-place updates are safe to retry. Appends are not:
# a timed-out append may still have landed.
sheets_retry = retry(
    retry=retry_if_exception_type(StoreUnavailableError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def model_to_row(model: BaseModel, columns: list[str]) -> list[str]:
    """Convert a ledger model to a spreadsheet row."""
    data = model.model_dump(by_alias=True, mode="json")
    row = []
    for column in columns:
        value = data.get(column)
        if value is None:
            row.append("")
        else:
            row.append(str(value))
    return row


def row_to_model(row: list, columns: list[str], model: Type[ModelT]) -> ModelT:
    """Convert a spreadsheet row to a ledger model."""
    # Handle missing trailing columns gracefully
    def safe_get(index: int) -> Optional[str]:
        try:
            return row[index] if row[index] != "" else None
        except IndexError:
            return None

    data = {column: safe_get(i) for i, column in enumerate(columns)}
    return model.model_validate({k: v for k, v in data.items() if v is not None})


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_people_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.people_sheet_name, PEOPLE_COLUMNS)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_payments_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.payments_sheet_name, PAYMENT_COLUMNS, rows=5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Every backend failure surfaces as StoreUnavailableError.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _records(
        self,
        sheet: gspread.Worksheet,
        columns: list[str],
        model: Type[ModelT],
    ) -> list[tuple[int, ModelT]]:
        """Parse every data row as (sheet row number, record)."""
        records = []
        # Row 1 is the header
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                records.append((idx, row_to_model(row, columns, model)))
            except ValueError as e:
                logger.warning(
                    "malformed_row_skipped",
                    sheet=sheet.title,
                    row=idx,
                    error=str(e),
                )
        return records

    def _people_by_id(self) -> dict[str, Person]:
        sheet = self._client.get_people_sheet()
        return {p.id: p for _, p in self._records(sheet, PEOPLE_COLUMNS, Person)}

    def _find_expense_row(
        self,
        sheet: gspread.Worksheet,
        expense_id: str,
    ) -> Optional[tuple[int, Expense]]:
        for idx, expense in self._records(sheet, EXPENSE_COLUMNS, Expense):
            if expense.id == expense_id:
                return idx, expense
        return None

    # People

    @sheets_retry
    async def list_people(self) -> list[Person]:
        try:
            return list(self._people_by_id().values())
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to list people: {e}")

    @sheets_retry
    async def get_person(self, person_id: str) -> Optional[Person]:
        try:
            return self._people_by_id().get(person_id)
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get person: {e}")

    async def create_person(self, person: NewPerson) -> Person:
        stored = Person(id=new_id(), **person.model_dump())
        try:
            sheet = self._client.get_people_sheet()
            sheet.append_row(
                model_to_row(stored, PEOPLE_COLUMNS),
                value_input_option="RAW",
            )
            return stored
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to save person: {e}")

    async def delete_person(self, person_id: str) -> bool:
        try:
            sheet = self._client.get_people_sheet()
            for idx, person in self._records(sheet, PEOPLE_COLUMNS, Person):
                if person.id == person_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to delete person: {e}")

    # Expenses

    def _join(
        self,
        expense: Expense,
        people: dict[str, Person],
    ) -> Optional[ExpenseWithPerson]:
        person = people.get(expense.paid_for_person_id)
        if person is None:
            logger.debug(
                "orphaned_expense_skipped",
                expense_id=expense.id,
                person_id=expense.paid_for_person_id,
            )
            return None
        return ExpenseWithPerson(**expense.model_dump(), person=person)

    @sheets_retry
    async def list_expenses(self) -> list[ExpenseWithPerson]:
        try:
            people = self._people_by_id()
            sheet = self._client.get_expenses_sheet()
            joined = [
                self._join(expense, people)
                for _, expense in self._records(sheet, EXPENSE_COLUMNS, Expense)
            ]
            return newest_first([e for e in joined if e is not None])
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to list expenses: {e}")

    @sheets_retry
    async def get_expense(self, expense_id: str) -> Optional[ExpenseWithPerson]:
        try:
            sheet = self._client.get_expenses_sheet()
            found = self._find_expense_row(sheet, expense_id)
            if found is None:
                return None
            return self._join(found[1], self._people_by_id())
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get expense: {e}")

    async def create_expense(self, expense: NewExpense) -> Expense:
        stored = Expense(id=new_id(), **expense.model_dump(), created_at=utc_now())
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(
                model_to_row(stored, EXPENSE_COLUMNS),
                value_input_option="RAW",
            )
            return stored
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to save expense: {e}")

    @sheets_retry
    async def update_expense(
        self,
        expense_id: str,
        updates: dict[str, Any],
    ) -> Optional[Expense]:
        try:
            sheet = self._client.get_expenses_sheet()
            found = self._find_expense_row(sheet, expense_id)
            if found is None:
                return None

            idx, expense = found
            merged = {**expense.model_dump(), **updates, "id": expense.id}
            updated = Expense.model_validate(merged)
            sheet.update(
                range_name=f"A{idx}",
                values=[model_to_row(updated, EXPENSE_COLUMNS)],
                value_input_option="RAW",
            )
            return updated
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to update expense: {e}")

    # Payments

    @sheets_retry
    async def list_payments(self, expense_id: str) -> list[Payment]:
        try:
            sheet = self._client.get_payments_sheet()
            return [
                payment
                for _, payment in self._records(sheet, PAYMENT_COLUMNS, Payment)
                if payment.expense_id == expense_id
            ]
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to list payments: {e}")

    async def create_payment(
        self,
        expense_id: str,
        payment: PaymentRequest,
    ) -> Payment:
        stored = Payment(
            id=new_id(),
            expense_id=expense_id,
            **payment.model_dump(),
            created_at=utc_now(),
        )
        try:
            sheet = self._client.get_payments_sheet()
            sheet.append_row(
                model_to_row(stored, PAYMENT_COLUMNS),
                value_input_option="RAW",
            )
            return stored
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to save payment: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_code=safe_get(9) or None,
            error_message=safe_get(10) or None,
        )

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get audit events: {e}")
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get audit events: {e}")
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
        except Exception as e:
            raise StoreUnavailableError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
