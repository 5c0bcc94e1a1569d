"""
HTTP API for Split Ledger

A thin request layer: it validates the request shape, forwards to the
LedgerService and maps LedgerError kinds to status codes. No business
logic lives here.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from splitledger.audit import create_correlation_id
from splitledger.errors import ErrorKind, InvalidInputError, LedgerError
from splitledger.models.ledger import (
    Expense,
    ExpenseUpdate,
    ExpenseWithPayments,
    ExpenseWithPerson,
    LedgerModel,
    NewExpense,
    NewPerson,
    Payment,
    PaymentType,
    Person,
    PersonWithBalance,
    TotalBalances,
)
from splitledger.orchestrator import LedgerService, seed_sample_data


logger = structlog.get_logger(__name__)

KIND_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.PARTIAL_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class PayBody(LedgerModel):
    """Body of PATCH /api/expenses/{id}/pay."""

    # Checked by LedgerValidator, which reports bad amounts as issues
    amount: Any = None
    payment_type: PaymentType = PaymentType.FULL
    notes: Optional[str] = Field(default=None, max_length=500)
    idempotency_key: Optional[str] = Field(default=None, max_length=100)


def get_service(request: Request) -> LedgerService:
    return request.app.state.service


def error_body(exc: LedgerError) -> dict:
    body = {"message": str(exc), "kind": exc.kind.value}
    if isinstance(exc, InvalidInputError):
        body["errors"] = [issue.model_dump() for issue in exc.issues]
    return body


def create_api(
    service: LedgerService,
    frontend_url: Optional[str] = None,
    seed: bool = False,
) -> FastAPI:
    """
    Build the FastAPI application around an existing service.

    Args:
        service: The ledger service every route forwards to
        frontend_url: Origin allowed by CORS (none if not given)
        seed: Insert demo data at startup if the ledger is empty
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if seed:
            await seed_sample_data(service)
        yield

    app = FastAPI(title="Split Ledger API", lifespan=lifespan)
    app.state.service = service

    if frontend_url:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[frontend_url],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def audit_unhandled_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            if service.audit_logger:
                await service.audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"method": request.method, "path": request.url.path},
                )
            raise

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code = KIND_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                kind=exc.kind.value,
                error=str(exc),
            )
        if exc.kind == ErrorKind.STORE_UNAVAILABLE and service.audit_logger:
            await service.audit_logger.log_store_unavailable(
                operation=f"{request.method} {request.url.path}",
                error_message=str(exc),
            )
        return JSONResponse(status_code=status_code, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": "Invalid request data",
                "kind": ErrorKind.INVALID_INPUT.value,
                "errors": [
                    {
                        "field": ".".join(str(p) for p in err.get("loc", ())),
                        "issue_type": err.get("type", "invalid"),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "message": "Split Ledger backend is running"}

    # ========== People ==========

    @app.get("/api/people", response_model=list[Person])
    async def list_people(svc: LedgerService = Depends(get_service)):
        return await svc.list_people()

    @app.get("/api/people/balances", response_model=list[PersonWithBalance])
    async def people_balances(svc: LedgerService = Depends(get_service)):
        return await svc.people_with_balances()

    @app.get("/api/people/{person_id}/balance", response_model=PersonWithBalance)
    async def person_balance(person_id: str, svc: LedgerService = Depends(get_service)):
        return await svc.person_balance(person_id)

    @app.post("/api/people", response_model=Person, status_code=status.HTTP_201_CREATED)
    async def create_person(body: NewPerson, svc: LedgerService = Depends(get_service)):
        return await svc.create_person(body, correlation_id=create_correlation_id())

    @app.delete("/api/people/{person_id}")
    async def delete_person(person_id: str, svc: LedgerService = Depends(get_service)):
        await svc.delete_person(person_id, correlation_id=create_correlation_id())
        return {"message": "Person deleted successfully"}

    # ========== Expenses ==========

    @app.get("/api/expenses", response_model=list[ExpenseWithPerson])
    async def list_expenses(svc: LedgerService = Depends(get_service)):
        return await svc.list_expenses()

    @app.get("/api/expenses/{expense_id}", response_model=ExpenseWithPerson)
    async def get_expense(expense_id: str, svc: LedgerService = Depends(get_service)):
        return await svc.get_expense(expense_id)

    @app.get("/api/expenses/{expense_id}/details", response_model=ExpenseWithPayments)
    async def expense_details(expense_id: str, svc: LedgerService = Depends(get_service)):
        return await svc.get_expense_details(expense_id)

    @app.get("/api/expenses/{expense_id}/payments", response_model=list[Payment])
    async def expense_payments(expense_id: str, svc: LedgerService = Depends(get_service)):
        return await svc.list_payments(expense_id)

    @app.post("/api/expenses", response_model=Expense, status_code=status.HTTP_201_CREATED)
    async def create_expense(body: NewExpense, svc: LedgerService = Depends(get_service)):
        return await svc.create_expense(body, correlation_id=create_correlation_id())

    @app.patch("/api/expenses/{expense_id}", response_model=Expense)
    async def update_expense(
        expense_id: str,
        body: ExpenseUpdate,
        svc: LedgerService = Depends(get_service),
    ):
        return await svc.update_expense(
            expense_id, body, correlation_id=create_correlation_id()
        )

    @app.patch("/api/expenses/{expense_id}/pay", response_model=Expense)
    async def pay_expense(
        expense_id: str,
        body: PayBody,
        idempotency_header: Optional[str] = Header(default=None, alias="Idempotency-Key"),
        svc: LedgerService = Depends(get_service),
    ):
        outcome = await svc.apply_payment(
            expense_id=expense_id,
            amount=body.amount,
            payment_type=body.payment_type,
            notes=body.notes,
            idempotency_key=body.idempotency_key or idempotency_header,
            correlation_id=create_correlation_id(),
        )
        return outcome.expense

    # ========== Balances ==========

    @app.get("/api/balances", response_model=TotalBalances)
    async def total_balances(svc: LedgerService = Depends(get_service)):
        return await svc.total_balances()

    return app
