from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, PositiveInt
from sqlmodel import Session

from .accounts import create_account, get_account_details
from .db import engine, init_db, get_session
from .errors import InsufficientFunds, InvalidRequest, NotFound, TransferError, TransferFailed
from .logging_config import get_logger, setup_logging
from .models import LedgerStatus
from .stores import LedgerStore
from .transfers import TransferEngine

logger = get_logger("transfer_service.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    logger.info("transfer-service starting up")
    yield
    engine.dispose()
    logger.info("transfer-service shutting down")


app = FastAPI(title="transfer-service", lifespan=lifespan)

STATUS_CODES = {
    InvalidRequest: 400,
    NotFound: 404,
    InsufficientFunds: 400,
    TransferFailed: 500,
}


def _error_body(status: int, error: str, fields: Optional[list] = None) -> dict:
    body = {"timestamp": datetime.now(timezone.utc).isoformat(), "status": status, "error": error}
    if fields is not None:
        body["fields"] = fields
    return body


@app.exception_handler(TransferError)
async def transfer_error_handler(request: Request, exc: TransferError):
    status = next((code for kind, code in STATUS_CODES.items() if isinstance(exc, kind)), 500)
    return JSONResponse(status_code=status, content=_error_body(status, exc.message))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body(400, "Validation Failed", fields))


class CreateAccountIn(BaseModel):
    account_id: PositiveInt
    name: Optional[str] = None
    initial_balance: Decimal = Field(gt=0, max_digits=19, decimal_places=4)


class AccountOut(BaseModel):
    account_id: int
    name: Optional[str] = None
    balance: Decimal


class SubmitTransactionIn(BaseModel):
    source_account_id: PositiveInt
    destination_account_id: PositiveInt
    amount: Decimal = Field(gt=0, max_digits=19, decimal_places=4)


class TransactionSuccessOut(BaseModel):
    transaction_id: UUID
    source_account_id: int
    amount: Decimal
    updated_balance: Decimal


class LedgerEntryOut(BaseModel):
    id: int
    transaction_id: UUID
    account_id: int
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None
    start_balance: Decimal
    end_balance: Optional[Decimal] = None
    status: LedgerStatus
    created_at: datetime
    updated_at: datetime


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/accounts", response_model=AccountOut, status_code=201)
def post_account(body: CreateAccountIn, response: Response, session: Session = Depends(get_session)):
    acc = create_account(session, body.account_id, body.initial_balance, name=body.name)
    response.headers["Location"] = f"/accounts/{acc.account_id}"
    return AccountOut(account_id=acc.account_id, name=acc.name, balance=acc.balance)


@app.get("/accounts/{account_id}", response_model=AccountOut)
def get_account(account_id: int, session: Session = Depends(get_session)):
    acc = get_account_details(session, account_id)
    return AccountOut(account_id=acc.account_id, name=acc.name, balance=acc.balance)


@app.post("/transactions", response_model=TransactionSuccessOut)
def submit_transaction(body: SubmitTransactionIn, session: Session = Depends(get_session)):
    result = TransferEngine(session).execute(body.source_account_id, body.destination_account_id, body.amount)
    return TransactionSuccessOut(
        transaction_id=result.transaction_id,
        source_account_id=result.source_account_id,
        amount=result.amount,
        updated_balance=result.updated_balance,
    )


@app.get("/transactions/{transaction_id}", response_model=List[LedgerEntryOut])
def get_transaction(transaction_id: UUID, session: Session = Depends(get_session)):
    entries = LedgerStore(session).find_by_transaction_id(transaction_id)
    if not entries:
        raise NotFound("Transaction not found")
    return [LedgerEntryOut.model_validate(e, from_attributes=True) for e in entries]
