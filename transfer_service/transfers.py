"""Funds transfer engine.

A transfer is validated against a snapshot of both accounts, then applied
inside one unit of work:

    debit entry (IN_PROGRESS) -> conditional debit -> debit entry COMPLETED
    credit entry (IN_PROGRESS) -> credit -> credit entry COMPLETED

The engine holds no locks. A concurrent transfer that drains the source after
the snapshot was taken makes the conditional debit touch zero rows, the unit is
rolled back and the caller gets ``TransferFailed``.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Session

from .db import UnitOfWork
from .errors import InsufficientFunds, InvalidRequest, NotFound, TransferError, TransferFailed
from .logging_config import get_logger
from .models import MONEY_PLACES, Account, LedgerEntry, LedgerStatus
from .stores import AccountStore, LedgerStore

logger = get_logger("transfer_service.transfers")


@dataclass(frozen=True)
class AccountSnapshot:
    id: int
    account_id: int
    balance: Decimal

    @classmethod
    def of(cls, account: Account) -> "AccountSnapshot":
        return cls(id=account.id, account_id=account.account_id, balance=Decimal(account.balance))


@dataclass(frozen=True)
class TransferResult:
    transaction_id: UUID
    source_account_id: int
    destination_account_id: int
    amount: Decimal
    updated_balance: Decimal


def _to_amount(value) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidRequest("Amount must be a decimal number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidRequest("Amount must be positive")
    if amount.normalize().as_tuple().exponent < -MONEY_PLACES:
        raise InvalidRequest(f"Amount must have at most {MONEY_PLACES} decimal places")
    return amount


class TransferEngine:
    def __init__(self, session: Session):
        self.session = session
        self.accounts = AccountStore(session)
        self.ledger = LedgerStore(session)

    def execute(self, source_account_id: int, destination_account_id: int, amount) -> TransferResult:
        amount = _to_amount(amount)
        source, destination = self._check_preconditions(source_account_id, destination_account_id, amount)

        transaction_id = uuid4()
        uow = UnitOfWork(self.session)
        try:
            with uow:
                updated_balance = self._apply(uow, transaction_id, source, destination, amount)
        except TransferError:
            raise
        except Exception as exc:
            logger.error(
                "Transaction failed, account id = %s, transaction id = %s, error = %s",
                source.account_id,
                transaction_id,
                exc,
                exc_info=True,
            )
            raise TransferFailed() from exc

        if uow.rollback_only:
            logger.error("Transaction failed, account id = %s, transaction id = %s", source.account_id, transaction_id)
            raise TransferFailed()

        logger.info(
            "Transaction completed, source account id = %s, destination account id = %s, transaction id = %s",
            source.account_id,
            destination.account_id,
            transaction_id,
        )
        return TransferResult(
            transaction_id=transaction_id,
            source_account_id=source.account_id,
            destination_account_id=destination.account_id,
            amount=amount,
            updated_balance=updated_balance,
        )

    def _check_preconditions(self, source_account_id: int, destination_account_id: int, amount: Decimal):
        for account_id in (source_account_id, destination_account_id):
            if isinstance(account_id, bool) or not isinstance(account_id, int) or account_id <= 0:
                raise InvalidRequest("Account ids must be positive integers")

        if source_account_id == destination_account_id:
            logger.error("Source and destination accounts cannot be the same, account id = %s", source_account_id)
            raise InvalidRequest("Source and destination accounts cannot be the same")

        source = self.accounts.find_by_account_id(source_account_id)
        if source is None:
            logger.error("Source account not found, account id = %s", source_account_id)
            raise NotFound("Source account not found")
        # same boundary as the conditional debit: an exact-balance transfer is allowed
        if source.balance < amount:
            logger.error("Insufficient funds, account id = %s, balance = %s", source_account_id, source.balance)
            raise InsufficientFunds("Insufficient funds")

        destination = self.accounts.find_by_account_id(destination_account_id)
        if destination is None:
            logger.error("Destination account not found, account id = %s", destination_account_id)
            raise NotFound("Destination account not found")

        return AccountSnapshot.of(source), AccountSnapshot.of(destination)

    def _apply(
        self,
        uow: UnitOfWork,
        transaction_id: UUID,
        source: AccountSnapshot,
        destination: AccountSnapshot,
        amount: Decimal,
    ) -> Optional[Decimal]:
        debit_entry = self.ledger.save(
            LedgerEntry(
                transaction_id=transaction_id,
                account_id=source.account_id,
                debit=amount,
                start_balance=source.balance,
                status=LedgerStatus.IN_PROGRESS,
            )
        )
        logger.info("Debit entry created, ledger id = %s", debit_entry.id)

        if self.accounts.debit_if_sufficient(source.id, amount) == 0:
            # balance changed underneath the snapshot
            logger.error("Debit failed from source account, account id = %s", source.account_id)
            self._fail(uow, debit_entry)
            return None
        logger.info("Debit completed from source account, account id = %s", source.account_id)

        updated_balance = self._complete(debit_entry, source.id)
        logger.info("Debit entry marked as complete, ledger id = %s", debit_entry.id)

        credit_entry = self.ledger.save(
            LedgerEntry(
                transaction_id=transaction_id,
                account_id=destination.account_id,
                credit=amount,
                start_balance=destination.balance,
                status=LedgerStatus.IN_PROGRESS,
            )
        )
        logger.info("Credit entry created, ledger id = %s", credit_entry.id)

        if self.accounts.credit_unconditional(destination.id, amount) == 0:
            logger.error("Credit failed to destination account, account id = %s", destination.account_id)
            self._fail(uow, credit_entry)
            return None
        logger.info("Credit completed to destination account, account id = %s", destination.account_id)

        self._complete(credit_entry, destination.id)
        logger.info("Credit entry marked as complete, ledger id = %s", credit_entry.id)

        return updated_balance

    def _complete(self, entry: LedgerEntry, internal_key: int) -> Decimal:
        account = self.accounts.find_by_id(internal_key)
        if account is None:
            logger.error("Account row missing after balance update, ledger id = %s", entry.id)
            raise TransferFailed()
        entry.end_balance = account.balance
        entry.status = LedgerStatus.COMPLETED
        self.ledger.save(entry)
        return Decimal(account.balance)

    def _fail(self, uow: UnitOfWork, entry: LedgerEntry) -> None:
        entry.status = LedgerStatus.FAILED
        self.ledger.save(entry)
        uow.set_rollback_only()
