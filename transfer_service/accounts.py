from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from .errors import DuplicateAccount, InvalidRequest, NotFound
from .logging_config import get_logger
from .models import MONEY_PLACES, Account
from .stores import AccountStore

logger = get_logger("transfer_service.accounts")


def _validate(account_id, initial_balance) -> Decimal:
    if isinstance(account_id, bool) or not isinstance(account_id, int) or account_id <= 0:
        raise InvalidRequest("Account id must be a positive integer")
    try:
        balance = initial_balance if isinstance(initial_balance, Decimal) else Decimal(str(initial_balance))
    except (InvalidOperation, ValueError):
        raise InvalidRequest("Initial balance must be a decimal number")
    if not balance.is_finite() or balance <= 0:
        raise InvalidRequest("Initial balance must be positive")
    if balance.normalize().as_tuple().exponent < -MONEY_PLACES:
        raise InvalidRequest(f"Initial balance must have at most {MONEY_PLACES} decimal places")
    return balance


def create_account(
    session: Session,
    account_id: int,
    initial_balance: Decimal,
    name: Optional[str] = None,
) -> Account:
    balance = _validate(account_id, initial_balance)
    store = AccountStore(session)
    if store.find_by_account_id(account_id) is not None:
        logger.error("Account already exists, account id = %s", account_id)
        raise DuplicateAccount("Account already exists")

    try:
        acc = store.add(Account(account_id=account_id, name=name, balance=balance))
        session.commit()
    except IntegrityError:
        session.rollback()
        # a concurrent create with the same id committed first
        if store.find_by_account_id(account_id) is not None:
            logger.error("Account already exists, account id = %s", account_id)
            raise DuplicateAccount("Account already exists")
        raise
    session.refresh(acc)
    logger.info("Account created, account id = %s", acc.account_id)
    return acc


def get_account_details(session: Session, account_id: int) -> Account:
    acc = AccountStore(session).find_by_account_id(account_id)
    if acc is None:
        logger.error("Account not found, account id = %s", account_id)
        raise NotFound("Account not found")
    logger.info("Account details retrieved, account id = %s", account_id)
    return acc
