"""Account and ledger persistence used by the transfer engine.

Balances are only ever changed through ``debit_if_sufficient`` and
``credit_unconditional``. Both are single conditional UPDATE statements, so the
sufficiency check and the write happen atomically inside the database.
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import literal, update
from sqlmodel import Session, select

from .models import Account, LedgerEntry, Money, utcnow


class AccountStore:
    def __init__(self, session: Session):
        self.session = session

    def find_by_account_id(self, account_id: int) -> Optional[Account]:
        return self.session.exec(select(Account).where(Account.account_id == account_id)).first()

    def find_by_id(self, internal_key: int) -> Optional[Account]:
        # the conditional updates bypass the identity map, so reload from the row
        return self.session.get(Account, internal_key, populate_existing=True)

    def add(self, account: Account) -> Account:
        self.session.add(account)
        self.session.flush()
        return account

    def debit_if_sufficient(self, internal_key: int, amount: Decimal) -> int:
        """Subtract ``amount`` only while the balance covers it. Returns affected rows."""
        units = literal(amount, Money)
        stmt = (
            update(Account)
            .where(Account.id == internal_key, Account.balance >= units)
            .values(balance=Account.balance - units, updated_at=utcnow())
        )
        return self.session.connection().execute(stmt).rowcount

    def credit_unconditional(self, internal_key: int, amount: Decimal) -> int:
        """Add ``amount``. Returns 0 only when the row does not exist."""
        units = literal(amount, Money)
        stmt = (
            update(Account)
            .where(Account.id == internal_key)
            .values(balance=Account.balance + units, updated_at=utcnow())
        )
        return self.session.connection().execute(stmt).rowcount


class LedgerStore:
    def __init__(self, session: Session):
        self.session = session

    def save(self, entry: LedgerEntry) -> LedgerEntry:
        # an entry already attached to the session is updated in place, never re-inserted
        if entry.id is not None:
            entry.updated_at = utcnow()
        self.session.add(entry)
        self.session.flush()
        return entry

    def find_by_transaction_id(self, transaction_id: UUID) -> List[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.transaction_id == transaction_id)
            .order_by(LedgerEntry.id)
        )
        return list(self.session.exec(stmt).all())
