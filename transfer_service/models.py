import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, TypeDecorator
from sqlmodel import Field, SQLModel, Column

# money is kept to 4 decimal places and stored as an integer count of 1/10000 units
MONEY_PLACES = 4
MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_PLACES)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Money(TypeDecorator):
    """Decimal in Python, scaled BigInteger in the database.

    Keeps balance arithmetic inside UPDATE statements exact on every backend.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        units = Decimal(value).scaleb(MONEY_PLACES)
        if units != units.to_integral_value():
            raise ValueError(f"{value} has more than {MONEY_PLACES} decimal places")
        return int(units)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value).scaleb(-MONEY_PLACES).quantize(MONEY_QUANTUM)


class LedgerStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    # caller-chosen identifier, distinct from the surrogate key above
    account_id: int = Field(sa_column=Column(BigInteger, unique=True, index=True, nullable=False))
    name: Optional[str] = None
    balance: Decimal = Field(default=Decimal("0"), sa_column=Column(Money, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class LedgerEntry(SQLModel, table=True):
    """One leg of a transfer. Two entries share a transaction_id."""

    __tablename__ = "ledgers"

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_id: UUID = Field(index=True)
    account_id: int = Field(sa_column=Column(BigInteger, index=True, nullable=False))
    debit: Optional[Decimal] = Field(default=None, sa_column=Column(Money))
    credit: Optional[Decimal] = Field(default=None, sa_column=Column(Money))
    start_balance: Decimal = Field(sa_column=Column(Money, nullable=False))
    end_balance: Optional[Decimal] = Field(default=None, sa_column=Column(Money))
    status: LedgerStatus = Field(default=LedgerStatus.IN_PROGRESS)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
