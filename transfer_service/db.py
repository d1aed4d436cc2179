import os

from sqlmodel import create_engine, SQLModel, Session

from .logging_config import get_logger

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./transfers.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

logger = get_logger("transfer_service.db")


def build_engine(url: str = DATABASE_URL, echo: bool = SQL_ECHO):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args)


engine = build_engine()


def init_db(bind=None):
    from .models import Account, LedgerEntry  # noqa
    SQLModel.metadata.create_all(bind if bind is not None else engine)


def get_session():
    with Session(engine) as s:
        yield s


class UnitOfWork:
    """All-or-nothing scope around a block of store operations on one session.

    Any step may call ``set_rollback_only()``; leaving the ``with`` block then
    rolls everything back instead of committing. An exception escaping the
    block always rolls back and propagates.
    """

    def __init__(self, session: Session):
        self.session = session
        self.rollback_only = False

    def begin(self) -> "UnitOfWork":
        if self.session.in_transaction():
            # only reads can be pending here; start the unit on a fresh transaction
            self.session.rollback()
        self.session.begin()
        self.rollback_only = False
        return self

    def set_rollback_only(self) -> None:
        self.rollback_only = True

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        if self.session.in_transaction():
            self.session.rollback()

    def __enter__(self) -> "UnitOfWork":
        return self.begin()

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None and not self.rollback_only:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            if exc_type is None:
                logger.warning("Unit of work aborted, rolling back")
            self.rollback()
        return False
