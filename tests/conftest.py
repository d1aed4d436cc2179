# tests/conftest.py
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from transfer_service.db import build_engine, get_session, init_db
from transfer_service.main import app
from transfer_service.models import Account, LedgerEntry


@pytest.fixture(scope="function")
def engine(tmp_path):
    """Fresh SQLite database file per test; separate connections per session."""
    eng = build_engine(f"sqlite:///{tmp_path / 'test.db'}", echo=False)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture(scope="function")
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def make_account(engine):
    """Insert and commit an account, returning the detached row."""
    def _make(account_id, balance, name=None):
        with Session(engine) as s:
            acc = Account(account_id=account_id, name=name, balance=Decimal(balance))
            s.add(acc)
            s.commit()
            s.refresh(acc)
            return acc
    return _make


@pytest.fixture
def balance_of(engine):
    def _balance(account_id):
        with Session(engine) as s:
            return s.exec(select(Account.balance).where(Account.account_id == account_id)).one()
    return _balance


@pytest.fixture
def ledger_rows(engine):
    def _rows():
        with Session(engine) as s:
            return list(s.exec(select(LedgerEntry).order_by(LedgerEntry.id)).all())
    return _rows


@pytest.fixture(scope="function")
def client(engine):
    """Test client whose requests run against the per-test database."""
    def override_get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
