"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are recreated for every test.

The database is a file, not :memory:, so that the concurrency
tests can open several connections to the same data.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from ledger_core.main import app
from ledger_core.models import Base
from ledger_core.models.base import build_engine, get_db
from ledger_core.models.enums import AccountType, EntryType
from ledger_core.schemas.account import AccountCreate
from ledger_core.schemas.ledger import EntryDraft, TransactionDraft
from ledger_core.services.account_service import AccountService


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = build_engine(TEST_DATABASE_URL)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """Session factory for tests that need one session per worker."""
    return TestSessionLocal


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    The get_db dependency is overridden so the app uses the
    test session instead of the real database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- Factories shared by the service tests ---

def _make_account(db_session, code, account_type, currency="USD", name=None):
    account = AccountService(db_session).create_account(AccountCreate(
        code=code,
        name=name or code.title(),
        account_type=account_type,
        currency=currency,
    ))
    db_session.commit()
    return account


def _transfer_draft(debit_id, credit_id, amount, on=date(2024, 3, 1),
                   currency="USD", description="Transfer", key=None):
    """A two-legged draft: debit one account, credit another."""
    return TransactionDraft(
        date=on,
        description=description,
        idempotency_key=key,
        entries=[
            EntryDraft(
                account_id=debit_id,
                entry_type=EntryType.DEBIT,
                amount=amount,
                currency=currency,
            ),
            EntryDraft(
                account_id=credit_id,
                entry_type=EntryType.CREDIT,
                amount=amount,
                currency=currency,
            ),
        ],
    )


@pytest.fixture
def make_account(db_session):
    """Create and commit an account: make_account(code, account_type, currency)."""
    def factory(code, account_type, currency="USD", name=None):
        return _make_account(db_session, code, account_type, currency, name)
    return factory


@pytest.fixture
def transfer_draft():
    """Build a two-legged draft: transfer_draft(debit_id, credit_id, amount, ...)."""
    return _transfer_draft


@pytest.fixture
def cash(db_session):
    return _make_account(db_session, "CASH", AccountType.ASSET)


@pytest.fixture
def card(db_session):
    return _make_account(db_session, "CARD", AccountType.LIABILITY)


@pytest.fixture
def equity(db_session):
    """Opening-balance counterpart, modelled as a liability."""
    return _make_account(db_session, "OPENING", AccountType.LIABILITY)
