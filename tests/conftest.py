"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are created before and dropped after
every test. Services commit through their unit of work, so
the drop is what keeps tests independent.
"""

import os
from datetime import date, datetime

# Must be set before ledger_core reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ledger_core.main import app
from ledger_core.locks import LocalLockManager
from ledger_core.models.base import Base, get_db
from ledger_core.models.enums import AccountType, PeriodType
from ledger_core.schemas.account import AccountCreate
from ledger_core.schemas.fiscal_period import FiscalPeriodCreate
from ledger_core.services.ledger_service import LedgerService


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

# Fixed "now" for services under test: mid-January 2024
FIXED_NOW = datetime(2024, 1, 15, 9, 30)


def fixed_clock():
    return FIXED_NOW


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


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
def lock_manager():
    """A private lock manager so no lock leaks between tests."""
    return LocalLockManager(timeout=2.0)


@pytest.fixture
def ledger(db_session, lock_manager):
    return LedgerService(db_session, lock_manager=lock_manager, clock=fixed_clock)


@pytest.fixture
def accounts(ledger):
    """Account service sharing the ledger's unit of work."""
    return ledger.accounts


@pytest.fixture
def periods(ledger):
    return ledger.periods


@pytest.fixture
def january(periods):
    """An open month covering January 2024."""
    return periods.create_period(FiscalPeriodCreate(
        name="January 2024",
        period_type=PeriodType.MONTH,
        fiscal_year=2024,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
    ))


@pytest.fixture
def cash(accounts):
    return accounts.create_account(AccountCreate(
        account_number="1000",
        name="Cash",
        account_type=AccountType.ASSET,
    ))


@pytest.fixture
def revenue(accounts):
    return accounts.create_account(AccountCreate(
        account_number="4000",
        name="Revenue",
        account_type=AccountType.REVENUE,
    ))


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


@pytest.fixture
def session_factory():
    """For tests that need one session per thread."""
    return TestSessionLocal
