"""
Database engine, session factory, and declarative base.

Services never open sessions themselves. The HTTP layer gets
one per request from get_db(); tests and scripts build their
own from SessionLocal and hand it to the service constructors.
"""

from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from ledger_core.config import get_settings

settings = get_settings()

# pool_pre_ping revalidates pooled connections so a restarted
# database does not fail the first posting after it comes back.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# autoflush stays off: the posting engine decides when SQL is
# emitted, and the unit of work decides when it is committed.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


def get_db():
    """
    Yield a session for one request and always close it.

    Closing returns the connection to the pool even when the
    endpoint raised.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
