"""
Database engine, session factory, and declarative base.

Services never create sessions themselves. HTTP requests get one
from get_db(); background jobs and the retrying poster take a
session factory so each unit of work has its own session.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from ledger_core.config import get_settings

settings = get_settings()


def build_engine(url: str, **kwargs):
    """
    Create an engine for the given URL.

    SQLite connections are shared across threads by the pool,
    so the driver's same-thread check is switched off and the
    busy timeout is raised: concurrent writers wait for the
    database lock instead of failing at once.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        return create_engine(url, connect_args=connect_args, **kwargs)
    # pool_pre_ping replaces connections that went stale while idle
    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.DATABASE_URL)

# autocommit/autoflush off: a posting is only written when the
# caller flushes, and only kept when the caller commits.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


def get_db():
    """
    Provide a database session for a single request.

    The session is always closed, which rolls back anything the
    endpoint did not commit. A request cancelled half-way through
    a posting therefore leaves nothing behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
