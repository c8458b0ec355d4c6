from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from warehouse_ops.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_session_factory() -> sessionmaker[Session]:
    """
    Session factory dependency.

    Ledger operations open one short-lived session per transaction attempt,
    so they need the factory rather than a request-scoped session.
    Tests override this single dependency to point the whole app at a test database.
    """

    return SessionLocal


def get_db(factory: sessionmaker[Session] = Depends(get_session_factory)) -> Generator[Session, None, None]:
    """Request-scoped session for plain reads and single-commit writes."""

    db = factory()
    try:
        yield db
    finally:
        db.close()
