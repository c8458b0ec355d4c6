"""
Read-modify-write transactions with optimistic concurrency.

Rows that take part in contended updates carry a SQLAlchemy `version_id_col`.
A flush against a row whose version moved since it was read updates zero rows
and SQLAlchemy raises `StaleDataError`. `run_transaction` treats that as a write
conflict: it discards the session and re-runs the whole body against fresh state,
so a body may run several times before one attempt commits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from warehouse_ops.errors import TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_transaction(
    session_factory: sessionmaker[Session],
    fn: Callable[[Session], T],
    *,
    max_attempts: int = 5,
) -> T:
    """
    Run `fn(session)` and commit; re-run on version conflicts.

    `fn` must be safe to call more than once and must return values that stay
    valid after the session is closed (plain data, not ORM instances).
    Domain errors raised by `fn` propagate immediately and nothing is committed.
    """

    for attempt in range(1, max_attempts + 1):
        with session_factory() as db:
            try:
                result = fn(db)
                db.commit()
                return result
            except StaleDataError:
                db.rollback()
                logger.info("Transaction conflict attempt=%s/%s", attempt, max_attempts)

    logger.warning("Transaction gave up after %s conflicting attempts", max_attempts)
    raise TransactionConflict(attempts=max_attempts)
