from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from warehouse_ops.errors import InvalidCredentials
from warehouse_ops.models.security import User

logger = logging.getLogger(__name__)

T = TypeVar("T")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database.
        logger.warning("Stored password hash is not a bcrypt hash")
        return False


def with_retry(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
    before_retry: Callable[[], None] | None = None,
) -> T:
    """
    Call `fn`, retrying transient database errors with exponential backoff.

    Waits base_delay, 2*base_delay, 4*base_delay, ... between attempts and
    re-raises the last OperationalError once attempts are exhausted.
    """

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except OperationalError:
            if attempt >= attempts:
                logger.error("Database call failed after %s attempts", attempts)
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning("Database call failed attempt=%s/%s retry_in=%.2fs", attempt, attempts, delay)
            sleep(delay)
            if before_retry is not None:
                before_retry()

    raise ValueError("attempts must be >= 1")


def find_user_by_employee_no(db: Session, employee_no: str) -> User | None:
    return db.scalars(select(User).where(User.employee_no == employee_no).limit(1)).first()


def authenticate(
    db: Session,
    employee_no: str,
    password: str,
    *,
    attempts: int = 3,
    base_delay: float = 0.2,
) -> User:
    employee_no = employee_no.strip()
    user = with_retry(
        lambda: find_user_by_employee_no(db, employee_no),
        attempts=attempts,
        base_delay=base_delay,
        before_retry=db.rollback,
    )

    # Same answer for unknown user and wrong password.
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("Login rejected employee_no=%s", employee_no)
        raise InvalidCredentials("Invalid credentials.")

    logger.info("Login accepted user_id=%s role=%s", user.id, user.role)
    return user
