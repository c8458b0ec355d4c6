"""
Session resolution: session cookie -> identity + effective permission set.

The cookie value is trusted as a raw user-id lookup key (no signature check).
Explicit per-user permissions win; otherwise they are derived from the Role
record whose name equals the user's role, stored as ["page:action", ...].

Nothing in this module raises: every failure degrades to an unauthenticated
context or to `permissions=None`, and callers decide what that means.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from warehouse_ops.models.security import Role, User
from warehouse_ops.security.context import SessionContext

logger = logging.getLogger(__name__)

ADMIN_ROLE = "Admin"

Permissions = Mapping[str, Iterable[str]]


def parse_session_cookie(raw: str | None) -> str | None:
    """
    Return the user id carried by a session cookie value.

    Accepts a bare id (`u1`) or a JSON object with a string `id` (`{"id": "u1"}`).
    Anything that is not such an object falls back to the raw value.
    """

    if not raw:
        return None

    try:
        parsed = json.loads(raw)
    except ValueError:
        return raw

    if isinstance(parsed, dict) and isinstance(parsed.get("id"), str) and parsed["id"]:
        return parsed["id"]
    return raw


def flatten_role_permissions(entries: Any) -> dict[str, list[str]]:
    """
    Group ["page:action", ...] into {page: [action, ...]}.

    Non-strings and entries missing either segment are dropped.
    Action order follows first appearance; duplicates are collapsed.
    """

    normalized: dict[str, list[str]] = {}
    if not isinstance(entries, (list, tuple)):
        return normalized

    for item in entries:
        if not isinstance(item, str):
            continue
        page, _, action = item.partition(":")
        # Only the first two segments count ("a:b:c" -> page "a", action "b").
        action = action.split(":", 1)[0]
        if not page or not action:
            continue
        actions = normalized.setdefault(page, [])
        if action not in actions:
            actions.append(action)
    return normalized


def _explicit_permissions(raw: Any) -> dict[str, list[str]] | None:
    if not isinstance(raw, dict):
        return None
    return {str(page): list(actions) for page, actions in raw.items() if isinstance(actions, (list, tuple))}


def role_permissions(db: Session, role: str) -> dict[str, list[str]] | None:
    """Flattened permissions of the Role named exactly `role`, or None when there is no such role."""

    record = db.scalars(select(Role).where(Role.name == role).order_by(Role.id).limit(1)).first()
    if record is None:
        return None
    return flatten_role_permissions(record.permissions)


def effective_permissions(db: Session, user: User) -> dict[str, list[str]] | None:
    explicit = _explicit_permissions(user.permissions)
    if explicit is not None:
        return explicit
    if user.role:
        return role_permissions(db, user.role)
    return None


def resolve_session(db: Session, raw_cookie: str | None) -> SessionContext:
    user_id = parse_session_cookie(raw_cookie)
    if not user_id:
        return SessionContext(ok=False)

    try:
        user = db.get(User, user_id)
        if user is None or not user.is_active:
            logger.info("Session does not resolve to an active user")
            return SessionContext(ok=False)

        permissions = effective_permissions(db, user)
    except SQLAlchemyError:
        logger.exception("Session resolution failed user_id=%s", user_id)
        return SessionContext(ok=False)

    logger.debug("Resolved session user_id=%s role=%s pages=%s", user.id, user.role, sorted(permissions or {}))
    return SessionContext(
        ok=True,
        user_id=user.id,
        role=user.role,
        permissions=permissions,
        branch=user.branch if isinstance(user.branch, str) else None,
    )


def has_permission(permissions: Permissions | None, page: str, action: str) -> bool:
    if not permissions:
        return False
    actions = permissions.get(page)
    if actions is None or isinstance(actions, str):
        return False
    return action in set(actions)


def is_admin(role: str | None) -> bool:
    # Exact match; "admin" or "ADMIN" are ordinary roles.
    return role == ADMIN_ROLE


def can(context: SessionContext, page: str, action: str) -> bool:
    """Admin, or holder of `page:action`."""

    return context.ok and (is_admin(context.role) or has_permission(context.permissions, page, action))
