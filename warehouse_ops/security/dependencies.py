from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from warehouse_ops.db.session import get_db
from warehouse_ops.errors import Forbidden, Unauthenticated
from warehouse_ops.security.config import SecurityConfig
from warehouse_ops.security.context import SessionContext
from warehouse_ops.security.session import has_permission, is_admin, resolve_session

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_session_context(request: Request) -> SessionContext:
    context = getattr(request.state, "session", None)
    if context is None or not context.ok:
        raise Unauthenticated("Authentication required")
    return context


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency.

    Every route goes through here, so a handler cannot forget its permission
    check: the requirement lives in config/security_config.yaml or in a
    `require_permission` decorator, and unlisted routes still need a session.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_permissions = set(getattr(endpoint, "__security_permissions__", set())) if endpoint else set()

    required = set(rule.permissions) | decorator_permissions
    auth_required = rule.auth_required or bool(decorator_permissions)

    context = resolve_session(db, request.cookies.get(config.cookie_name))
    request.state.session = context

    if not auth_required:
        return

    if not context.ok:
        logger.info("Unauthenticated request path=%s method=%s", path, method)
        raise Unauthenticated()

    if not required or is_admin(context.role):
        return

    if not any(has_permission(context.permissions, page, action) for page, action in required):
        logger.info(
            "Forbidden path=%s method=%s user_id=%s role=%s",
            path,
            method,
            context.user_id,
            context.role,
        )
        raise Forbidden(f"Requires one of: {sorted(f'{p}:{a}' for p, a in required)}")
