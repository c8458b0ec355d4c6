from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from warehouse_ops.db.session import get_db
from warehouse_ops.errors import InvalidEntry
from warehouse_ops.models.security import Role, User
from warehouse_ops.schemas.security import RoleIn, RoleOut, UserOut
from warehouse_ops.security.decorators import require_permission
from warehouse_ops.security.session import flatten_role_permissions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=list[UserOut])
@require_permission("users", "view")
def list_users(db: Session = Depends(get_db)) -> list[User]:
    return list(db.scalars(select(User).order_by(User.employee_no)).all())


@router.get("/roles", response_model=list[RoleOut])
@require_permission("roles", "view")
def list_roles(db: Session = Depends(get_db)) -> list[Role]:
    return list(db.scalars(select(Role).order_by(Role.name)).all())


@router.put("/roles/{name}", response_model=RoleOut)
@require_permission("roles", "edit")
def upsert_role(name: str, body: RoleIn, db: Session = Depends(get_db)) -> Role:
    # Store only entries the session resolver can use.
    flattened = flatten_role_permissions(body.permissions)
    permissions = [f"{page}:{action}" for page, actions in flattened.items() for action in actions]
    if len(permissions) != len(body.permissions):
        raise InvalidEntry("Role permissions must be unique 'page:action' strings")

    role = db.scalars(select(Role).where(Role.name == name)).first()
    if role is None:
        role = Role(name=name)
        db.add(role)
    role.description = body.description
    role.permissions = permissions
    db.commit()
    db.refresh(role)
    logger.info("Role saved name=%s permissions=%s", name, len(permissions))
    return role
