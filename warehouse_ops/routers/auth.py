from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from warehouse_ops.db.session import get_db
from warehouse_ops.errors import MissingParams, NotFound
from warehouse_ops.models.security import User
from warehouse_ops.schemas.security import LoginIn, LoginOut, LoginUserOut, MeOut
from warehouse_ops.security.auth import authenticate
from warehouse_ops.security.config import SecurityConfig
from warehouse_ops.security.context import SessionContext
from warehouse_ops.security.dependencies import get_security_config, get_session_context
from warehouse_ops.settings import Settings, get_settings

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login", response_model=LoginOut)
def login(
    body: LoginIn,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    config: SecurityConfig = Depends(get_security_config),
) -> LoginOut:
    if not body.employee_no.strip() or not body.password:
        raise MissingParams("Employee number and password are required.")

    user = authenticate(
        db,
        body.employee_no,
        body.password,
        attempts=settings.login_retry_attempts,
        base_delay=settings.login_retry_base_delay,
    )

    # The cookie carries the bare user id; the session resolver also accepts {"id": ...}.
    response.set_cookie(
        config.cookie_name,
        user.id,
        max_age=settings.session_max_age_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return LoginOut(user=LoginUserOut.model_validate(user))


@router.post("/logout")
def logout(response: Response, config: SecurityConfig = Depends(get_security_config)) -> dict[str, object]:
    response.delete_cookie(config.cookie_name, path="/")
    return {"success": True, "message": "Logged out successfully."}


@router.get("/me", response_model=MeOut)
def me(context: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)) -> MeOut:
    user = db.get(User, context.user_id)
    if user is None:
        raise NotFound("User not found")
    return MeOut(
        id=user.id,
        employee_no=user.employee_no,
        full_name=user.full_name,
        role=user.role,
        department=user.department,
        email=user.email,
        branch=context.branch,
        permissions=dict(context.permissions) if context.permissions is not None else None,
    )
