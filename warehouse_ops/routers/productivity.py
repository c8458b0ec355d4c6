from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session, sessionmaker

from warehouse_ops.db.session import get_db, get_session_factory
from warehouse_ops.errors import Forbidden, MissingParams
from warehouse_ops.schemas.productivity import MonthlySummaryOut, ProductivitySaveIn, ProductivitySaveOut
from warehouse_ops.security.context import SessionContext
from warehouse_ops.security.dependencies import get_session_context
from warehouse_ops.security.session import can
from warehouse_ops.services.productivity import monthly_summary, save_productivity
from warehouse_ops.settings import Settings, get_settings

router = APIRouter(prefix="/api/productivity", tags=["productivity"])


def _target_user(context: SessionContext, requested: str | None) -> str:
    """Own records by default; someone else's need productivity:edit (or Admin)."""

    target = (requested or "").strip() or context.user_id
    if target != context.user_id and not can(context, "productivity", "edit"):
        raise Forbidden("Cannot act on another user's productivity")
    return target


@router.post("/save", response_model=ProductivitySaveOut)
def save(
    body: ProductivitySaveIn,
    idempotency_key: str | None = Header(default=None),
    context: SessionContext = Depends(get_session_context),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> ProductivitySaveOut:
    user_id = _target_user(context, body.user_id)
    summary = save_productivity(
        session_factory,
        body,
        user_id,
        idempotency_key=(idempotency_key or "").strip() or None,
        max_attempts=settings.transaction_max_attempts,
    )
    return ProductivitySaveOut(summary=summary)


@router.get("/summary", response_model=MonthlySummaryOut)
def summary(
    user_id: str | None = Query(default=None, alias="userId"),
    month: str | None = None,
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
) -> MonthlySummaryOut:
    if not month:
        raise MissingParams("Missing month (YYYY-MM)")
    return monthly_summary(db, _target_user(context, user_id), month)
