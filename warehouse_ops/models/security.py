from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from warehouse_ops.db.base import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Stored as ["page:action", ...]; flattened per request by the session resolver.
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("employee_no"),)

    # Opaque id; also the raw value of the session cookie.
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    employee_no: Mapped[str] = mapped_column(String(32), nullable=False)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False)

    # Role *name*, matched against Role.name by exact equality. No FK:
    # a user may reference a role that an admin has not created yet.
    role: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    # Explicit per-user permissions ({page: [action, ...]}); NULL means "derive from role".
    permissions: Mapped[dict[str, list[str]] | None] = mapped_column(JSON, nullable=True)

    branch: Mapped[str | None] = mapped_column(String(50), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)

    password_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
