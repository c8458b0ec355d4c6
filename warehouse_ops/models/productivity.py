from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from warehouse_ops.db.base import Base


class ProductivityEntry(Base):
    """Append-only record of one sorting allocation or packing line."""

    __tablename__ = "productivity_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(10), nullable=False)

    # sorting
    shipment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    case_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ekc_domestic: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ekm_bulk: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # packing
    location_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    new_case_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    lines_packed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    entry_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ProductivityDay(Base):
    """Per-user, per-day aggregate of all stored entries."""

    __tablename__ = "productivity_days"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True)

    sorting_total_cases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sorting_total_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sorting_total_ekc: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sorting_total_ekm: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    packing_total_cases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    packing_total_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ProductivitySubmission(Base):
    """Idempotency record for a productivity save keyed by the client's Idempotency-Key."""

    __tablename__ = "productivity_submissions"

    idempotency_key: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
