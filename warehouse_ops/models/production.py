from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warehouse_ops.db.base import Base


class Shipment(Base):
    __tablename__ = "shipments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    production_uploaded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    cases: Mapped[list["ProductionCase"]] = relationship(back_populates="shipment", cascade="all, delete-orphan")


class ProductionCase(Base):
    __tablename__ = "production_cases"
    __table_args__ = (UniqueConstraint("shipment_id", "case_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shipment_id: Mapped[str] = mapped_column(ForeignKey("shipments.id"), nullable=False, index=True)
    case_number: Mapped[str] = mapped_column(String(64), nullable=False)

    critical_parts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_lines: Mapped[int] = mapped_column(Integer, nullable=False)
    domestic_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bulk_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Ledger state. remaining_lines / fully_sorted are denormalized for listing
    # and are always recomputed from total/consumed on read.
    consumed_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remaining_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    fully_sorted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    source_row: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_allocated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_allocated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    shipment: Mapped[Shipment] = relationship(back_populates="cases")

    __mapper_args__ = {"version_id_col": version}


class ProductionMeta(Base):
    """Case numbers of the last upload per shipment (drives wildcard deletes)."""

    __tablename__ = "production_meta"

    shipment_id: Mapped[str] = mapped_column(ForeignKey("shipments.id"), primary_key=True)
    case_numbers: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    uploaded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


class ProductionUpload(Base):
    __tablename__ = "production_uploads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    shipments: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    processed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
