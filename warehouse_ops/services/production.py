"""
Production case upload and removal.

Uploads create (or redefine) the cases a shipment is sorted against. The
ledger columns of an existing case survive a re-upload, and a record that
would put a case's total below what was already consumed is skipped.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from warehouse_ops.errors import InvalidPayload
from warehouse_ops.models.production import ProductionCase, ProductionMeta, ProductionUpload, Shipment
from warehouse_ops.schemas.production import CaseRecordIn
from warehouse_ops.services.ledger import derive_balance

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^-A-Za-z0-9_/\\]")

WILDCARD = "*"


def sanitize_identifier(value: Any) -> str:
    """Trim and drop every character outside [-A-Za-z0-9_/\\]."""

    if value is None:
        return ""
    return _UNSAFE_CHARS.sub("", str(value).strip())


def _get_or_create_shipment(db: Session, shipment_id: str) -> Shipment:
    shipment = db.get(Shipment, shipment_id)
    if shipment is None:
        shipment = Shipment(id=shipment_id)
        db.add(shipment)
        db.flush()
    return shipment


def _record_is_valid(record: CaseRecordIn) -> bool:
    numbers = (record.critical_parts, record.total_lines, record.domestic_lines, record.bulk_lines)
    return all(n >= 0 for n in numbers)


def _upsert_case(db: Session, shipment_id: str, case_number: str, record: CaseRecordIn, user_id: str) -> bool:
    case = db.scalars(
        select(ProductionCase).where(
            ProductionCase.shipment_id == shipment_id,
            ProductionCase.case_number == case_number,
        )
    ).first()

    if case is None:
        case = ProductionCase(shipment_id=shipment_id, case_number=case_number, consumed_lines=0)
        db.add(case)
    elif record.total_lines < (case.consumed_lines or 0):
        logger.warning(
            "Skipping case redefinition below consumed lines shipment=%s case=%s total=%s consumed=%s",
            shipment_id,
            case_number,
            record.total_lines,
            case.consumed_lines,
        )
        return False

    remaining, fully_sorted = derive_balance(record.total_lines, case.consumed_lines or 0)
    case.critical_parts = record.critical_parts
    case.total_lines = record.total_lines
    case.domestic_lines = record.domestic_lines
    case.bulk_lines = record.bulk_lines
    case.remaining_lines = remaining
    case.fully_sorted = fully_sorted
    case.source_row = record.row
    case.uploaded_at = datetime.utcnow()
    case.uploaded_by = user_id
    # a later record for the same case number must find this row
    db.flush()
    return True


def upsert_cases(
    db: Session,
    shipments: dict[str, list[CaseRecordIn]],
    meta: dict[str, Any],
    user_id: str,
) -> tuple[int, int]:
    """
    Store uploaded case records; returns (processed, skipped).

    The upload itself is recorded in production_uploads as started, then
    completed or failed.
    """

    if not shipments:
        raise InvalidPayload("No shipments in payload")

    started = time.monotonic()
    run = ProductionUpload(status="started", user_id=user_id, shipments=list(shipments), meta=meta or None)
    db.add(run)
    db.commit()

    processed = skipped = 0
    try:
        for raw_shipment_id, records in shipments.items():
            shipment_id = sanitize_identifier(raw_shipment_id)
            if not shipment_id:
                continue

            shipment = _get_or_create_shipment(db, shipment_id)
            case_numbers: list[str] = []
            for record in records:
                case_number = sanitize_identifier(record.case_number)
                if not case_number or not _record_is_valid(record):
                    skipped += 1
                    continue
                if _upsert_case(db, shipment_id, case_number, record, user_id):
                    processed += 1
                else:
                    skipped += 1
                if case_number not in case_numbers:
                    case_numbers.append(case_number)

            shipment.production_uploaded = True
            shipment.updated_at = datetime.utcnow()
            db.merge(
                ProductionMeta(
                    shipment_id=shipment_id,
                    case_numbers=case_numbers,
                    count=len(case_numbers),
                    file_name=(meta or {}).get("fileName"),
                    uploaded_at=datetime.utcnow(),
                    uploaded_by=user_id,
                )
            )
            db.flush()

        run.status = "completed"
        run.processed_count = processed
        run.skipped_count = skipped
        run.finished_at = datetime.utcnow()
        run.duration_ms = int((time.monotonic() - started) * 1000)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Case upload failed upload_id=%s", run.id)
        run.status = "failed"
        run.error = str(exc)
        run.finished_at = datetime.utcnow()
        db.commit()
        raise

    logger.info("Case upload finished upload_id=%s processed=%s skipped=%s", run.id, processed, skipped)
    return processed, skipped


def delete_cases(db: Session, shipments: dict[str, list[str]]) -> int:
    """
    Delete the listed cases of each shipment; `["*"]` means every case of the
    last upload. Clears the shipment's upload lock and meta.
    """

    if not shipments:
        raise InvalidPayload("No shipments in payload")

    total = 0
    for raw_shipment_id, raw_case_numbers in shipments.items():
        shipment_id = sanitize_identifier(raw_shipment_id)
        if not shipment_id or not raw_case_numbers:
            continue

        meta = db.get(ProductionMeta, shipment_id)
        if [str(c).strip() for c in raw_case_numbers] == [WILDCARD]:
            targets = list(meta.case_numbers) if meta is not None else []
        else:
            targets = [sanitize_identifier(c) for c in raw_case_numbers]
        targets = [t for t in targets if t]

        if targets:
            result = db.execute(
                delete(ProductionCase).where(
                    ProductionCase.shipment_id == shipment_id,
                    ProductionCase.case_number.in_(targets),
                )
            )
            total += result.rowcount or 0

        shipment = db.get(Shipment, shipment_id)
        if shipment is not None:
            shipment.production_uploaded = False
            shipment.updated_at = datetime.utcnow()
        if meta is not None:
            db.delete(meta)

    db.commit()
    logger.info("Deleted production cases count=%s shipments=%s", total, len(shipments))
    return total
