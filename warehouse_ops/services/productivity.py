"""
Productivity logging.

A save allocates every sorting entry against the case ledger first; only when
all allocations succeeded are the entries written, together with the user's
aggregate for that day, in a single commit.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from warehouse_ops.errors import DuplicateRequest, InvalidEntry, NotFound
from warehouse_ops.models.productivity import ProductivityDay, ProductivityEntry, ProductivitySubmission
from warehouse_ops.models.security import User
from warehouse_ops.schemas.productivity import (
    ChartPointOut,
    DaySummaryOut,
    MonthlySummaryOut,
    MonthTotalsOut,
    PackingEntryIn,
    PackingTotals,
    ProductivitySaveIn,
    SortingTotals,
)
from warehouse_ops.services import ledger

logger = logging.getLogger(__name__)


def _entry_moment(value: datetime | None) -> tuple[date, datetime]:
    """(calendar day as sent by the client, naive UTC timestamp for storage)."""

    moment = value or datetime.utcnow()
    day = moment.date()
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return day, moment


def _validate_packing(entries: list[PackingEntryIn]) -> None:
    for index, entry in enumerate(entries):
        if entry.lines_packed <= 0:
            raise InvalidEntry("Packing entry needs a positive linesPacked", index=index)


def _allocation_requests(payload: ProductivitySaveIn) -> list[ledger.AllocationRequest]:
    return [
        ledger.AllocationRequest(
            shipment_id=entry.shipment_id.strip(),
            case_number=entry.case_number.strip(),
            requested_lines=entry.total_lines,
        )
        for entry in payload.sorting_entries
    ]


def _claim_key(session_factory: sessionmaker[Session], key: str, user_id: str) -> DaySummaryOut | None:
    """
    Reserve an idempotency key.

    Returns the stored summary when the key already completed, raises
    DuplicateRequest while another request holding the key is still running.
    """

    with session_factory() as db:
        db.add(ProductivitySubmission(idempotency_key=key, user_id=user_id, status="pending"))
        try:
            db.commit()
            return None
        except IntegrityError:
            db.rollback()

        existing = db.get(ProductivitySubmission, key)
        if existing is not None and existing.status == "completed" and existing.user_id == user_id and existing.summary:
            logger.info("Replaying productivity save key=%s user_id=%s", key, user_id)
            return DaySummaryOut.model_validate(existing.summary)
    raise DuplicateRequest("A request with this Idempotency-Key was already submitted")


def _release_key(session_factory: sessionmaker[Session], key: str) -> None:
    with session_factory() as db:
        claim = db.get(ProductivitySubmission, key)
        if claim is not None and claim.status == "pending":
            db.delete(claim)
            db.commit()


def day_summary(db: Session, user_id: str, day: date) -> DaySummaryOut:
    """Aggregate of every stored entry of `user_id` on `day`."""

    rows = db.execute(
        select(
            ProductivityEntry.type,
            func.count(ProductivityEntry.id),
            func.coalesce(func.sum(ProductivityEntry.total_lines), 0),
            func.coalesce(func.sum(ProductivityEntry.ekc_domestic), 0),
            func.coalesce(func.sum(ProductivityEntry.ekm_bulk), 0),
            func.coalesce(func.sum(ProductivityEntry.lines_packed), 0),
        )
        .where(ProductivityEntry.user_id == user_id, ProductivityEntry.day == day)
        .group_by(ProductivityEntry.type)
    ).all()

    sorting = SortingTotals()
    packing = PackingTotals()
    for entry_type, cases, lines, ekc, ekm, packed in rows:
        if entry_type == "sorting":
            sorting = SortingTotals(total_cases=cases, total_lines=lines, total_ekc=ekc, total_ekm=ekm)
        elif entry_type == "packing":
            packing = PackingTotals(total_cases=cases, total_lines=packed)
    return DaySummaryOut(date=day.isoformat(), sorting=sorting, packing=packing)


def _write_entries(
    db: Session,
    payload: ProductivitySaveIn,
    user_id: str,
    day: date,
    moment: datetime,
) -> DaySummaryOut:
    for entry in payload.sorting_entries:
        db.add(
            ProductivityEntry(
                user_id=user_id,
                day=day,
                type="sorting",
                shipment_id=entry.shipment_id.strip(),
                case_number=entry.case_number.strip(),
                total_lines=entry.total_lines,
                ekc_domestic=entry.ekc_domestic,
                ekm_bulk=entry.ekm_bulk,
                entry_date=moment,
            )
        )
    for entry in payload.packing_entries:
        db.add(
            ProductivityEntry(
                user_id=user_id,
                day=day,
                type="packing",
                location_no=entry.location_no.strip(),
                new_case_no=entry.new_case_no.strip(),
                lines_packed=entry.lines_packed,
                entry_date=moment,
            )
        )
    db.flush()

    summary = day_summary(db, user_id, day)
    aggregate = db.get(ProductivityDay, (user_id, day))
    if aggregate is None:
        aggregate = ProductivityDay(user_id=user_id, day=day)
        db.add(aggregate)
    aggregate.sorting_total_cases = summary.sorting.total_cases
    aggregate.sorting_total_lines = summary.sorting.total_lines
    aggregate.sorting_total_ekc = summary.sorting.total_ekc
    aggregate.sorting_total_ekm = summary.sorting.total_ekm
    aggregate.packing_total_cases = summary.packing.total_cases
    aggregate.packing_total_lines = summary.packing.total_lines
    aggregate.updated_at = datetime.utcnow()
    return summary


def save_productivity(
    session_factory: sessionmaker[Session],
    payload: ProductivitySaveIn,
    user_id: str,
    *,
    idempotency_key: str | None = None,
    max_attempts: int = 5,
) -> DaySummaryOut:
    requests = _allocation_requests(payload)
    ledger.validate_requests(requests)
    _validate_packing(payload.packing_entries)

    with session_factory() as db:
        if db.get(User, user_id) is None:
            raise NotFound("User not found", userId=user_id)

    if idempotency_key:
        replay = _claim_key(session_factory, idempotency_key, user_id)
        if replay is not None:
            return replay

    day, moment = _entry_moment(payload.date)
    try:
        ledger.allocate_many(session_factory, requests, user_id, max_attempts=max_attempts)
    except Exception:
        if idempotency_key:
            _release_key(session_factory, idempotency_key)
        raise

    try:
        with session_factory() as db:
            summary = _write_entries(db, payload, user_id, day, moment)
            if idempotency_key:
                claim = db.get(ProductivitySubmission, idempotency_key)
                claim.status = "completed"
                claim.summary = summary.model_dump(by_alias=True)
            db.commit()
    except Exception:
        logger.exception("Writing productivity entries failed user_id=%s day=%s; releasing allocations", user_id, day)
        ledger.release_all(session_factory, requests, user_id, max_attempts=max_attempts)
        if idempotency_key:
            _release_key(session_factory, idempotency_key)
        raise

    logger.info(
        "Saved productivity user_id=%s day=%s sorting=%s packing=%s",
        user_id,
        day,
        len(payload.sorting_entries),
        len(payload.packing_entries),
    )
    return summary


def parse_month(month: str) -> tuple[date, date]:
    try:
        year_str, month_str = month.split("-")
        year, month_no = int(year_str), int(month_str)
        last_day = calendar.monthrange(year, month_no)[1]
        return date(year, month_no, 1), date(year, month_no, last_day)
    except ValueError as exc:
        raise InvalidEntry("Invalid month format (expected YYYY-MM)") from exc


def monthly_summary(db: Session, user_id: str, month: str) -> MonthlySummaryOut:
    start, end = parse_month(month)
    days = db.scalars(
        select(ProductivityDay)
        .where(ProductivityDay.user_id == user_id, ProductivityDay.day >= start, ProductivityDay.day <= end)
        .order_by(ProductivityDay.day)
    ).all()

    totals = MonthTotalsOut()
    chart: list[ChartPointOut] = []
    for record in days:
        chart.append(
            ChartPointOut(
                label=record.day.isoformat(),
                sorter_lines=record.sorting_total_lines,
                packer_lines=record.packing_total_lines,
            )
        )
        totals.sorter_lines += record.sorting_total_lines
        totals.packer_lines += record.packing_total_lines
        totals.sorter_cases += record.sorting_total_cases
        totals.packer_cases += record.packing_total_cases
    return MonthlySummaryOut(chart_data=chart, totals=totals)
