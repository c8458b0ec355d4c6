"""
Case consumption ledger.

Each production case has a fixed `total_lines` capacity. Sorting work consumes
it through allocations; the ledger guarantees `consumed_lines <= total_lines`
for every case, also under concurrent requests.

Every allocation is its own read-check-write transaction (see
`warehouse_ops.db.transaction.run_transaction`): the UPDATE is version-checked,
so two requests that both read the same remaining capacity cannot both commit.
The loser is re-run against the fresh row and fails the capacity check.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from functools import partial

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from warehouse_ops.db.transaction import run_transaction
from warehouse_ops.errors import CaseNotFound, ExceedsRemaining, InvalidEntry, NotFound
from warehouse_ops.models.production import ProductionCase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationRequest:
    shipment_id: str
    case_number: str
    requested_lines: int


@dataclass(frozen=True)
class CaseState:
    """Snapshot of a case with the derived fields recomputed from total/consumed."""

    shipment_id: str
    case_number: str
    total_lines: int
    consumed_lines: int
    remaining_lines: int
    fully_sorted: bool
    critical_parts: int = 0
    domestic_lines: int = 0
    bulk_lines: int = 0
    last_allocated_at: datetime | None = None
    last_allocated_by: str | None = None

    @classmethod
    def from_model(cls, case: ProductionCase) -> CaseState:
        total = case.total_lines or 0
        consumed = case.consumed_lines or 0
        remaining, fully_sorted = derive_balance(total, consumed)
        return cls(
            shipment_id=case.shipment_id,
            case_number=case.case_number,
            total_lines=total,
            consumed_lines=consumed,
            remaining_lines=remaining,
            fully_sorted=fully_sorted,
            critical_parts=case.critical_parts or 0,
            domestic_lines=case.domestic_lines or 0,
            bulk_lines=case.bulk_lines or 0,
            last_allocated_at=case.last_allocated_at,
            last_allocated_by=case.last_allocated_by,
        )


def derive_balance(total_lines: int, consumed_lines: int) -> tuple[int, bool]:
    return max(0, total_lines - consumed_lines), consumed_lines >= total_lines


def validate_requests(requests: Sequence[AllocationRequest]) -> None:
    """Reject the whole batch before any transaction starts."""

    for index, request in enumerate(requests):
        if not request.shipment_id or not request.case_number:
            raise InvalidEntry("Sorting entry needs shipmentId and caseNumber", index=index)
        lines = request.requested_lines
        if isinstance(lines, bool) or not isinstance(lines, int) or lines <= 0:
            raise InvalidEntry("Sorting entry needs a positive totalLines", index=index)


def _load_case(db: Session, shipment_id: str, case_number: str) -> ProductionCase | None:
    stmt = select(ProductionCase).where(
        ProductionCase.shipment_id == shipment_id,
        ProductionCase.case_number == case_number,
    )
    return db.scalars(stmt).first()


def _apply(case: ProductionCase, consumed: int, user_id: str) -> None:
    remaining, fully_sorted = derive_balance(case.total_lines, consumed)
    case.consumed_lines = consumed
    case.remaining_lines = remaining
    case.fully_sorted = fully_sorted
    case.last_allocated_at = datetime.utcnow()
    case.last_allocated_by = user_id


def consume_case(db: Session, request: AllocationRequest, user_id: str) -> CaseState:
    """
    Transaction body: check capacity and consume `requested_lines`.

    Raises CaseNotFound / ExceedsRemaining without touching the row.
    """

    case = _load_case(db, request.shipment_id, request.case_number)
    if case is None:
        raise CaseNotFound(request.shipment_id, request.case_number)

    consumed = case.consumed_lines or 0
    remaining, _ = derive_balance(case.total_lines or 0, consumed)
    if request.requested_lines > remaining:
        raise ExceedsRemaining(remaining, request.shipment_id, request.case_number)

    _apply(case, consumed + request.requested_lines, user_id)
    db.flush()
    return CaseState.from_model(case)


def release_case(db: Session, request: AllocationRequest, user_id: str) -> CaseState:
    """Transaction body: give back `requested_lines` (never below zero)."""

    case = _load_case(db, request.shipment_id, request.case_number)
    if case is None:
        raise CaseNotFound(request.shipment_id, request.case_number)

    _apply(case, max(0, (case.consumed_lines or 0) - request.requested_lines), user_id)
    db.flush()
    return CaseState.from_model(case)


def allocate(
    session_factory: sessionmaker[Session],
    request: AllocationRequest,
    user_id: str,
    *,
    max_attempts: int = 5,
) -> CaseState:
    state = run_transaction(session_factory, partial(consume_case, request=request, user_id=user_id), max_attempts=max_attempts)
    logger.info(
        "Allocated shipment=%s case=%s lines=%s remaining=%s user_id=%s",
        request.shipment_id,
        request.case_number,
        request.requested_lines,
        state.remaining_lines,
        user_id,
    )
    return state


def release(
    session_factory: sessionmaker[Session],
    request: AllocationRequest,
    user_id: str,
    *,
    max_attempts: int = 5,
) -> CaseState:
    state = run_transaction(session_factory, partial(release_case, request=request, user_id=user_id), max_attempts=max_attempts)
    logger.info(
        "Released shipment=%s case=%s lines=%s remaining=%s user_id=%s",
        request.shipment_id,
        request.case_number,
        request.requested_lines,
        state.remaining_lines,
        user_id,
    )
    return state


def allocate_many(
    session_factory: sessionmaker[Session],
    requests: Sequence[AllocationRequest],
    user_id: str,
    *,
    max_attempts: int = 5,
) -> list[CaseState]:
    """
    Allocate every request, one transaction per case.

    If any allocation fails, allocations already committed by this call are
    released again before the error propagates, so a rejected batch leaves
    no consumption behind.
    """

    validate_requests(requests)

    committed: list[AllocationRequest] = []
    states: list[CaseState] = []
    try:
        for request in requests:
            states.append(allocate(session_factory, request, user_id, max_attempts=max_attempts))
            committed.append(request)
    except Exception:
        release_all(session_factory, committed, user_id, max_attempts=max_attempts)
        raise
    return states


def release_all(
    session_factory: sessionmaker[Session],
    committed: Sequence[AllocationRequest],
    user_id: str,
    *,
    max_attempts: int = 5,
) -> None:
    """Undo allocations in reverse order; failures are logged, not raised."""

    for request in reversed(committed):
        try:
            release(session_factory, request, user_id, max_attempts=max_attempts)
        except Exception:
            # The caller re-raises the allocation error; a failed
            # release leaves consumption that must be corrected by hand.
            logger.exception(
                "Could not release allocation shipment=%s case=%s lines=%s",
                request.shipment_id,
                request.case_number,
                request.requested_lines,
            )


def get_case_state(db: Session, shipment_id: str, case_number: str) -> CaseState:
    case = _load_case(db, shipment_id, case_number)
    if case is None:
        raise NotFound("Case not found", shipmentId=shipment_id, caseNumber=case_number)
    return CaseState.from_model(case)


def list_case_balances(db: Session, shipment_id: str) -> list[tuple[str, int]]:
    """(case_number, remaining_lines) for every case with capacity left."""

    stmt = select(ProductionCase).where(ProductionCase.shipment_id == shipment_id).order_by(ProductionCase.case_number)
    balances: list[tuple[str, int]] = []
    for case in db.scalars(stmt):
        remaining, _ = derive_balance(case.total_lines or 0, case.consumed_lines or 0)
        if remaining > 0:
            balances.append((case.case_number, remaining))
    return balances
