from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from warehouse_ops.db.session import get_db
from warehouse_ops.errors import MissingParams
from warehouse_ops.schemas.production import (
    CaseBalanceOut,
    CaseBalancesOut,
    CaseDataOut,
    CaseOut,
    DeleteCasesIn,
    DeleteCasesOut,
    ProcessCasesIn,
    ProcessCasesOut,
)
from warehouse_ops.security.context import SessionContext
from warehouse_ops.security.dependencies import get_session_context
from warehouse_ops.services import ledger
from warehouse_ops.services.production import delete_cases, sanitize_identifier, upsert_cases

router = APIRouter(prefix="/api/production", tags=["production"])


@router.get("/case", response_model=CaseOut)
def get_case(
    shipment_id: str | None = Query(default=None, alias="shipmentId"),
    case_number: str | None = Query(default=None, alias="caseNumber"),
    db: Session = Depends(get_db),
) -> CaseOut:
    shipment_id = sanitize_identifier(shipment_id)
    case_number = sanitize_identifier(case_number)
    if not shipment_id or not case_number:
        raise MissingParams()

    state = ledger.get_case_state(db, shipment_id, case_number)
    return CaseOut(shipment_id=shipment_id, case_number=case_number, data=CaseDataOut.model_validate(state))


@router.get("/cases", response_model=CaseBalancesOut)
def list_cases(
    shipment_id: str | None = Query(default=None, alias="shipmentId"),
    db: Session = Depends(get_db),
) -> CaseBalancesOut:
    shipment_id = sanitize_identifier(shipment_id)
    if not shipment_id:
        raise MissingParams("Missing shipmentId")

    balances = ledger.list_case_balances(db, shipment_id)
    return CaseBalancesOut(
        case_numbers=[case_number for case_number, _ in balances],
        balances=[CaseBalanceOut(case_number=c, remaining_lines=r) for c, r in balances],
    )


@router.post("/process-cases", response_model=ProcessCasesOut)
def process_cases(
    body: ProcessCasesIn,
    context: SessionContext = Depends(get_session_context),
    db: Session = Depends(get_db),
) -> ProcessCasesOut:
    processed, skipped = upsert_cases(db, body.shipments, body.meta, context.user_id)
    return ProcessCasesOut(total_items=processed, skipped=skipped)


@router.delete("/process-cases", response_model=DeleteCasesOut)
def remove_cases(body: DeleteCasesIn, db: Session = Depends(get_db)) -> DeleteCasesOut:
    return DeleteCasesOut(total_deletes=delete_cases(db, body.shipments))
