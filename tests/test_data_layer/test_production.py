"""Production case upload / delete."""
from __future__ import annotations

import pytest
from sqlalchemy import select

from warehouse_ops.errors import InvalidPayload
from warehouse_ops.models.production import ProductionCase, ProductionMeta, ProductionUpload, Shipment
from warehouse_ops.schemas.production import CaseRecordIn
from warehouse_ops.services.ledger import AllocationRequest, allocate
from warehouse_ops.services.production import delete_cases, sanitize_identifier, upsert_cases


def _records(*rows) -> list[CaseRecordIn]:
    return [CaseRecordIn.model_validate(r) for r in rows]


def test_sanitize_identifier():
    assert sanitize_identifier("  SHP-01/A_2 ") == "SHP-01/A_2"
    assert sanitize_identifier("C<script>1") == "Cscript1"
    assert sanitize_identifier("a b.c") == "abc"
    assert sanitize_identifier(None) == ""
    assert sanitize_identifier(42) == "42"


def test_upload_creates_cases_and_meta(session_factory, case_state):
    with session_factory() as db:
        processed, skipped = upsert_cases(
            db,
            {
                "SHP 1": _records(
                    {"caseNumber": "C1", "totalLines": 10, "criticalParts": 2, "row": 3},
                    {"caseNumber": "C2", "totalLines": 5},
                    {"caseNumber": "", "totalLines": 5},
                    {"caseNumber": "C3", "totalLines": -1},
                )
            },
            {"fileName": "wave-1.xlsx"},
            "u1",
        )

    assert (processed, skipped) == (2, 2)
    assert case_state("SHP1", "C1") == (10, 0, 10, False)

    with session_factory() as db:
        meta = db.get(ProductionMeta, "SHP1")
        assert meta.case_numbers == ["C1", "C2"]
        assert meta.file_name == "wave-1.xlsx"
        assert db.get(Shipment, "SHP1").production_uploaded is True
        case = db.scalars(select(ProductionCase).where(ProductionCase.case_number == "C1")).one()
        assert (case.critical_parts, case.source_row, case.uploaded_by) == (2, 3, "u1")
        upload = db.scalars(select(ProductionUpload)).one()
        assert (upload.status, upload.processed_count, upload.skipped_count) == ("completed", 2, 2)


def test_reupload_keeps_consumed_lines(session_factory, make_case, case_state):
    make_case("S1", "C1", total=10)
    allocate(session_factory, AllocationRequest("S1", "C1", 4), "u1")

    with session_factory() as db:
        upsert_cases(db, {"S1": _records({"caseNumber": "C1", "totalLines": 20})}, {}, "u2")

    assert case_state("S1", "C1") == (20, 4, 16, False)


def test_reupload_below_consumed_is_skipped(session_factory, make_case, case_state):
    make_case("S1", "C1", total=10, consumed=8)

    with session_factory() as db:
        processed, skipped = upsert_cases(db, {"S1": _records({"caseNumber": "C1", "totalLines": 5})}, {}, "u1")

    assert (processed, skipped) == (0, 1)
    assert case_state("S1", "C1") == (10, 8, 2, False)


def test_upload_without_shipments(session_factory):
    with session_factory() as db:
        with pytest.raises(InvalidPayload):
            upsert_cases(db, {}, {}, "u1")


def test_delete_listed_cases(session_factory):
    with session_factory() as db:
        upsert_cases(
            db,
            {"S1": _records({"caseNumber": "C1", "totalLines": 1}, {"caseNumber": "C2", "totalLines": 1})},
            {},
            "u1",
        )
        deleted = delete_cases(db, {"S1": ["C1", "C404"]})

    assert deleted == 1
    with session_factory() as db:
        remaining = db.scalars(select(ProductionCase.case_number)).all()
        assert remaining == ["C2"]
        assert db.get(Shipment, "S1").production_uploaded is False
        assert db.get(ProductionMeta, "S1") is None


def test_wildcard_delete_removes_last_upload(session_factory, make_case):
    make_case("S1", "OLD", total=3)
    with session_factory() as db:
        upsert_cases(
            db,
            {"S1": _records({"caseNumber": "C1", "totalLines": 1}, {"caseNumber": "C2", "totalLines": 1})},
            {},
            "u1",
        )
        deleted = delete_cases(db, {"S1": [" * "]})

    assert deleted == 2
    with session_factory() as db:
        assert db.scalars(select(ProductionCase.case_number)).all() == ["OLD"]


def test_delete_without_shipments(session_factory):
    with session_factory() as db:
        with pytest.raises(InvalidPayload):
            delete_cases(db, {})
