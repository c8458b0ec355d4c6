"""Productivity saves: allocation first, then entries + daily aggregate."""
from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from warehouse_ops.errors import DuplicateRequest, ExceedsRemaining, InvalidEntry, NotFound
from warehouse_ops.models.productivity import ProductivityDay, ProductivityEntry, ProductivitySubmission
from warehouse_ops.schemas.productivity import ProductivitySaveIn
from warehouse_ops.services.productivity import monthly_summary, parse_month, save_productivity


def _payload(sorting=(), packing=(), when="2025-03-04T09:30:00") -> ProductivitySaveIn:
    return ProductivitySaveIn.model_validate(
        {"date": when, "sortingEntries": list(sorting), "packingEntries": list(packing)}
    )


def _entry_count(session_factory) -> int:
    with session_factory() as db:
        return db.scalar(select(func.count(ProductivityEntry.id)))


def test_save_allocates_and_records_entries(session_factory, make_case, make_user, case_state):
    user_id = make_user("100")
    make_case("S1", "C1", total=100)

    summary = save_productivity(
        session_factory,
        _payload(
            sorting=[{"shipmentId": "S1", "caseNumber": "C1", "totalLines": 30, "ekcDomestic": 10, "ekmBulk": 20}],
            packing=[{"locationNo": "L-1", "newCaseNo": "N-1", "linesPacked": 7}],
        ),
        user_id,
    )

    assert summary.date == "2025-03-04"
    assert summary.sorting.total_cases == 1
    assert summary.sorting.total_lines == 30
    assert summary.sorting.total_ekc == 10
    assert summary.sorting.total_ekm == 20
    assert summary.packing.total_cases == 1
    assert summary.packing.total_lines == 7
    assert case_state("S1", "C1") == (100, 30, 70, False)

    with session_factory() as db:
        entries = db.scalars(select(ProductivityEntry).order_by(ProductivityEntry.id)).all()
        assert [e.type for e in entries] == ["sorting", "packing"]
        assert entries[0].day == date(2025, 3, 4)
        assert entries[0].entry_date == datetime(2025, 3, 4, 9, 30)


def test_daily_aggregate_accumulates_across_saves(session_factory, make_case, make_user):
    user_id = make_user("100")
    make_case("S1", "C1", total=100)
    entry = {"shipmentId": "S1", "caseNumber": "C1", "totalLines": 10}

    save_productivity(session_factory, _payload(sorting=[entry]), user_id)
    summary = save_productivity(session_factory, _payload(sorting=[entry, entry]), user_id)

    assert summary.sorting.total_cases == 3
    assert summary.sorting.total_lines == 30
    with session_factory() as db:
        day = db.get(ProductivityDay, (user_id, date(2025, 3, 4)))
        assert day.sorting_total_lines == 30


def test_rejected_save_writes_nothing(session_factory, make_case, make_user, case_state):
    user_id = make_user("100")
    make_case("S1", "C1", total=10)
    make_case("S1", "C2", total=10)

    with pytest.raises(ExceedsRemaining):
        save_productivity(
            session_factory,
            _payload(
                sorting=[
                    {"shipmentId": "S1", "caseNumber": "C1", "totalLines": 5},
                    {"shipmentId": "S1", "caseNumber": "C2", "totalLines": 11},
                ]
            ),
            user_id,
        )

    assert case_state("S1", "C1") == (10, 0, 10, False)
    assert _entry_count(session_factory) == 0


def test_invalid_packing_entry(session_factory, make_user):
    user_id = make_user("100")
    with pytest.raises(InvalidEntry):
        save_productivity(session_factory, _payload(packing=[{"locationNo": "L-1", "linesPacked": 0}]), user_id)


def test_unknown_user(session_factory):
    with pytest.raises(NotFound):
        save_productivity(session_factory, _payload(), "ghost")


def test_idempotency_key_replays_without_consuming_again(session_factory, make_case, make_user, case_state):
    user_id = make_user("100")
    make_case("S1", "C1", total=100)
    payload = _payload(sorting=[{"shipmentId": "S1", "caseNumber": "C1", "totalLines": 25}])

    first = save_productivity(session_factory, payload, user_id, idempotency_key="req-1")
    second = save_productivity(session_factory, payload, user_id, idempotency_key="req-1")

    assert second == first
    assert case_state("S1", "C1") == (100, 25, 75, False)
    assert _entry_count(session_factory) == 1


def test_idempotency_key_in_flight_is_a_duplicate(session_factory, make_user):
    user_id = make_user("100")
    with session_factory() as db:
        db.add(ProductivitySubmission(idempotency_key="req-2", user_id=user_id, status="pending"))
        db.commit()

    with pytest.raises(DuplicateRequest):
        save_productivity(session_factory, _payload(), user_id, idempotency_key="req-2")


def test_failed_save_frees_the_idempotency_key(session_factory, make_case, make_user):
    user_id = make_user("100")
    make_case("S1", "C1", total=5)

    with pytest.raises(ExceedsRemaining):
        save_productivity(
            session_factory,
            _payload(sorting=[{"shipmentId": "S1", "caseNumber": "C1", "totalLines": 6}]),
            user_id,
            idempotency_key="req-3",
        )

    with session_factory() as db:
        assert db.get(ProductivitySubmission, "req-3") is None


def test_monthly_summary(session_factory, make_case, make_user):
    user_id = make_user("100")
    make_case("S1", "C1", total=100)
    sorting = [{"shipmentId": "S1", "caseNumber": "C1", "totalLines": 10}]
    packing = [{"locationNo": "L", "newCaseNo": "N", "linesPacked": 4}]

    save_productivity(session_factory, _payload(sorting=sorting, when="2025-03-10T08:00:00"), user_id)
    save_productivity(session_factory, _payload(sorting=sorting, packing=packing, when="2025-03-02T08:00:00"), user_id)
    save_productivity(session_factory, _payload(sorting=sorting, when="2025-04-01T08:00:00"), user_id)

    with session_factory() as db:
        result = monthly_summary(db, user_id, "2025-03")

    assert [p.label for p in result.chart_data] == ["2025-03-02", "2025-03-10"]
    assert result.totals.sorter_lines == 20
    assert result.totals.sorter_cases == 2
    assert result.totals.packer_lines == 4
    assert result.totals.packer_cases == 1


@pytest.mark.parametrize("month", ["2025", "2025-13", "March", "2025-03-01"])
def test_parse_month_rejects_bad_input(month):
    with pytest.raises(InvalidEntry):
        parse_month(month)


def test_parse_month_bounds():
    assert parse_month("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
