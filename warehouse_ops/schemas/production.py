from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from warehouse_ops.schemas.common import CamelModel


class CaseDataOut(CamelModel):
    total_lines: int
    consumed_lines: int
    remaining_lines: int
    fully_sorted: bool
    critical_parts: int
    domestic_lines: int
    bulk_lines: int
    last_allocated_at: datetime | None
    last_allocated_by: str | None


class CaseOut(CamelModel):
    success: bool = True
    shipment_id: str
    case_number: str
    data: CaseDataOut


class CaseBalanceOut(CamelModel):
    case_number: str
    remaining_lines: int


class CaseBalancesOut(CamelModel):
    case_numbers: list[str]
    balances: list[CaseBalanceOut]


class CaseRecordIn(CamelModel):
    case_number: str = ""
    critical_parts: int = 0
    total_lines: int = 0
    domestic_lines: int = 0
    bulk_lines: int = 0
    row: int | None = None


class ProcessCasesIn(CamelModel):
    shipments: dict[str, list[CaseRecordIn]] = Field(default_factory=dict)
    meta: dict[str, Any] = Field(default_factory=dict)


class ProcessCasesOut(CamelModel):
    success: bool = True
    total_items: int
    skipped: int
    status: str = "ok"


class DeleteCasesIn(CamelModel):
    shipments: dict[str, list[str]] = Field(default_factory=dict)


class DeleteCasesOut(CamelModel):
    success: bool = True
    total_deletes: int
    status: str = "ok"
