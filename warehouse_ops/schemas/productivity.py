from __future__ import annotations

from datetime import datetime

from pydantic import Field

from warehouse_ops.schemas.common import CamelModel


class SortingEntryIn(CamelModel):
    shipment_id: str = ""
    case_number: str = ""
    total_lines: int = 0
    ekc_domestic: int = 0
    ekm_bulk: int = 0


class PackingEntryIn(CamelModel):
    location_no: str = ""
    new_case_no: str = ""
    lines_packed: int = 0


class ProductivitySaveIn(CamelModel):
    date: datetime | None = None
    user_id: str | None = None
    sorting_entries: list[SortingEntryIn] = Field(default_factory=list)
    packing_entries: list[PackingEntryIn] = Field(default_factory=list)


class SortingTotals(CamelModel):
    total_cases: int = 0
    total_lines: int = 0
    total_ekc: int = Field(default=0, alias="totalEKC")
    total_ekm: int = Field(default=0, alias="totalEKM")


class PackingTotals(CamelModel):
    total_cases: int = 0
    total_lines: int = 0


class DaySummaryOut(CamelModel):
    date: str
    sorting: SortingTotals
    packing: PackingTotals


class ProductivitySaveOut(CamelModel):
    ok: bool = True
    summary: DaySummaryOut


class ChartPointOut(CamelModel):
    label: str
    sorter_lines: int
    packer_lines: int


class MonthTotalsOut(CamelModel):
    sorter_lines: int = 0
    packer_lines: int = 0
    sorter_cases: int = 0
    packer_cases: int = 0


class MonthlySummaryOut(CamelModel):
    chart_data: list[ChartPointOut]
    totals: MonthTotalsOut
