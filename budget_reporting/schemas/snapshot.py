"""Frozen report snapshot format."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class SourceDataEntry(BaseModel):
    """A source row as it was when the snapshot was taken."""

    id: int
    facility_id: int
    entity_id: int | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime


class SourceData(BaseModel):
    planning_entries: list[SourceDataEntry] = Field(default_factory=list)
    execution_entries: list[SourceDataEntry] = Field(default_factory=list)

    def entry_ids(self) -> list[int]:
        return [entry.id for entry in self.planning_entries + self.execution_entries]


class FacilityBreakdown(BaseModel):
    facility_id: int
    total_planning: Decimal
    total_execution: Decimal


class SnapshotAggregations(BaseModel):
    total_planning: Decimal = Decimal("0")
    total_execution: Decimal = Decimal("0")
    variance: Decimal = Decimal("0")
    facility_breakdown: list[FacilityBreakdown] | None = None


class SnapshotData(BaseModel):
    """Everything needed to reproduce and verify a submitted report.

    ``statement`` is stored in its JSON form so the checksum is computed over
    exactly what is persisted.
    """

    version: str
    captured_at: datetime
    report_id: int | None = None
    statement_code: str
    statement: dict[str, Any]
    source_data: SourceData
    aggregations: SnapshotAggregations
    checksum: str = ""
