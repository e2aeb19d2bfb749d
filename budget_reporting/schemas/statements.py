"""Pydantic schemas for statement generation endpoints."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from budget_reporting.models import EntityType


class StatementScope(str, Enum):
    """Facility set a statement is computed over."""

    FACILITY = "facility"
    DISTRICT = "district"
    PROVINCE = "province"
    COUNTRY = "country"


class ColumnType(str, Enum):
    FACILITY = "facility"
    DISTRICT = "district"
    PROVINCE = "province"


class PeriodInfo(BaseModel):
    id: int
    year: int
    type: str
    start_date: date
    end_date: date


class FacilityInfo(BaseModel):
    """Who the statement is about: one facility or an aggregated scope."""

    id: int | None = None
    name: str
    type: str
    district: str | None = None
    facility_count: int = 1


class StatementLine(BaseModel):
    """One rendered statement line.

    Budget-vs-actual lines fill ``revised_budget``/``actual``/``variance``;
    other statements fill the period values; compiled statements fill
    ``values`` per column and ``total``.
    """

    id: int
    line_code: str
    description: str
    note: str | None = None
    display_order: int
    parent_line_code: str | None = None
    is_total: bool = False
    is_subtotal: bool = False
    revised_budget: Decimal | None = None
    actual: Decimal | None = None
    variance: Decimal | None = None
    current_period_value: Decimal | None = None
    previous_period_value: Decimal | None = None
    values: dict[str, Decimal] | None = None
    total: Decimal | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class StatementMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    generated_at: datetime
    line_codes: list[str] = Field(default_factory=list)
    total_planning: Decimal | None = None
    total_execution: Decimal | None = None
    variance: Decimal | None = None
    warnings: list[str] = Field(default_factory=list)
    period: PeriodInfo | None = None
    facility: FacilityInfo | None = None


class Statement(BaseModel):
    statement_code: str
    statement_name: str
    lines: list[StatementLine]
    totals: dict[str, Decimal]
    metadata: StatementMetadata

    def line(self, line_code: str) -> StatementLine | None:
        return next((line for line in self.lines if line.line_code == line_code), None)


class FacilityColumn(BaseModel):
    """Column projection returned to API callers."""

    id: int
    key: str
    name: str
    type: ColumnType
    facility_type: str | None = None
    project_type: str | None = None
    facility_ids: list[int]
    aggregated: bool = False
    has_data: bool = False
    aggregated_facility_count: int = 0


class CompiledStatement(BaseModel):
    statement_code: str
    statement_name: str
    scope: StatementScope
    columns: list[FacilityColumn]
    lines: list[StatementLine]
    metadata: StatementMetadata


class ColumnAggregate(BaseModel):
    column_id: int
    key: str
    name: str
    type: ColumnType
    facility_ids: list[int]
    form_data: dict[str, Any]
    computed_values: dict[str, Any] = Field(default_factory=dict)


class CompiledExecutionResponse(BaseModel):
    scope: StatementScope
    entity_type: EntityType
    columns: list[FacilityColumn]
    data: list[ColumnAggregate]


class _ScopedRequest(BaseModel):
    project_id: int
    reporting_period_id: int
    scope: StatementScope = StatementScope.FACILITY
    facility_id: int | None = None
    district_id: int | None = None
    province_id: int | None = None

    @model_validator(mode="after")
    def _check_scope_target(self) -> "_ScopedRequest":
        required = {
            StatementScope.FACILITY: ("facility_id", self.facility_id),
            StatementScope.DISTRICT: ("district_id", self.district_id),
            StatementScope.PROVINCE: ("province_id", self.province_id),
        }
        if self.scope in required:
            field_name, value = required[self.scope]
            if value is None:
                raise ValueError(f"{field_name} is required for {self.scope.value} scope")
        return self


class GenerateStatementRequest(_ScopedRequest):
    statement_code: str = Field(min_length=1, max_length=50)
    previous_reporting_period_id: int | None = None


class CompiledStatementRequest(_ScopedRequest):
    statement_code: str = Field(min_length=1, max_length=50)
    scope: StatementScope = StatementScope.DISTRICT


class CompiledExecutionRequest(_ScopedRequest):
    scope: StatementScope = StatementScope.DISTRICT
    entity_type: EntityType = EntityType.EXECUTION
