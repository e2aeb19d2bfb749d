"""Pydantic schemas package."""

from budget_reporting.schemas.base import BaseResponse, ListResponse
from budget_reporting.schemas.financial_reports import (
    FinancialReportCreate,
    FinancialReportResponse,
    ReportIntegrityResponse,
    WorkflowActionRequest,
    WorkflowLogResponse,
)
from budget_reporting.schemas.form_data import (
    ExecutionFormData,
    PlanningFormData,
    coerce_amount,
    parse_form_data,
)
from budget_reporting.schemas.snapshot import (
    FacilityBreakdown,
    SnapshotAggregations,
    SnapshotData,
    SourceData,
    SourceDataEntry,
)
from budget_reporting.schemas.statements import (
    ColumnAggregate,
    ColumnType,
    CompiledExecutionRequest,
    CompiledExecutionResponse,
    CompiledStatement,
    CompiledStatementRequest,
    FacilityColumn,
    FacilityInfo,
    GenerateStatementRequest,
    PeriodInfo,
    Statement,
    StatementLine,
    StatementMetadata,
    StatementScope,
)

__all__ = [
    "BaseResponse",
    "ColumnAggregate",
    "ColumnType",
    "CompiledExecutionRequest",
    "CompiledExecutionResponse",
    "CompiledStatement",
    "CompiledStatementRequest",
    "ExecutionFormData",
    "FacilityBreakdown",
    "FacilityColumn",
    "FacilityInfo",
    "FinancialReportCreate",
    "FinancialReportResponse",
    "GenerateStatementRequest",
    "ListResponse",
    "PeriodInfo",
    "PlanningFormData",
    "ReportIntegrityResponse",
    "SnapshotAggregations",
    "SnapshotData",
    "SourceData",
    "SourceDataEntry",
    "Statement",
    "StatementLine",
    "StatementMetadata",
    "StatementScope",
    "WorkflowActionRequest",
    "WorkflowLogResponse",
    "coerce_amount",
    "parse_form_data",
]
