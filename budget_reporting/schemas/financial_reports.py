"""Pydantic schemas for financial report endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from budget_reporting.models import ReportStatus, WorkflowAction
from budget_reporting.schemas.base import BaseResponse


class FinancialReportCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    statement_code: str = Field(min_length=1, max_length=50)
    project_id: int
    facility_id: int
    reporting_period_id: int
    report_code: str | None = Field(default=None, max_length=100)


class FinancialReportResponse(BaseResponse):
    id: int
    report_code: str
    title: str
    statement_code: str
    project_id: int
    facility_id: int
    reporting_period_id: int
    version: str
    status: ReportStatus
    report_data: dict[str, Any] | None = None
    snapshot_checksum: str | None = None
    snapshot_timestamp: datetime | None = None
    is_outdated: bool
    is_locked: bool
    created_by: int | None = None
    submitted_by: int | None = None
    submitted_at: datetime | None = None
    daf_id: int | None = None
    daf_approved_at: datetime | None = None
    daf_comment: str | None = None
    dg_id: int | None = None
    dg_approved_at: datetime | None = None
    dg_comment: str | None = None
    created_at: datetime
    updated_at: datetime


class WorkflowActionRequest(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class ReportIntegrityResponse(BaseModel):
    report_id: int
    checksum_valid: bool
    source_data_changed: bool
    is_outdated: bool
    snapshot_timestamp: datetime | None = None


class WorkflowLogResponse(BaseResponse):
    id: int
    report_id: int
    action: WorkflowAction
    actor_id: int
    comment: str | None = None
    timestamp: datetime
