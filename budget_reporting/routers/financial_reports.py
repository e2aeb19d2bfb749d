"""Financial report lifecycle API router."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, status
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.deps import CurrentContext, DbSession
from budget_reporting.logger import get_logger
from budget_reporting.models import FinancialReport
from budget_reporting.schemas import (
    FinancialReportCreate,
    FinancialReportResponse,
    ReportIntegrityResponse,
    WorkflowActionRequest,
    WorkflowLogResponse,
)
from budget_reporting.services.report_workflow import (
    FinancialReportWorkflow,
    ReportNotFoundError,
    WorkflowError,
    WorkflowPermissionError,
)
from budget_reporting.services.snapshot import SnapshotError, SnapshotService
from budget_reporting.services.statement_generation import (
    StatementGenerationError,
    StatementNotFoundError,
)
from budget_reporting.services.template_engine import TemplateError
from budget_reporting.utils import raise_bad_request, raise_conflict, raise_forbidden, raise_not_found

router = APIRouter(prefix="/financial-reports", tags=["financial-reports"])
logger = get_logger(__name__)


def _raise_for(exc: Exception) -> NoReturn:
    if isinstance(exc, ReportNotFoundError):
        raise_not_found("Financial report", cause=exc)
    if isinstance(exc, StatementNotFoundError):
        raise_not_found(str(exc).removesuffix(" not found"), cause=exc)
    if isinstance(exc, WorkflowPermissionError):
        raise_forbidden(str(exc), cause=exc)
    if isinstance(exc, WorkflowError):
        raise_conflict(str(exc), cause=exc)
    raise_bad_request(str(exc), cause=exc)


async def _commit(db: AsyncSession, report: FinancialReport) -> FinancialReportResponse:
    await db.commit()
    await db.refresh(report)
    return FinancialReportResponse.model_validate(report)


@router.post("", response_model=FinancialReportResponse, status_code=status.HTTP_201_CREATED)
async def create_financial_report(
    payload: FinancialReportCreate,
    db: DbSession,
    ctx: CurrentContext,
) -> FinancialReportResponse:
    """Create a draft report with a freshly generated statement."""
    try:
        report = await FinancialReportWorkflow(db).create_report(payload, ctx)
    except (WorkflowError, StatementGenerationError, TemplateError) as exc:
        await db.rollback()
        _raise_for(exc)
    return await _commit(db, report)


@router.get("/{report_id}", response_model=FinancialReportResponse)
async def get_financial_report(
    report_id: int,
    db: DbSession,
    ctx: CurrentContext,
) -> FinancialReportResponse:
    try:
        report = await FinancialReportWorkflow(db).get_report(report_id)
    except ReportNotFoundError as exc:
        _raise_for(exc)
    return FinancialReportResponse.model_validate(report)


@router.post("/{report_id}/submit", response_model=FinancialReportResponse)
async def submit_financial_report(
    report_id: int,
    db: DbSession,
    ctx: CurrentContext,
) -> FinancialReportResponse:
    """Snapshot, checksum and lock the report, then send it to DAF review."""
    try:
        report = await FinancialReportWorkflow(db).submit_for_approval(report_id, ctx)
    except (WorkflowError, SnapshotError, StatementGenerationError, TemplateError) as exc:
        await db.rollback()
        _raise_for(exc)
    return await _commit(db, report)


@router.post("/{report_id}/daf-approve", response_model=FinancialReportResponse)
async def daf_approve_report(
    report_id: int,
    db: DbSession,
    ctx: CurrentContext,
    payload: WorkflowActionRequest | None = None,
) -> FinancialReportResponse:
    try:
        report = await FinancialReportWorkflow(db).daf_approve(
            report_id, ctx, payload.comment if payload else None
        )
    except WorkflowError as exc:
        await db.rollback()
        _raise_for(exc)
    return await _commit(db, report)


@router.post("/{report_id}/daf-reject", response_model=FinancialReportResponse)
async def daf_reject_report(
    report_id: int,
    payload: WorkflowActionRequest,
    db: DbSession,
    ctx: CurrentContext,
) -> FinancialReportResponse:
    try:
        report = await FinancialReportWorkflow(db).daf_reject(report_id, ctx, payload.comment)
    except WorkflowError as exc:
        await db.rollback()
        _raise_for(exc)
    return await _commit(db, report)


@router.post("/{report_id}/dg-approve", response_model=FinancialReportResponse)
async def dg_approve_report(
    report_id: int,
    db: DbSession,
    ctx: CurrentContext,
    payload: WorkflowActionRequest | None = None,
) -> FinancialReportResponse:
    try:
        report = await FinancialReportWorkflow(db).dg_approve(
            report_id, ctx, payload.comment if payload else None
        )
    except WorkflowError as exc:
        await db.rollback()
        _raise_for(exc)
    return await _commit(db, report)


@router.post("/{report_id}/dg-reject", response_model=FinancialReportResponse)
async def dg_reject_report(
    report_id: int,
    payload: WorkflowActionRequest,
    db: DbSession,
    ctx: CurrentContext,
) -> FinancialReportResponse:
    try:
        report = await FinancialReportWorkflow(db).dg_reject(report_id, ctx, payload.comment)
    except WorkflowError as exc:
        await db.rollback()
        _raise_for(exc)
    return await _commit(db, report)


@router.get("/{report_id}/integrity", response_model=ReportIntegrityResponse)
async def check_report_integrity(
    report_id: int,
    db: DbSession,
    ctx: CurrentContext,
) -> ReportIntegrityResponse:
    """Verify the snapshot checksum and look for source rows edited since capture."""
    report = await db.get(FinancialReport, report_id)
    if report is None:
        raise_not_found("Financial report")

    snapshots = SnapshotService(db)
    checksum_valid = await snapshots.verify_checksum(report_id)
    source_changed = False
    if report.snapshot_timestamp is not None:
        try:
            source_changed = await snapshots.detect_source_data_changes(report_id)
        except SnapshotError as exc:
            raise_bad_request(str(exc), cause=exc)

    return ReportIntegrityResponse(
        report_id=report_id,
        checksum_valid=checksum_valid,
        source_data_changed=source_changed,
        is_outdated=report.is_outdated,
        snapshot_timestamp=report.snapshot_timestamp,
    )


@router.get("/{report_id}/workflow-logs", response_model=list[WorkflowLogResponse])
async def get_workflow_logs(
    report_id: int,
    db: DbSession,
    ctx: CurrentContext,
) -> list[WorkflowLogResponse]:
    try:
        logs = await FinancialReportWorkflow(db).get_workflow_logs(report_id)
    except ReportNotFoundError as exc:
        _raise_for(exc)
    return [WorkflowLogResponse.model_validate(log) for log in logs]
