"""Tests for the financial report approval workflow."""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.context import RequestContext, UserRole
from budget_reporting.models import EntityType, ReportStatus, WorkflowAction
from budget_reporting.schemas.financial_reports import FinancialReportCreate
from budget_reporting.schemas.snapshot import SnapshotData
from budget_reporting.services.report_workflow import (
    FinancialReportWorkflow,
    ReportNotFoundError,
    WorkflowError,
    WorkflowPermissionError,
)
from budget_reporting.services.snapshot import SnapshotService, compute_checksum
from budget_reporting.services.statement_generation import StatementNotFoundError
from tests.factories import add_entry, map_activity

ACCOUNTANT = RequestContext(user_id=1, role=UserRole.ACCOUNTANT)
DAF = RequestContext(user_id=2, role=UserRole.DAF)
DG = RequestContext(user_id=3, role=UserRole.DG)
ADMIN = RequestContext(user_id=4, role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def draft(db: AsyncSession, seeded, hierarchy):
    planned = await map_activity(db, "GOODS_SERVICES_PLANNING", EntityType.PLANNING)
    spent = await map_activity(db, "GOODS_SERVICES", EntityType.EXECUTION)
    await add_entry(db, hierarchy, planned, 5000)
    await add_entry(db, hierarchy, spent, 3200)

    report = await FinancialReportWorkflow(db).create_report(
        FinancialReportCreate(
            title="Q4 Budget vs Actual",
            statement_code="BUDGET_VS_ACTUAL",
            project_id=hierarchy.project.id,
            facility_id=hierarchy.health_center.id,
            reporting_period_id=hierarchy.period.id,
        ),
        ACCOUNTANT,
    )
    await db.commit()
    return report


@pytest.mark.asyncio
async def test_create_report_stores_generated_statement(draft, hierarchy):
    assert draft.status == ReportStatus.DRAFT
    assert draft.report_code == (
        f"BUDGET_VS_ACTUAL-{hierarchy.project.id}-{hierarchy.health_center.id}-{hierarchy.period.id}"
    )
    assert draft.created_by == ACCOUNTANT.user_id
    assert draft.is_locked is False
    lines = {line["line_code"]: line for line in draft.report_data["statement"]["lines"]}
    assert Decimal(lines["GOODS_SERVICES"]["variance"]) == Decimal("-1800")


@pytest.mark.asyncio
async def test_duplicate_report_code_is_rejected(db: AsyncSession, draft):
    with pytest.raises(WorkflowError, match="already exists"):
        await FinancialReportWorkflow(db).create_report(
            FinancialReportCreate(
                title="Again",
                statement_code=draft.statement_code,
                project_id=draft.project_id,
                facility_id=draft.facility_id,
                reporting_period_id=draft.reporting_period_id,
            ),
            ACCOUNTANT,
        )


@pytest.mark.asyncio
async def test_create_report_for_unknown_facility(db: AsyncSession, seeded, hierarchy):
    with pytest.raises(StatementNotFoundError):
        await FinancialReportWorkflow(db).create_report(
            FinancialReportCreate(
                title="Nowhere",
                statement_code="BUDGET_VS_ACTUAL",
                project_id=hierarchy.project.id,
                facility_id=9999,
                reporting_period_id=hierarchy.period.id,
            ),
            ACCOUNTANT,
        )


@pytest.mark.asyncio
async def test_submit_snapshots_and_locks(db: AsyncSession, draft):
    workflow = FinancialReportWorkflow(db)

    report = await workflow.submit_for_approval(draft.id, ACCOUNTANT)
    await db.commit()

    assert report.status == ReportStatus.PENDING_DAF_APPROVAL
    assert report.is_locked is True
    assert report.is_outdated is False
    assert report.submitted_by == ACCOUNTANT.user_id
    assert report.snapshot_timestamp is not None

    snapshot = SnapshotData.model_validate(report.report_data)
    assert snapshot.checksum == report.snapshot_checksum
    assert compute_checksum(snapshot) == report.snapshot_checksum
    assert len(snapshot.source_data.planning_entries) == 1
    assert len(snapshot.source_data.execution_entries) == 1
    assert snapshot.aggregations.variance == Decimal("-1800")
    assert await SnapshotService(db).verify_checksum(report.id) is True


@pytest.mark.asyncio
async def test_full_approval_path(db: AsyncSession, draft):
    workflow = FinancialReportWorkflow(db)

    await workflow.submit_for_approval(draft.id, ACCOUNTANT)
    await workflow.daf_approve(draft.id, DAF, "Figures reconcile")
    report = await workflow.dg_approve(draft.id, DG)
    await db.commit()

    assert report.status == ReportStatus.FULLY_APPROVED
    assert report.daf_id == DAF.user_id
    assert report.daf_comment == "Figures reconcile"
    assert report.dg_id == DG.user_id
    assert report.dg_approved_at is not None
    assert report.is_locked is True

    logs = await workflow.get_workflow_logs(draft.id)
    assert [log.action for log in logs] == [
        WorkflowAction.SUBMITTED,
        WorkflowAction.DAF_APPROVED,
        WorkflowAction.DG_APPROVED,
    ]
    assert [log.actor_id for log in logs] == [1, 2, 3]


@pytest.mark.asyncio
async def test_rejection_unlocks_and_allows_resubmission(db: AsyncSession, draft):
    workflow = FinancialReportWorkflow(db)

    await workflow.submit_for_approval(draft.id, ACCOUNTANT)
    report = await workflow.daf_reject(draft.id, DAF, "  Missing receipts  ")
    assert report.status == ReportStatus.REJECTED_BY_DAF
    assert report.is_locked is False
    assert report.daf_comment == "Missing receipts"

    report = await workflow.submit_for_approval(draft.id, ACCOUNTANT)
    assert report.status == ReportStatus.PENDING_DAF_APPROVAL
    await workflow.daf_approve(draft.id, DAF)
    report = await workflow.dg_reject(draft.id, DG, "Wrong period")
    assert report.status == ReportStatus.REJECTED_BY_DG
    assert report.is_locked is False


@pytest.mark.asyncio
async def test_rejection_requires_a_comment(db: AsyncSession, draft):
    workflow = FinancialReportWorkflow(db)
    await workflow.submit_for_approval(draft.id, ACCOUNTANT)

    with pytest.raises(WorkflowError, match="comment is required"):
        await workflow.daf_reject(draft.id, DAF, "   ")
    with pytest.raises(WorkflowError, match="comment is required"):
        await workflow.daf_reject(draft.id, DAF, None)


@pytest.mark.asyncio
async def test_roles_are_enforced(db: AsyncSession, draft):
    workflow = FinancialReportWorkflow(db)
    await workflow.submit_for_approval(draft.id, ACCOUNTANT)

    with pytest.raises(WorkflowPermissionError):
        await workflow.daf_approve(draft.id, ACCOUNTANT)
    with pytest.raises(WorkflowPermissionError):
        await workflow.daf_approve(draft.id, DG)

    report = await workflow.daf_approve(draft.id, ADMIN)
    assert report.status == ReportStatus.APPROVED_BY_DAF


@pytest.mark.asyncio
async def test_invalid_transitions(db: AsyncSession, draft):
    workflow = FinancialReportWorkflow(db)

    with pytest.raises(WorkflowError, match="draft"):
        await workflow.daf_approve(draft.id, DAF)
    with pytest.raises(WorkflowError):
        await workflow.dg_approve(draft.id, DG)

    await workflow.submit_for_approval(draft.id, ACCOUNTANT)
    with pytest.raises(WorkflowError):
        await workflow.submit_for_approval(draft.id, ACCOUNTANT)
    with pytest.raises(WorkflowError):
        await workflow.dg_approve(draft.id, DG)


@pytest.mark.asyncio
async def test_unknown_report(db: AsyncSession):
    workflow = FinancialReportWorkflow(db)

    with pytest.raises(ReportNotFoundError):
        await workflow.submit_for_approval(9999, ACCOUNTANT)
    with pytest.raises(ReportNotFoundError):
        await workflow.get_workflow_logs(9999)
