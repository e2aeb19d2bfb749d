"""Financial report approval workflow.

draft -> pending_daf_approval -> approved_by_daf -> fully_approved, with
rejections at either step sending the report back for resubmission. A report
is snapshotted and locked on submission and unlocked when rejected.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.context import RequestContext, UserRole
from budget_reporting.logger import get_logger
from budget_reporting.models import FinancialReport, ReportStatus, WorkflowAction, WorkflowLog
from budget_reporting.schemas.financial_reports import FinancialReportCreate
from budget_reporting.schemas.statements import GenerateStatementRequest, Statement, StatementScope
from budget_reporting.services.snapshot import SnapshotService, compute_checksum
from budget_reporting.services.statement_generation import StatementGenerationService

logger = get_logger(__name__)

SUBMITTABLE_STATUSES = (
    ReportStatus.DRAFT,
    ReportStatus.REJECTED_BY_DAF,
    ReportStatus.REJECTED_BY_DG,
)


class WorkflowError(Exception):
    """Raised on an invalid workflow transition."""

    pass


class WorkflowPermissionError(WorkflowError):
    """Raised when the caller's role may not perform the action."""

    pass


class ReportNotFoundError(WorkflowError):
    pass


class FinancialReportWorkflow:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.snapshots = SnapshotService(db)
        self.statements = StatementGenerationService(db)

    async def get_report(self, report_id: int) -> FinancialReport:
        report = await self.db.get(FinancialReport, report_id)
        if report is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return report

    async def _generate_statement(
        self,
        statement_code: str,
        project_id: int,
        facility_id: int,
        reporting_period_id: int,
    ) -> Statement:
        return await self.statements.generate(
            GenerateStatementRequest(
                statement_code=statement_code,
                project_id=project_id,
                facility_id=facility_id,
                reporting_period_id=reporting_period_id,
                scope=StatementScope.FACILITY,
            )
        )

    def _log(
        self,
        report: FinancialReport,
        action: WorkflowAction,
        ctx: RequestContext,
        comment: str | None = None,
    ) -> None:
        self.db.add(
            WorkflowLog(
                report_id=report.id,
                action=action,
                actor_id=ctx.user_id,
                comment=comment,
                timestamp=datetime.now(UTC),
            )
        )
        logger.info(
            "Report workflow transition",
            report_id=report.id,
            action=action.value,
            status=report.status.value,
            actor_id=ctx.user_id,
        )

    @staticmethod
    def _require_status(report: FinancialReport, *allowed: ReportStatus) -> None:
        if report.status not in allowed:
            expected = ", ".join(status.value for status in allowed)
            raise WorkflowError(
                f"Report {report.id} is {report.status.value}; expected one of: {expected}"
            )

    @staticmethod
    def _require_role(ctx: RequestContext, role: UserRole) -> None:
        if not ctx.has_role(role):
            raise WorkflowPermissionError(f"Role {role.value} required")

    @staticmethod
    def _require_comment(comment: str | None) -> str:
        if comment is None or not comment.strip():
            raise WorkflowError("A comment is required when rejecting a report")
        return comment.strip()

    async def create_report(self, data: FinancialReportCreate, ctx: RequestContext) -> FinancialReport:
        report_code = data.report_code or (
            f"{data.statement_code}-{data.project_id}-{data.facility_id}-{data.reporting_period_id}"
        )
        existing = await self.db.execute(
            select(FinancialReport.id).where(FinancialReport.report_code == report_code)
        )
        if existing.scalar_one_or_none() is not None:
            raise WorkflowError(f"Report {report_code} already exists")

        statement = await self._generate_statement(
            data.statement_code, data.project_id, data.facility_id, data.reporting_period_id
        )
        report = FinancialReport(
            report_code=report_code,
            title=data.title,
            statement_code=data.statement_code,
            project_id=data.project_id,
            facility_id=data.facility_id,
            reporting_period_id=data.reporting_period_id,
            status=ReportStatus.DRAFT,
            report_data={"statement": statement.model_dump(mode="json")},
            created_by=ctx.user_id,
        )
        self.db.add(report)
        await self.db.flush()
        logger.info("Created financial report", report_id=report.id, report_code=report_code)
        return report

    async def submit_for_approval(self, report_id: int, ctx: RequestContext) -> FinancialReport:
        report = await self.get_report(report_id)
        self._require_status(report, *SUBMITTABLE_STATUSES)

        # Resubmissions pick up corrections made after a rejection
        statement = await self._generate_statement(
            report.statement_code, report.project_id, report.facility_id, report.reporting_period_id
        )
        snapshot = await self.snapshots.capture_snapshot(report, statement)
        checksum = compute_checksum(snapshot)
        snapshot = snapshot.model_copy(update={"checksum": checksum})

        now = datetime.now(UTC)
        report.report_data = snapshot.model_dump(mode="json")
        report.snapshot_checksum = checksum
        report.snapshot_timestamp = snapshot.captured_at
        report.is_outdated = False
        report.is_locked = True
        report.status = ReportStatus.PENDING_DAF_APPROVAL
        report.submitted_by = ctx.user_id
        report.submitted_at = now
        self._log(report, WorkflowAction.SUBMITTED, ctx)
        await self.db.flush()
        return report

    async def daf_approve(
        self, report_id: int, ctx: RequestContext, comment: str | None = None
    ) -> FinancialReport:
        self._require_role(ctx, UserRole.DAF)
        report = await self.get_report(report_id)
        self._require_status(report, ReportStatus.PENDING_DAF_APPROVAL)

        report.status = ReportStatus.APPROVED_BY_DAF
        report.daf_id = ctx.user_id
        report.daf_approved_at = datetime.now(UTC)
        report.daf_comment = comment
        self._log(report, WorkflowAction.DAF_APPROVED, ctx, comment)
        await self.db.flush()
        return report

    async def daf_reject(self, report_id: int, ctx: RequestContext, comment: str | None) -> FinancialReport:
        self._require_role(ctx, UserRole.DAF)
        comment = self._require_comment(comment)
        report = await self.get_report(report_id)
        self._require_status(report, ReportStatus.PENDING_DAF_APPROVAL)

        report.status = ReportStatus.REJECTED_BY_DAF
        report.daf_id = ctx.user_id
        report.daf_comment = comment
        report.is_locked = False
        self._log(report, WorkflowAction.DAF_REJECTED, ctx, comment)
        await self.db.flush()
        return report

    async def dg_approve(
        self, report_id: int, ctx: RequestContext, comment: str | None = None
    ) -> FinancialReport:
        self._require_role(ctx, UserRole.DG)
        report = await self.get_report(report_id)
        self._require_status(report, ReportStatus.APPROVED_BY_DAF)

        report.status = ReportStatus.FULLY_APPROVED
        report.dg_id = ctx.user_id
        report.dg_approved_at = datetime.now(UTC)
        report.dg_comment = comment
        self._log(report, WorkflowAction.DG_APPROVED, ctx, comment)
        await self.db.flush()
        return report

    async def dg_reject(self, report_id: int, ctx: RequestContext, comment: str | None) -> FinancialReport:
        self._require_role(ctx, UserRole.DG)
        comment = self._require_comment(comment)
        report = await self.get_report(report_id)
        self._require_status(report, ReportStatus.APPROVED_BY_DAF)

        report.status = ReportStatus.REJECTED_BY_DG
        report.dg_id = ctx.user_id
        report.dg_comment = comment
        report.is_locked = False
        self._log(report, WorkflowAction.DG_REJECTED, ctx, comment)
        await self.db.flush()
        return report

    async def get_workflow_logs(self, report_id: int) -> list[WorkflowLog]:
        await self.get_report(report_id)
        result = await self.db.execute(
            select(WorkflowLog)
            .where(WorkflowLog.report_id == report_id)
            .order_by(WorkflowLog.timestamp, WorkflowLog.id)
        )
        return list(result.scalars().all())
