"""Financial reports and their approval trail."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from budget_reporting.database import Base
from budget_reporting.models.base import IntIdMixin, JSONType, TimestampMixin


class ReportStatus(str, Enum):
    """Report approval states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_DAF_APPROVAL = "pending_daf_approval"
    APPROVED_BY_DAF = "approved_by_daf"
    REJECTED_BY_DAF = "rejected_by_daf"
    REJECTED_BY_DG = "rejected_by_dg"
    FULLY_APPROVED = "fully_approved"


# Reports whose snapshot is frozen and must be watched for stale source data
SNAPSHOT_STATUSES = (
    ReportStatus.SUBMITTED,
    ReportStatus.PENDING_DAF_APPROVAL,
    ReportStatus.APPROVED_BY_DAF,
    ReportStatus.FULLY_APPROVED,
)


class WorkflowAction(str, Enum):
    SUBMITTED = "submitted"
    DAF_APPROVED = "daf_approved"
    DAF_REJECTED = "daf_rejected"
    DG_APPROVED = "dg_approved"
    DG_REJECTED = "dg_rejected"


class FinancialReport(Base, IntIdMixin, TimestampMixin):
    """A statement prepared for one facility, project and period.

    ``report_data`` holds the generated statement while in draft and the
    frozen snapshot once submitted.
    """

    __tablename__ = "financial_reports"

    report_code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    statement_code: Mapped[str] = mapped_column(String(50), nullable=False)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    facility_id: Mapped[int] = mapped_column(
        ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False
    )
    reporting_period_id: Mapped[int] = mapped_column(
        ForeignKey("reporting_periods.id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")
    status: Mapped[ReportStatus] = mapped_column(
        SQLEnum(
            ReportStatus,
            name="report_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=ReportStatus.DRAFT,
    )
    report_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    snapshot_checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    snapshot_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_outdated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submitted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    daf_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    daf_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    daf_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    dg_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dg_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dg_comment: Mapped[str | None] = mapped_column(Text, nullable=True)


class WorkflowLog(Base, IntIdMixin):
    __tablename__ = "financial_report_workflow_logs"

    report_id: Mapped[int] = mapped_column(
        ForeignKey("financial_reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[WorkflowAction] = mapped_column(
        SQLEnum(
            WorkflowAction,
            name="workflow_action_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
