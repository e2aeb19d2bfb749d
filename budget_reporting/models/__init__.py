"""SQLAlchemy models package."""

from budget_reporting.models.event import Activity, Event, EventMapping
from budget_reporting.models.financial_report import (
    SNAPSHOT_STATUSES,
    FinancialReport,
    ReportStatus,
    WorkflowAction,
    WorkflowLog,
)
from budget_reporting.models.form_data import EntityType, FormDataEntry
from budget_reporting.models.hierarchy import District, Facility, FacilityType, Province
from budget_reporting.models.project import Project, ProjectType, ReportingPeriod
from budget_reporting.models.template import StatementTemplateLine

__all__ = [
    "SNAPSHOT_STATUSES",
    "Activity",
    "District",
    "EntityType",
    "Event",
    "EventMapping",
    "Facility",
    "FacilityType",
    "FinancialReport",
    "FormDataEntry",
    "Project",
    "ProjectType",
    "Province",
    "ReportStatus",
    "ReportingPeriod",
    "StatementTemplateLine",
    "WorkflowAction",
    "WorkflowLog",
]
