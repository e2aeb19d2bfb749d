"""Background jobs."""

from budget_reporting.jobs.outdated_reports import (
    OutdatedReportsResult,
    detect_outdated_reports,
    run_outdated_reports_job,
)

__all__ = ["OutdatedReportsResult", "detect_outdated_reports", "run_outdated_reports_job"]
