"""API routers package."""

from budget_reporting.routers import financial_reports, statements

__all__ = ["financial_reports", "statements"]
