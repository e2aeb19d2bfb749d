"""Health programs and reporting periods."""

from datetime import date
from enum import Enum

from sqlalchemy import Date, Enum as SQLEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from budget_reporting.database import Base
from budget_reporting.models.base import IntIdMixin


class ProjectType(str, Enum):
    """Health programs that carry their own budgets."""

    HIV = "HIV"
    MALARIA = "Malaria"
    TB = "TB"


class Project(Base, IntIdMixin):
    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    project_type: Mapped[ProjectType] = mapped_column(
        SQLEnum(
            ProjectType,
            name="project_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )


class ReportingPeriod(Base, IntIdMixin):
    __tablename__ = "reporting_periods"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[str] = mapped_column(String(20), nullable=False, default="ANNUAL")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
