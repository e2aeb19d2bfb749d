"""Source data store: flexible per-entry planning and execution records."""

from enum import Enum
from typing import Any

from sqlalchemy import Enum as SQLEnum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from budget_reporting.database import Base
from budget_reporting.models.base import IntIdMixin, JSONType, TimestampMixin


class EntityType(str, Enum):
    """Kind of form entry."""

    PLANNING = "planning"
    EXECUTION = "execution"


class FormDataEntry(Base, IntIdMixin, TimestampMixin):
    """One saved form row for a facility, project and reporting period.

    ``entity_id`` points at the activity the row was entered against. Rows
    without an activity (dynamic entries) never feed statements.
    """

    __tablename__ = "form_data_entries"
    __table_args__ = (
        Index(
            "ix_form_data_entries_scope",
            "project_id",
            "facility_id",
            "reporting_period_id",
            "entity_type",
        ),
    )

    entity_type: Mapped[EntityType] = mapped_column(
        SQLEnum(
            EntityType,
            name="entity_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    facility_id: Mapped[int] = mapped_column(
        ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    reporting_period_id: Mapped[int] = mapped_column(
        ForeignKey("reporting_periods.id", ondelete="CASCADE"), nullable=False
    )
    entity_id: Mapped[int | None] = mapped_column(
        ForeignKey("activities.id", ondelete="SET NULL"), nullable=True
    )
    form_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    # Derived totals saved by the entry forms (e.g. cumulative balances)
    computed_values: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True, default=dict
    )
