"""Events, activities and the activity → event mapping table."""

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_reporting.database import Base
from budget_reporting.models.base import IntIdMixin
from budget_reporting.models.form_data import EntityType
from budget_reporting.models.hierarchy import FacilityType
from budget_reporting.models.project import ProjectType

_project_type_enum = SQLEnum(
    ProjectType,
    name="project_type_enum",
    values_callable=lambda obj: [e.value for e in obj],
)


class Event(Base, IntIdMixin):
    """Canonical financial event (e.g. ``GOODS_SERVICES``)."""

    __tablename__ = "events"

    code: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class Activity(Base, IntIdMixin):
    """A planning or execution line a facility enters amounts against."""

    __tablename__ = "activities"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_type: Mapped[ProjectType] = mapped_column(_project_type_enum, nullable=False)
    facility_type: Mapped[FacilityType | None] = mapped_column(
        SQLEnum(
            FacilityType,
            name="facility_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=True,
    )
    entity_type: Mapped[EntityType] = mapped_column(
        SQLEnum(
            EntityType,
            name="entity_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )


class EventMapping(Base, IntIdMixin):
    """Links one activity to one event code.

    ``project_type`` narrows the mapping to one program; NULL applies to all.
    """

    __tablename__ = "event_mappings"
    __table_args__ = (UniqueConstraint("activity_id", "event_id", name="uq_event_mapping_activity_event"),)

    activity_id: Mapped[int] = mapped_column(
        ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_id: Mapped[int] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_type: Mapped[ProjectType | None] = mapped_column(_project_type_enum, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    event: Mapped[Event] = relationship()
    activity: Mapped[Activity] = relationship()
