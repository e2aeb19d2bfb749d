"""Facility hierarchy: provinces, districts and facilities."""

from enum import Enum

from sqlalchemy import Enum as SQLEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_reporting.database import Base
from budget_reporting.models.base import IntIdMixin


class FacilityType(str, Enum):
    """Kinds of reporting facilities."""

    HOSPITAL = "hospital"
    HEALTH_CENTER = "health_center"


class Province(Base, IntIdMixin):
    __tablename__ = "provinces"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    districts: Mapped[list["District"]] = relationship(back_populates="province")


class District(Base, IntIdMixin):
    __tablename__ = "districts"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    province_id: Mapped[int] = mapped_column(
        ForeignKey("provinces.id", ondelete="CASCADE"), nullable=False, index=True
    )

    province: Mapped[Province] = relationship(back_populates="districts")
    facilities: Mapped[list["Facility"]] = relationship(back_populates="district")


class Facility(Base, IntIdMixin):
    """A hospital or health center.

    Health centers may hang under a hospital (``parent_facility_id``); the
    hospital's district is then the one that counts for provincial roll-ups.
    """

    __tablename__ = "facilities"

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    facility_type: Mapped[FacilityType] = mapped_column(
        SQLEnum(
            FacilityType,
            name="facility_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    district_id: Mapped[int] = mapped_column(
        ForeignKey("districts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_facility_id: Mapped[int | None] = mapped_column(
        ForeignKey("facilities.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")

    district: Mapped[District] = relationship(back_populates="facilities")
