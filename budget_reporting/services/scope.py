"""Resolve which facilities a statement scope covers."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.models import District, Facility, FacilityType, Province
from budget_reporting.schemas.statements import StatementScope


class ScopeError(Exception):
    """Raised when a scope is missing the id it needs."""

    pass


@dataclass(frozen=True)
class FacilityPlacement:
    """A facility and the district/province it rolls up into.

    Health centers attached to a hospital roll up through the hospital's
    district.
    """

    facility_id: int
    facility_name: str
    facility_type: str
    district_id: int
    district_name: str
    province_id: int
    province_name: str


async def _scope_condition(
    db: AsyncSession,
    scope: StatementScope,
    facility_id: int | None,
    district_id: int | None,
    province_id: int | None,
):
    if scope == StatementScope.FACILITY:
        if facility_id is None:
            raise ScopeError("facility_id is required for facility scope")
        return Facility.id == facility_id
    if scope == StatementScope.DISTRICT:
        if district_id is None:
            raise ScopeError("district_id is required for district scope")
        return Facility.district_id == district_id
    if scope == StatementScope.PROVINCE:
        if province_id is None:
            raise ScopeError("province_id is required for province scope")
        district_ids = (
            await db.execute(select(District.id).where(District.province_id == province_id))
        ).scalars().all()
        if not district_ids:
            return None
        hospital_ids = (
            await db.execute(
                select(Facility.id)
                .where(Facility.district_id.in_(district_ids))
                .where(Facility.facility_type == FacilityType.HOSPITAL)
            )
        ).scalars().all()
        direct = Facility.district_id.in_(district_ids)
        if hospital_ids:
            return or_(direct, Facility.parent_facility_id.in_(hospital_ids))
        return direct
    return Facility.status == "ACTIVE"


async def resolve_scope(
    db: AsyncSession,
    scope: StatementScope,
    *,
    facility_id: int | None = None,
    district_id: int | None = None,
    province_id: int | None = None,
) -> list[FacilityPlacement]:
    """Facilities in the scope, ordered by name."""
    condition = await _scope_condition(db, scope, facility_id, district_id, province_id)
    if condition is None:
        return []

    facilities = (
        (await db.execute(select(Facility).where(condition).order_by(Facility.name, Facility.id)))
        .scalars()
        .all()
    )
    if not facilities:
        return []

    parent_ids = {f.parent_facility_id for f in facilities if f.parent_facility_id is not None}
    parent_district: dict[int, int] = {}
    if parent_ids:
        rows = await db.execute(
            select(Facility.id, Facility.district_id).where(Facility.id.in_(parent_ids))
        )
        parent_district = {row.id: row.district_id for row in rows}

    def _district_of(facility: Facility) -> int:
        if facility.parent_facility_id is not None:
            return parent_district.get(facility.parent_facility_id, facility.district_id)
        return facility.district_id

    district_ids = {_district_of(f) for f in facilities}
    rows = await db.execute(
        select(District.id, District.name, Province.id.label("province_id"), Province.name.label("province_name"))
        .join(Province, Province.id == District.province_id)
        .where(District.id.in_(district_ids))
    )
    districts = {row.id: row for row in rows}

    placements = []
    for facility in facilities:
        district = districts[_district_of(facility)]
        placements.append(
            FacilityPlacement(
                facility_id=facility.id,
                facility_name=facility.name,
                facility_type=facility.facility_type.value,
                district_id=district.id,
                district_name=district.name,
                province_id=district.province_id,
                province_name=district.province_name,
            )
        )
    return placements
