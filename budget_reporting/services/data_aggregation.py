"""Collect planning/execution entries and total them per event code."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.logger import get_logger, log_timing
from budget_reporting.models import EntityType, Event, EventMapping, FormDataEntry, ProjectType
from budget_reporting.schemas.form_data import parse_form_data

logger = get_logger(__name__)


class AggregationError(Exception):
    """Raised when event data cannot be collected for the given filters."""

    pass


@dataclass(frozen=True)
class EventFilters:
    project_id: int
    reporting_period_id: int
    facility_id: int | None = None
    facility_ids: Sequence[int] | None = None
    project_type: ProjectType | None = None
    entity_types: tuple[EntityType, ...] = (EntityType.PLANNING, EntityType.EXECUTION)

    def resolved_facility_ids(self) -> list[int]:
        if self.facility_ids is not None:
            return list(dict.fromkeys(self.facility_ids))
        if self.facility_id is not None:
            return [self.facility_id]
        raise AggregationError("Either facility_id or facility_ids is required")


@dataclass(frozen=True)
class EventEntry:
    """One source row matched to one event code."""

    entry_id: int
    event_code: str
    entity_type: EntityType
    facility_id: int
    amount: Decimal
    form_data: dict[str, Any]
    updated_at: datetime


@dataclass
class EventDataMetadata:
    facilities_included: list[int] = field(default_factory=list)
    event_codes: list[str] = field(default_factory=list)
    entity_types: list[EntityType] = field(default_factory=list)


@dataclass
class EventData:
    current_period: list[EventEntry] = field(default_factory=list)
    metadata: EventDataMetadata = field(default_factory=EventDataMetadata)


@dataclass
class AggregatedEventData:
    event_totals: dict[str, Decimal] = field(default_factory=dict)

    def total(self, codes: Iterable[str]) -> Decimal:
        return sum((self.event_totals.get(code, Decimal("0")) for code in codes), Decimal("0"))

    def grand_total(self) -> Decimal:
        return sum(self.event_totals.values(), Decimal("0"))


def aggregate_by_event(event_data: EventData) -> AggregatedEventData:
    """Sum entry amounts per event code.

    Every requested code known to the catalog is present, zero when nothing
    matched. The result does not depend on row order.
    """
    totals: dict[str, Decimal] = {code: Decimal("0") for code in event_data.metadata.event_codes}
    for entry in event_data.current_period:
        totals[entry.event_code] = totals.get(entry.event_code, Decimal("0")) + entry.amount
    return AggregatedEventData(event_totals=totals)


def aggregate_by_facility(event_data: EventData) -> dict[int, AggregatedEventData]:
    """Per-facility event totals, every included facility present."""
    codes = event_data.metadata.event_codes
    per_facility: dict[int, dict[str, Decimal]] = {
        facility_id: {code: Decimal("0") for code in codes}
        for facility_id in event_data.metadata.facilities_included
    }
    for entry in event_data.current_period:
        bucket = per_facility.setdefault(entry.facility_id, {code: Decimal("0") for code in codes})
        bucket[entry.event_code] = bucket.get(entry.event_code, Decimal("0")) + entry.amount
    return {facility_id: AggregatedEventData(event_totals=totals) for facility_id, totals in per_facility.items()}


def merge_aggregations(parts: Iterable[AggregatedEventData]) -> AggregatedEventData:
    merged: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for part in parts:
        for code, amount in part.event_totals.items():
            merged[code] += amount
    return AggregatedEventData(event_totals=dict(merged))


class DataAggregationEngine:
    """Query side of the statement engine."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def known_event_codes(self, event_codes: Iterable[str]) -> list[str]:
        requested = list(dict.fromkeys(event_codes))
        if not requested:
            return []
        result = await self.db.execute(select(Event.code).where(Event.code.in_(requested)))
        known = set(result.scalars().all())
        return [code for code in requested if code in known]

    async def collect_event_data(self, filters: EventFilters, event_codes: Iterable[str]) -> EventData:
        facility_ids = filters.resolved_facility_ids()
        known_codes = await self.known_event_codes(event_codes)
        metadata = EventDataMetadata(
            facilities_included=facility_ids,
            event_codes=known_codes,
            entity_types=list(filters.entity_types),
        )
        if not facility_ids or not known_codes or not filters.entity_types:
            return EventData(current_period=[], metadata=metadata)

        with log_timing(
            "collect_event_data",
            logger=logger,
            level="debug",
            project_id=filters.project_id,
            reporting_period_id=filters.reporting_period_id,
            facility_count=len(facility_ids),
        ) as timing:
            stmt = (
                select(FormDataEntry, Event.code)
                .join(EventMapping, EventMapping.activity_id == FormDataEntry.entity_id)
                .join(Event, Event.id == EventMapping.event_id)
                .where(FormDataEntry.entity_id.is_not(None))
                .where(FormDataEntry.project_id == filters.project_id)
                .where(FormDataEntry.reporting_period_id == filters.reporting_period_id)
                .where(FormDataEntry.facility_id.in_(facility_ids))
                .where(FormDataEntry.entity_type.in_(filters.entity_types))
                .where(EventMapping.is_active.is_(True))
                .where(Event.code.in_(known_codes))
                .order_by(FormDataEntry.id)
            )
            if filters.project_type is not None:
                stmt = stmt.where(
                    or_(
                        EventMapping.project_type.is_(None),
                        EventMapping.project_type == filters.project_type,
                    )
                )

            result = await self.db.execute(stmt)
            entries = [
                EventEntry(
                    entry_id=row.id,
                    event_code=code,
                    entity_type=row.entity_type,
                    facility_id=row.facility_id,
                    amount=parse_form_data(row.entity_type.value, row.form_data).amount,
                    form_data=dict(row.form_data or {}),
                    updated_at=row.updated_at,
                )
                for row, code in result.all()
            ]
            timing["row_count"] = len(entries)

        return EventData(current_period=entries, metadata=metadata)

    async def collect_totals(
        self, filters: EventFilters, event_codes: Iterable[str]
    ) -> AggregatedEventData:
        return aggregate_by_event(await self.collect_event_data(filters, event_codes))
