"""Turn facility-level rows into display columns for compiled statements.

A district view shows one column per facility, a province view one per
district and a country view one per province. Everything here is pure; the
caller resolves names from the hierarchy tables first.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from budget_reporting.schemas.statements import ColumnType, FacilityColumn, StatementScope


@dataclass
class FacilityEntry:
    """A source row enriched with its place in the hierarchy."""

    id: int
    facility_id: int
    facility_name: str
    facility_type: str | None = None
    project_type: str | None = None
    form_data: dict[str, Any] = field(default_factory=dict)
    computed_values: dict[str, Any] = field(default_factory=dict)
    district_id: int | None = None
    district_name: str | None = None
    province_id: int | None = None
    province_name: str | None = None


@dataclass
class Column:
    id: int
    name: str
    type: ColumnType
    facility_ids: list[int]
    facility_type: str | None = None
    project_type: str | None = None
    has_data: bool = True
    aggregated_facility_count: int = 1

    @property
    def key(self) -> str:
        return f"{self.type.value}-{self.id}"


def _sorted(columns: Iterable[Column]) -> list[Column]:
    return sorted(columns, key=lambda column: (column.name.lower(), column.id))


def build_facility_columns(entries: Iterable[FacilityEntry]) -> list[Column]:
    columns: dict[int, Column] = {}
    for entry in entries:
        if entry.facility_id in columns:
            continue
        columns[entry.facility_id] = Column(
            id=entry.facility_id,
            name=entry.facility_name,
            type=ColumnType.FACILITY,
            facility_ids=[entry.facility_id],
            facility_type=entry.facility_type,
            project_type=entry.project_type,
        )
    return _sorted(columns.values())


def _group_columns(
    entries: Iterable[FacilityEntry],
    column_type: ColumnType,
    group_id: str,
    group_name: str,
    names: Mapping[int, str],
    suffix: str = "",
) -> list[Column]:
    grouped: dict[int, tuple[str, list[int]]] = {}
    for entry in entries:
        key = getattr(entry, group_id)
        if key is None:
            continue
        name = names.get(key) or getattr(entry, group_name)
        if not name:
            continue
        _, facility_ids = grouped.setdefault(key, (name, []))
        if entry.facility_id not in facility_ids:
            facility_ids.append(entry.facility_id)

    return _sorted(
        Column(
            id=key,
            name=f"{name}{suffix}",
            type=column_type,
            facility_ids=facility_ids,
            aggregated_facility_count=len(facility_ids),
        )
        for key, (name, facility_ids) in grouped.items()
    )


def build_district_columns(
    entries: Iterable[FacilityEntry], district_names: Mapping[int, str] | None = None
) -> list[Column]:
    return _group_columns(
        entries, ColumnType.DISTRICT, "district_id", "district_name", district_names or {}, " District"
    )


def build_province_columns(
    entries: Iterable[FacilityEntry], province_names: Mapping[int, str] | None = None
) -> list[Column]:
    return _group_columns(
        entries, ColumnType.PROVINCE, "province_id", "province_name", province_names or {}
    )


def build_columns_for_scope(
    scope: StatementScope,
    entries: Sequence[FacilityEntry],
    district_names: Mapping[int, str] | None = None,
    province_names: Mapping[int, str] | None = None,
) -> list[Column]:
    if scope in (StatementScope.FACILITY, StatementScope.DISTRICT):
        return build_facility_columns(entries)
    if scope == StatementScope.PROVINCE:
        return build_district_columns(entries, district_names)
    return build_province_columns(entries, province_names)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _sum_numeric(target: dict[str, Any], form_data: Mapping[str, Any]) -> None:
    for key, value in form_data.items():
        if _is_number(value):
            current = target.get(key, 0)
            target[key] = (current if _is_number(current) else 0) + value
        elif isinstance(value, Mapping):
            bucket = target.get(key)
            if not isinstance(bucket, dict):
                bucket = {}
                target[key] = bucket
            for sub_key, sub_value in value.items():
                if _is_number(sub_value):
                    bucket[sub_key] = bucket.get(sub_key, 0) + sub_value


def aggregate_data_by_columns(
    entries: Iterable[FacilityEntry], columns: Sequence[Column]
) -> list[FacilityEntry]:
    """Sum numeric form data and computed values of each column's facilities.

    Columns without any matching row are left out.
    """
    column_by_facility: dict[int, Column] = {}
    for column in columns:
        for facility_id in column.facility_ids:
            column_by_facility[facility_id] = column

    sums: dict[str, dict[str, Any]] = {}
    computed: dict[str, dict[str, Any]] = {}
    for entry in entries:
        column = column_by_facility.get(entry.facility_id)
        if column is None:
            continue
        _sum_numeric(sums.setdefault(column.key, {}), entry.form_data or {})
        _sum_numeric(computed.setdefault(column.key, {}), entry.computed_values or {})

    return [
        FacilityEntry(
            id=column.id,
            facility_id=column.id,
            facility_name=column.name,
            facility_type=column.type.value,
            project_type=column.project_type,
            form_data=sums[column.key],
            computed_values=computed[column.key],
        )
        for column in columns
        if column.key in sums
    ]


def columns_to_facility_columns(columns: Iterable[Column]) -> list[FacilityColumn]:
    return [
        FacilityColumn(
            id=column.id,
            key=column.key,
            name=column.name,
            type=column.type,
            facility_type=column.facility_type,
            project_type=column.project_type,
            facility_ids=list(column.facility_ids),
            aggregated=column.type != ColumnType.FACILITY,
            has_data=column.has_data,
            aggregated_facility_count=column.aggregated_facility_count,
        )
        for column in columns
    ]
