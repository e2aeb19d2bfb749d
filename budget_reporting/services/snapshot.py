"""Report snapshots: freeze a statement with its source rows and checksum it."""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.config import settings
from budget_reporting.logger import get_logger
from budget_reporting.models import EntityType, FinancialReport, FormDataEntry
from budget_reporting.schemas.form_data import coerce_amount, parse_form_data
from budget_reporting.schemas.snapshot import (
    FacilityBreakdown,
    SnapshotAggregations,
    SnapshotData,
    SourceData,
    SourceDataEntry,
)
from budget_reporting.schemas.statements import Statement

logger = get_logger(__name__)

EMPTY_STATEMENT: dict[str, Any] = {"lines": [], "totals": {}, "metadata": {}}


class SnapshotError(Exception):
    """Raised when a snapshot cannot be captured or read."""

    pass


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (some drivers drop the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def compute_checksum(snapshot: SnapshotData) -> str:
    """SHA-256 over the canonical JSON form with ``checksum`` blanked."""
    payload = snapshot.model_copy(update={"checksum": ""}).model_dump(mode="json")
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _source_entry(row: FormDataEntry) -> SourceDataEntry:
    return SourceDataEntry(
        id=row.id,
        facility_id=row.facility_id,
        entity_id=row.entity_id,
        form_data=dict(row.form_data or {}),
        updated_at=ensure_utc(row.updated_at),
    )


def _entry_total(entity_type: EntityType, entries: Sequence[SourceDataEntry]) -> Decimal:
    return sum(
        (parse_form_data(entity_type.value, entry.form_data).amount for entry in entries),
        Decimal("0"),
    )


def _statement_payload(report: FinancialReport, statement: Statement | dict[str, Any] | None) -> dict[str, Any]:
    if isinstance(statement, Statement):
        return statement.model_dump(mode="json")
    if statement is not None:
        return dict(statement)
    stored = (report.report_data or {}).get("statement")
    if not isinstance(stored, dict):
        return dict(EMPTY_STATEMENT)
    return {
        "lines": stored.get("lines") or [],
        "totals": stored.get("totals") or {},
        "metadata": stored.get("metadata") or {},
        **{key: value for key, value in stored.items() if key not in EMPTY_STATEMENT},
    }


class SnapshotService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _load_source_entries(
        self, report: FinancialReport, entity_type: EntityType
    ) -> list[SourceDataEntry]:
        result = await self.db.execute(
            select(FormDataEntry)
            .where(FormDataEntry.project_id == report.project_id)
            .where(FormDataEntry.facility_id == report.facility_id)
            .where(FormDataEntry.reporting_period_id == report.reporting_period_id)
            .where(FormDataEntry.entity_type == entity_type)
            .order_by(FormDataEntry.id)
        )
        return [_source_entry(row) for row in result.scalars().all()]

    async def capture_snapshot(
        self,
        report: FinancialReport,
        statement: Statement | dict[str, Any] | None = None,
    ) -> SnapshotData:
        """Freeze the report's statement together with its current source rows.

        When no statement is passed the one stored in ``report_data`` is used.
        The returned snapshot has an empty checksum; callers compute it once
        the snapshot is final.
        """
        if not report.statement_code:
            raise SnapshotError(f"Report {report.id} has no statement code")

        payload = _statement_payload(report, statement)
        try:
            planning = await self._load_source_entries(report, EntityType.PLANNING)
            execution = await self._load_source_entries(report, EntityType.EXECUTION)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load snapshot source data",
                report_id=report.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SnapshotError(f"Failed to capture snapshot for report {report.id}") from e

        metadata = payload.get("metadata") or {}
        total_planning = coerce_amount(metadata.get("total_planning"))
        total_execution = coerce_amount(metadata.get("total_execution"))
        variance = (
            coerce_amount(metadata["variance"])
            if metadata.get("variance") is not None
            else total_execution - total_planning
        )

        snapshot = SnapshotData(
            version=settings.snapshot_version,
            captured_at=datetime.now(UTC),
            report_id=report.id,
            statement_code=report.statement_code,
            statement=payload,
            source_data=SourceData(planning_entries=planning, execution_entries=execution),
            aggregations=SnapshotAggregations(
                total_planning=total_planning,
                total_execution=total_execution,
                variance=variance,
                facility_breakdown=[
                    FacilityBreakdown(
                        facility_id=report.facility_id,
                        total_planning=_entry_total(EntityType.PLANNING, planning),
                        total_execution=_entry_total(EntityType.EXECUTION, execution),
                    )
                ],
            ),
        )
        logger.info(
            "Captured report snapshot",
            report_id=report.id,
            statement_code=report.statement_code,
            planning_entries=len(planning),
            execution_entries=len(execution),
        )
        return snapshot

    def compute_checksum(self, snapshot: SnapshotData) -> str:
        return compute_checksum(snapshot)

    async def load_snapshot(self, report_id: int) -> SnapshotData | None:
        report = await self.db.get(FinancialReport, report_id)
        if report is None or not report.report_data:
            return None
        try:
            return SnapshotData.model_validate(report.report_data)
        except ValidationError as e:
            raise SnapshotError(f"Report {report_id} holds no readable snapshot") from e

    async def verify_checksum(self, report_id: int) -> bool:
        """True when the stored snapshot still hashes to the stored checksum."""
        try:
            report = await self.db.get(FinancialReport, report_id)
            if report is None or not report.report_data or not report.snapshot_checksum:
                logger.warning("Report missing snapshot data or checksum", report_id=report_id)
                return False

            snapshot = SnapshotData.model_validate(report.report_data)
            computed = compute_checksum(snapshot)
            is_valid = hmac.compare_digest(computed, report.snapshot_checksum)
            if not is_valid:
                logger.error(
                    "Snapshot checksum mismatch",
                    report_id=report_id,
                    expected=report.snapshot_checksum,
                    computed=computed,
                )
            return is_valid
        except Exception:
            logger.exception("Failed to verify snapshot checksum", report_id=report_id)
            return False

    async def detect_source_data_changes(self, report_id: int) -> bool:
        """True if a snapshotted source row was updated after the capture."""
        snapshot = await self.load_snapshot(report_id)
        if snapshot is None:
            logger.warning("Report missing snapshot data", report_id=report_id)
            return False

        entry_ids = snapshot.source_data.entry_ids()
        if not entry_ids:
            return False

        captured_at = ensure_utc(snapshot.captured_at)
        result = await self.db.execute(
            select(FormDataEntry.id, FormDataEntry.updated_at).where(FormDataEntry.id.in_(entry_ids))
        )
        changed = [row.id for row in result.all() if ensure_utc(row.updated_at) > captured_at]
        if changed:
            logger.info(
                "Source data updated after snapshot",
                report_id=report_id,
                changed_entries=len(changed),
            )
        return bool(changed)
