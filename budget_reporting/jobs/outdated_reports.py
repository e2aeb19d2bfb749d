"""Background job flagging submitted reports whose source data changed."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budget_reporting.config import settings
from budget_reporting.database import get_session_maker
from budget_reporting.logger import get_logger, log_timing
from budget_reporting.models import SNAPSHOT_STATUSES, FinancialReport
from budget_reporting.services.snapshot import SnapshotService

logger = get_logger(__name__)


@dataclass
class OutdatedReportsResult:
    checked: int = 0
    updated: int = 0
    errors: int = 0


async def detect_outdated_reports(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> OutdatedReportsResult:
    """Re-check every snapshotted report and update its ``is_outdated`` flag.

    A failure on one report is logged and counted; the others still run.
    """
    factory = session_factory or get_session_maker()
    outcome = OutdatedReportsResult()

    with log_timing("detect_outdated_reports", logger=logger) as timing:
        async with factory() as session:
            result = await session.execute(
                select(FinancialReport.id)
                .where(FinancialReport.status.in_(SNAPSHOT_STATUSES))
                .where(FinancialReport.snapshot_timestamp.is_not(None))
                .order_by(FinancialReport.id)
            )
            report_ids = list(result.scalars().all())

        for report_id in report_ids:
            async with factory() as session:
                try:
                    report = await session.get(FinancialReport, report_id)
                    if report is None or not report.report_data or report.snapshot_timestamp is None:
                        continue
                    outcome.checked += 1

                    changed = await SnapshotService(session).detect_source_data_changes(report_id)
                    if changed != report.is_outdated:
                        report.is_outdated = changed
                        await session.commit()
                        outcome.updated += 1
                        logger.info(
                            "Report outdated flag changed",
                            report_id=report_id,
                            is_outdated=changed,
                        )
                except Exception:
                    outcome.errors += 1
                    await session.rollback()
                    logger.exception("Failed to check report for outdated data", report_id=report_id)

        timing.update(checked=outcome.checked, updated=outcome.updated, errors=outcome.errors)

    return outcome


async def run_outdated_reports_job(
    stop_event: asyncio.Event,
    interval_seconds: float | None = None,
) -> None:
    """Run the check immediately, then every interval until stop_event is set."""
    interval = interval_seconds if interval_seconds is not None else settings.outdated_reports_interval_seconds
    while not stop_event.is_set():
        try:
            outcome = await detect_outdated_reports()
            if outcome.updated or outcome.errors:
                logger.warning(
                    "Outdated reports check finished with changes",
                    checked=outcome.checked,
                    updated=outcome.updated,
                    errors=outcome.errors,
                )
        except Exception:
            logger.exception("Failed to run outdated reports check")

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except TimeoutError:
            continue
