"""Reference data: event catalog, programs and statement templates.

Run with ``python -m budget_reporting.seeds`` against an empty database.
Seeding is idempotent per statement code and event code.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.database import Base, engine, get_session_maker
from budget_reporting.logger import configure_logging, get_logger
from budget_reporting.models import Event, Project, ProjectType, StatementTemplateLine

logger = get_logger(__name__)


@dataclass(frozen=True)
class SeedLine:
    line_code: str
    line_item: str
    event_codes: tuple[str, ...] = ()
    parent_code: str | None = None
    is_total: bool = False
    is_subtotal: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


NEGATIVE = {"sign": -1}

BUDGET_VS_ACTUAL_LINES = (
    SeedLine("RECEIPTS_HEADER", "1. RECEIPTS", is_subtotal=True),
    SeedLine("TAX_REVENUE", "Tax revenue", ("TAX_REVENUE",), "TOTAL_RECEIPTS"),
    SeedLine("GRANTS", "Grants and transfers", ("GRANTS",), "TOTAL_RECEIPTS"),
    SeedLine("OTHER_REVENUE", "Other revenue", ("OTHER_REVENUE",), "TOTAL_RECEIPTS"),
    SeedLine(
        "TRANSFERS_PUBLIC",
        "Transfers from public entities",
        ("TRANSFERS_PUBLIC_ENTITIES",),
        "TOTAL_RECEIPTS",
    ),
    SeedLine("TOTAL_RECEIPTS", "Total Receipts", parent_code="NET_LENDING_BORROWING", is_total=True),
    SeedLine("EXPENDITURES_HEADER", "2. EXPENDITURES", is_subtotal=True),
    SeedLine(
        "COMPENSATION_EMPLOYEES",
        "Compensation of employees",
        ("COMPENSATION_EMPLOYEES",),
        "TOTAL_EXPENDITURES",
    ),
    SeedLine(
        "GOODS_SERVICES",
        "Goods and services",
        ("GOODS_SERVICES",),
        "TOTAL_EXPENDITURES",
        metadata={
            "budgetVsActualMapping": {
                "budgetEvents": ["GOODS_SERVICES_PLANNING"],
                "actualEvents": ["GOODS_SERVICES"],
            },
            "note": "Budget from planned goods and services",
        },
    ),
    SeedLine("FINANCE_COSTS", "Finance cost", ("FINANCE_COSTS",), "TOTAL_EXPENDITURES"),
    SeedLine("SUBSIDIES", "Subsidies", ("SUBSIDIES",), "TOTAL_EXPENDITURES"),
    SeedLine("GRANTS_TRANSFERS", "Grants and other transfers", ("GRANTS_TRANSFERS",), "TOTAL_EXPENDITURES"),
    SeedLine("SOCIAL_ASSISTANCE", "Social assistance", ("SOCIAL_ASSISTANCE",), "TOTAL_EXPENDITURES"),
    SeedLine("OTHER_EXPENSES", "Other expenses", ("OTHER_EXPENSES",), "TOTAL_EXPENDITURES"),
    SeedLine(
        "TOTAL_EXPENDITURES",
        "Total Expenditures",
        parent_code="NET_LENDING_BORROWING",
        is_total=True,
        metadata=NEGATIVE,
    ),
    SeedLine(
        "NON_FINANCIAL_ASSETS",
        "Total non-financial assets",
        ("ACQUISITION_FIXED_ASSETS",),
        "NET_LENDING_BORROWING",
        metadata=NEGATIVE,
    ),
    SeedLine("NET_LENDING_BORROWING", "Net lending / borrowing", is_total=True),
)

CASH_FLOW_LINES = (
    SeedLine("OPERATING_HEADER", "1. CASH FLOWS FROM OPERATING ACTIVITIES", is_subtotal=True),
    SeedLine("TAX_REVENUE", "Tax revenue", ("TAX_REVENUE",), "OPERATING_RECEIPTS"),
    SeedLine("GRANTS", "Grants", ("GRANTS",), "OPERATING_RECEIPTS"),
    SeedLine(
        "TRANSFERS_PUBLIC_ENTITIES",
        "Transfers from public entities",
        ("TRANSFERS_PUBLIC_ENTITIES",),
        "OPERATING_RECEIPTS",
    ),
    SeedLine("OTHER_REVENUE", "Other receipts", ("OTHER_REVENUE",), "OPERATING_RECEIPTS"),
    SeedLine(
        "OPERATING_RECEIPTS",
        "Total receipts",
        parent_code="NET_OPERATING_CASH_FLOW",
        is_subtotal=True,
    ),
    SeedLine(
        "COMPENSATION_EMPLOYEES",
        "Compensation of employees",
        ("COMPENSATION_EMPLOYEES",),
        "OPERATING_PAYMENTS",
    ),
    SeedLine("GOODS_SERVICES", "Goods and services", ("GOODS_SERVICES",), "OPERATING_PAYMENTS"),
    SeedLine("GRANTS_TRANSFERS", "Grants and other transfers", ("GRANTS_TRANSFERS",), "OPERATING_PAYMENTS"),
    SeedLine("OTHER_EXPENSES", "Other payments", ("OTHER_EXPENSES",), "OPERATING_PAYMENTS"),
    SeedLine(
        "OPERATING_PAYMENTS",
        "Total payments",
        parent_code="NET_OPERATING_CASH_FLOW",
        is_subtotal=True,
        metadata=NEGATIVE,
    ),
    SeedLine(
        "NET_OPERATING_CASH_FLOW",
        "Net cash flows from operating activities",
        parent_code="NET_CASH_FLOW",
        is_total=True,
    ),
    SeedLine("INVESTING_HEADER", "2. CASH FLOWS FROM INVESTING ACTIVITIES", is_subtotal=True),
    SeedLine(
        "ACQUISITION_FIXED_ASSETS",
        "Acquisition of fixed assets",
        ("ACQUISITION_FIXED_ASSETS",),
        "NET_INVESTING_CASH_FLOW",
        metadata=NEGATIVE,
    ),
    SeedLine(
        "PROCEEDS_SALE_CAPITAL",
        "Proceeds from sale of capital items",
        ("PROCEEDS_SALE_CAPITAL",),
        "NET_INVESTING_CASH_FLOW",
    ),
    SeedLine(
        "NET_INVESTING_CASH_FLOW",
        "Net cash flows from investing activities",
        parent_code="NET_CASH_FLOW",
        is_total=True,
    ),
    SeedLine("NET_CASH_FLOW", "Net increase / (decrease) in cash", is_total=True),
)

REVENUE_EXPENDITURE_LINES = (
    SeedLine("REVENUES_HEADER", "1. REVENUES", is_subtotal=True),
    SeedLine("TAX_REVENUE", "Tax revenue", ("TAX_REVENUE",), "TOTAL_REVENUE"),
    SeedLine("GRANTS", "Grants", ("GRANTS",), "TOTAL_REVENUE"),
    SeedLine(
        "TRANSFERS_CENTRAL_TREASURY",
        "Transfers from central treasury",
        ("TRANSFERS_CENTRAL_TREASURY",),
        "TOTAL_REVENUE",
    ),
    SeedLine(
        "TRANSFERS_PUBLIC_ENTITIES",
        "Transfers from public entities",
        ("TRANSFERS_PUBLIC_ENTITIES",),
        "TOTAL_REVENUE",
    ),
    SeedLine("OTHER_REVENUE", "Other revenue", ("OTHER_REVENUE",), "TOTAL_REVENUE"),
    SeedLine("TOTAL_REVENUE", "TOTAL REVENUE", parent_code="SURPLUS_DEFICIT", is_total=True),
    SeedLine("EXPENSES_HEADER", "2. EXPENSES", is_subtotal=True),
    SeedLine(
        "COMPENSATION_EMPLOYEES",
        "Compensation of employees",
        ("COMPENSATION_EMPLOYEES",),
        "TOTAL_EXPENSES",
    ),
    SeedLine("GOODS_SERVICES", "Goods and services", ("GOODS_SERVICES",), "TOTAL_EXPENSES"),
    SeedLine("FINANCE_COSTS", "Finance costs", ("FINANCE_COSTS",), "TOTAL_EXPENSES"),
    SeedLine("OTHER_EXPENSES", "Other expenses", ("OTHER_EXPENSES",), "TOTAL_EXPENSES"),
    SeedLine(
        "TOTAL_EXPENSES",
        "TOTAL EXPENSES",
        parent_code="SURPLUS_DEFICIT",
        is_total=True,
        metadata=NEGATIVE,
    ),
    SeedLine("SURPLUS_DEFICIT", "3. SURPLUS / (DEFICIT) FOR THE PERIOD", is_total=True),
)

TEMPLATES: dict[str, tuple[str, tuple[SeedLine, ...]]] = {
    "BUDGET_VS_ACTUAL": ("Statement of Budget vs Actual Amounts", BUDGET_VS_ACTUAL_LINES),
    "CASH_FLOW": ("Statement of Cash Flows", CASH_FLOW_LINES),
    "REV_EXP": ("Statement of Revenue and Expenditure", REVENUE_EXPENDITURE_LINES),
}

EXTRA_EVENTS = {
    "GOODS_SERVICES_PLANNING": "Goods and services (planned)",
}

PROJECTS = (
    ("HIV Program", "HIV", ProjectType.HIV),
    ("Malaria Program", "MAL", ProjectType.MALARIA),
    ("TB Program", "TB", ProjectType.TB),
)


def event_catalog() -> dict[str, str]:
    """Every event code referenced by the seeded templates."""
    catalog: dict[str, str] = {}
    for _, lines in TEMPLATES.values():
        for line in lines:
            for code in line.event_codes:
                catalog.setdefault(code, line.line_item)
    catalog.update(EXTRA_EVENTS)
    return catalog


async def seed_events(db: AsyncSession) -> int:
    existing = set((await db.execute(select(Event.code))).scalars().all())
    created = 0
    for code, description in event_catalog().items():
        if code in existing:
            continue
        db.add(Event(code=code, description=description))
        created += 1
    await db.flush()
    return created


async def seed_template(
    db: AsyncSession, statement_code: str, statement_name: str, lines: tuple[SeedLine, ...]
) -> list[StatementTemplateLine]:
    existing = await db.execute(
        select(StatementTemplateLine.id).where(StatementTemplateLine.statement_code == statement_code).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        return []

    rows = {
        line.line_code: StatementTemplateLine(
            statement_code=statement_code,
            statement_name=statement_name,
            line_code=line.line_code,
            line_item=line.line_item,
            event_codes=list(line.event_codes),
            display_order=order,
            is_total_line=line.is_total,
            is_subtotal_line=line.is_subtotal,
            line_metadata=dict(line.metadata) or None,
        )
        for order, line in enumerate(lines, start=1)
    }
    db.add_all(rows.values())
    await db.flush()

    # Parents are resolved by code once every row has an id
    for line in lines:
        if line.parent_code is not None:
            rows[line.line_code].parent_line_id = rows[line.parent_code].id
    await db.flush()
    return list(rows.values())


async def seed_projects(db: AsyncSession) -> int:
    existing = set((await db.execute(select(Project.code))).scalars().all())
    created = 0
    for name, code, project_type in PROJECTS:
        if code not in existing:
            db.add(Project(name=name, code=code, project_type=project_type))
            created += 1
    await db.flush()
    return created


async def seed_reference_data(db: AsyncSession) -> None:
    events = await seed_events(db)
    projects = await seed_projects(db)
    template_lines = 0
    for statement_code, (statement_name, lines) in TEMPLATES.items():
        template_lines += len(await seed_template(db, statement_code, statement_name, lines))
    logger.info(
        "Seeded reference data",
        events=events,
        projects=projects,
        template_lines=template_lines,
    )


async def main() -> None:
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with get_session_maker()() as session:
        await seed_reference_data(session)
        await session.commit()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
