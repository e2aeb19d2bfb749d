"""Statement generation: pick a processor, gather totals, render."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.logger import get_logger, log_timing
from budget_reporting.models import EntityType, FormDataEntry, Project, ReportingPeriod
from budget_reporting.schemas.statements import (
    ColumnAggregate,
    CompiledExecutionRequest,
    CompiledExecutionResponse,
    CompiledStatement,
    CompiledStatementRequest,
    FacilityInfo,
    GenerateStatementRequest,
    PeriodInfo,
    Statement,
    StatementScope,
)
from budget_reporting.services.column_builders import (
    FacilityEntry,
    aggregate_data_by_columns,
    build_columns_for_scope,
    columns_to_facility_columns,
)
from budget_reporting.services.custom_event_mapper import CustomEventMapper
from budget_reporting.services.data_aggregation import (
    AggregatedEventData,
    DataAggregationEngine,
    EventFilters,
    aggregate_by_facility,
    merge_aggregations,
)
from budget_reporting.services.scope import FacilityPlacement, resolve_scope
from budget_reporting.services.statement_processors import (
    BudgetVsActualProcessor,
    CompiledStatementProcessor,
    FinancialStatementProcessor,
    StatementOptions,
)
from budget_reporting.services.template_engine import TemplateEngine

logger = get_logger(__name__)

BUDGET_VS_ACTUAL = "BUDGET_VS_ACTUAL"


class StatementGenerationError(Exception):
    """Raised when a statement request cannot be served."""

    pass


class StatementNotFoundError(StatementGenerationError):
    """Raised when the project or reporting period does not exist."""

    pass


def period_info_for(period: ReportingPeriod) -> PeriodInfo:
    return PeriodInfo(
        id=period.id,
        year=period.year,
        type=period.period_type or "ANNUAL",
        start_date=period.start_date,
        end_date=period.end_date,
    )


def facility_info_for(
    scope: StatementScope, placements: Sequence[FacilityPlacement]
) -> FacilityInfo:
    if scope == StatementScope.FACILITY and len(placements) == 1:
        placement = placements[0]
        return FacilityInfo(
            id=placement.facility_id,
            name=placement.facility_name,
            type=placement.facility_type,
            district=placement.district_name,
        )
    if scope == StatementScope.DISTRICT and placements:
        name = placements[0].district_name
    elif scope == StatementScope.PROVINCE and placements:
        name = placements[0].province_name
    else:
        name = "All facilities"
    return FacilityInfo(name=name, type=scope.value, facility_count=len(placements))


class StatementGenerationService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.engine = DataAggregationEngine(db)
        self.templates = TemplateEngine(db)

    async def _load_context(
        self, project_id: int, reporting_period_id: int
    ) -> tuple[Project, ReportingPeriod]:
        project = await self.db.get(Project, project_id)
        if project is None:
            raise StatementNotFoundError(f"Project {project_id} not found")
        period = await self.db.get(ReportingPeriod, reporting_period_id)
        if period is None:
            raise StatementNotFoundError(f"Reporting period {reporting_period_id} not found")
        return project, period

    async def generate(self, request: GenerateStatementRequest) -> Statement:
        project, period = await self._load_context(request.project_id, request.reporting_period_id)
        placements = await resolve_scope(
            self.db,
            request.scope,
            facility_id=request.facility_id,
            district_id=request.district_id,
            province_id=request.province_id,
        )
        if request.scope == StatementScope.FACILITY and not placements:
            raise StatementNotFoundError(f"Facility {request.facility_id} not found")

        facility_ids = tuple(placement.facility_id for placement in placements)
        template = await self.templates.load_template(request.statement_code)
        options = StatementOptions(
            project_type=project.project_type,
            reporting_period_id=period.id,
            facility_id=request.facility_id,
            facility_ids=facility_ids,
        )
        period_info = period_info_for(period)
        facility_info = facility_info_for(request.scope, placements)

        def _filters(reporting_period_id: int, entity_type: EntityType) -> EventFilters:
            return EventFilters(
                project_id=project.id,
                reporting_period_id=reporting_period_id,
                facility_ids=facility_ids,
                project_type=project.project_type,
                entity_types=(entity_type,),
            )

        with log_timing(
            "generate_statement",
            logger=logger,
            statement_code=template.statement_code,
            scope=request.scope.value,
            facility_count=len(facility_ids),
        ):
            if template.statement_code == BUDGET_VS_ACTUAL:
                mapper = CustomEventMapper.from_template(template)
                codes = template.event_codes() | mapper.referenced_events()
                planning = await self.engine.collect_totals(
                    _filters(period.id, EntityType.PLANNING), codes
                )
                execution = await self.engine.collect_totals(
                    _filters(period.id, EntityType.EXECUTION), codes
                )
                return BudgetVsActualProcessor(mapper).generate_statement(
                    template, planning, execution, options, period_info, facility_info
                )

            codes = template.event_codes()
            current = await self.engine.collect_totals(
                _filters(period.id, EntityType.EXECUTION), codes
            )
            previous: AggregatedEventData | None = None
            if request.previous_reporting_period_id is not None:
                previous_period = await self.db.get(
                    ReportingPeriod, request.previous_reporting_period_id
                )
                if previous_period is None:
                    raise StatementNotFoundError(
                        f"Reporting period {request.previous_reporting_period_id} not found"
                    )
                previous = await self.engine.collect_totals(
                    _filters(previous_period.id, EntityType.EXECUTION), codes
                )
            return FinancialStatementProcessor().generate_statement(
                template, current, previous, options, period_info, facility_info
            )

    async def generate_compiled(self, request: CompiledStatementRequest) -> CompiledStatement:
        if request.statement_code == BUDGET_VS_ACTUAL:
            raise StatementGenerationError(
                "Budget vs actual statements cannot be compiled across columns"
            )
        project, period = await self._load_context(request.project_id, request.reporting_period_id)
        placements = await resolve_scope(
            self.db,
            request.scope,
            facility_id=request.facility_id,
            district_id=request.district_id,
            province_id=request.province_id,
        )
        template = await self.templates.load_template(request.statement_code)

        entries = [_placement_entry(placement) for placement in placements]
        columns = build_columns_for_scope(
            request.scope,
            entries,
            district_names={p.district_id: p.district_name for p in placements},
            province_names={p.province_id: p.province_name for p in placements},
        )

        event_data = await self.engine.collect_event_data(
            EventFilters(
                project_id=project.id,
                reporting_period_id=period.id,
                facility_ids=[p.facility_id for p in placements],
                project_type=project.project_type,
                entity_types=(EntityType.EXECUTION,),
            ),
            template.event_codes(),
        )
        by_facility = aggregate_by_facility(event_data)
        facilities_with_data = {entry.facility_id for entry in event_data.current_period}

        column_totals: dict[str, AggregatedEventData] = {}
        for column in columns:
            column.has_data = any(fid in facilities_with_data for fid in column.facility_ids)
            column_totals[column.key] = merge_aggregations(
                by_facility[fid] for fid in column.facility_ids if fid in by_facility
            )

        return CompiledStatementProcessor().generate_statement(
            template,
            column_totals,
            columns,
            request.scope,
            period_info_for(period),
            facility_info_for(request.scope, placements),
        )

    async def compiled_execution(self, request: CompiledExecutionRequest) -> CompiledExecutionResponse:
        project, period = await self._load_context(request.project_id, request.reporting_period_id)
        placements = await resolve_scope(
            self.db,
            request.scope,
            facility_id=request.facility_id,
            district_id=request.district_id,
            province_id=request.province_id,
        )
        by_id = {placement.facility_id: placement for placement in placements}
        rows: Sequence[FormDataEntry] = []
        if by_id:
            result = await self.db.execute(
                select(FormDataEntry)
                .where(FormDataEntry.project_id == project.id)
                .where(FormDataEntry.reporting_period_id == period.id)
                .where(FormDataEntry.entity_type == request.entity_type)
                .where(FormDataEntry.facility_id.in_(list(by_id)))
                .order_by(FormDataEntry.id)
            )
            rows = result.scalars().all()

        entries = [
            _placement_entry(
                by_id[row.facility_id],
                entry_id=row.id,
                form_data=dict(row.form_data or {}),
                computed_values=dict(row.computed_values or {}),
                project_type=project.project_type.value,
            )
            for row in rows
        ]
        columns = build_columns_for_scope(
            request.scope,
            entries,
            district_names={p.district_id: p.district_name for p in placements},
            province_names={p.province_id: p.province_name for p in placements},
        )
        column_by_key = {column.key: column for column in columns}

        data = []
        for item in aggregate_data_by_columns(entries, columns):
            column = column_by_key[f"{item.facility_type}-{item.id}"]
            data.append(
                ColumnAggregate(
                    column_id=column.id,
                    key=column.key,
                    name=column.name,
                    type=column.type,
                    facility_ids=list(column.facility_ids),
                    form_data=item.form_data,
                    computed_values=item.computed_values,
                )
            )

        return CompiledExecutionResponse(
            scope=request.scope,
            entity_type=request.entity_type,
            columns=columns_to_facility_columns(columns),
            data=data,
        )


def _placement_entry(
    placement: FacilityPlacement,
    *,
    entry_id: int | None = None,
    form_data: dict | None = None,
    computed_values: dict | None = None,
    project_type: str | None = None,
) -> FacilityEntry:
    return FacilityEntry(
        id=entry_id if entry_id is not None else placement.facility_id,
        facility_id=placement.facility_id,
        facility_name=placement.facility_name,
        facility_type=placement.facility_type,
        project_type=project_type,
        form_data=form_data or {},
        computed_values=computed_values or {},
        district_id=placement.district_id,
        district_name=placement.district_name,
        province_id=placement.province_id,
        province_name=placement.province_name,
    )
