"""Assemble statements from a template and aggregated event totals.

All processors share one roll-up rule: a line with children is the signed
sum of its children and never reads events itself. Leaf lines are resolved
first, then parents bottom-up over the template arena.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from budget_reporting.logger import get_logger
from budget_reporting.models import ProjectType
from budget_reporting.schemas.statements import (
    CompiledStatement,
    FacilityInfo,
    PeriodInfo,
    Statement,
    StatementLine,
    StatementMetadata,
    StatementScope,
)
from budget_reporting.services.column_builders import Column, columns_to_facility_columns
from budget_reporting.services.custom_event_mapper import CustomEventMapper
from budget_reporting.services.data_aggregation import AggregatedEventData
from budget_reporting.services.template_engine import Template, TemplateLine

logger = get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class StatementOptions:
    project_type: ProjectType | None = None
    reporting_period_id: int | None = None
    facility_id: int | None = None
    facility_ids: tuple[int, ...] = field(default_factory=tuple)


def roll_up(template: Template, leaf_value: Callable[[int, TemplateLine], Decimal]) -> list[Decimal]:
    """Resolve every line: leaves via ``leaf_value``, parents as signed child sums."""
    values = [ZERO] * len(template.lines)
    for index in template.evaluation_order():
        children = template.child_indices[index]
        if children:
            values[index] = sum(
                (template.lines[child].sign * values[child] for child in children), ZERO
            )
        else:
            values[index] = leaf_value(index, template.lines[index])
    return values


def _parent_code(template: Template, index: int) -> str | None:
    parent = template.parent_of(index)
    return parent.line_code if parent is not None else None


def _base_line(template: Template, index: int, **values: Any) -> StatementLine:
    line = template.lines[index]
    return StatementLine(
        id=line.id,
        line_code=line.line_code,
        description=line.line_item,
        note=line.note,
        display_order=line.display_order,
        parent_line_code=_parent_code(template, index),
        is_total=line.is_total,
        is_subtotal=line.is_subtotal,
        **values,
    )


def _missing_codes(codes: Sequence[str], *totals: Mapping[str, Decimal]) -> list[str]:
    return [code for code in codes if not any(code in part for part in totals)]


class BudgetVsActualProcessor:
    """Revised budget from planning, actual from execution, variance per line."""

    def __init__(self, mapper: CustomEventMapper | None = None) -> None:
        self.mapper = mapper

    def generate_statement(
        self,
        template: Template,
        planning_aggregated: AggregatedEventData,
        execution_aggregated: AggregatedEventData,
        options: StatementOptions | None = None,
        period_info: PeriodInfo | None = None,
        facility_info: FacilityInfo | None = None,
    ) -> Statement:
        mapper = self.mapper or CustomEventMapper.from_template(template)
        planning = planning_aggregated.event_totals
        execution = execution_aggregated.event_totals
        warnings: list[str] = []
        sources: dict[int, dict[str, Any]] = {}

        def _leaf(index: int, line: TemplateLine) -> tuple[Decimal, Decimal]:
            mapping = mapper.get_event_mapping(line.line_code)
            if mapping is not None:
                result = mapper.apply_mapping(mapping, planning, execution)
                missing = mapper.unresolved_events(mapping, planning, execution)
                sources[index] = {
                    "custom_mapping": True,
                    "budget_events": list(mapping.budget_events),
                    "actual_events": list(mapping.actual_events),
                }
                budget, actual = result.budget_amount, result.actual_amount
            else:
                missing = _missing_codes(line.event_codes, planning, execution)
                sources[index] = {"custom_mapping": False, "event_codes": list(line.event_codes)}
                budget = planning_aggregated.total(line.event_codes)
                actual = execution_aggregated.total(line.event_codes)
            for code in missing:
                warnings.append(f"{line.line_code}: event code {code} has no data source")
            return budget, actual

        leaf_results: dict[int, tuple[Decimal, Decimal]] = {}

        def _leaf_budget(index: int, line: TemplateLine) -> Decimal:
            leaf_results[index] = _leaf(index, line)
            return leaf_results[index][0]

        budgets = roll_up(template, _leaf_budget)
        actuals = roll_up(template, lambda index, _line: leaf_results[index][1])

        lines = []
        for index, line in enumerate(template.lines):
            metadata: dict[str, Any] = {"line_code": line.line_code, "sign": line.sign}
            metadata.update(sources.get(index, {"rolled_up": True}))
            lines.append(
                _base_line(
                    template,
                    index,
                    revised_budget=budgets[index],
                    actual=actuals[index],
                    variance=actuals[index] - budgets[index],
                    metadata=metadata,
                )
            )

        leaves = template.leaf_indices()
        total_budget = sum((budgets[index] for index in leaves), ZERO)
        total_actual = sum((actuals[index] for index in leaves), ZERO)
        total_planning = planning_aggregated.grand_total()
        total_execution = execution_aggregated.grand_total()

        if warnings:
            logger.warning(
                "Budget vs actual statement has unresolved event codes",
                statement_code=template.statement_code,
                warnings=warnings,
                facility_id=options.facility_id if options else None,
            )

        return Statement(
            statement_code=template.statement_code,
            statement_name=template.statement_name,
            lines=lines,
            totals={
                "total_budget": total_budget,
                "total_actual": total_actual,
                "total_variance": total_actual - total_budget,
            },
            metadata=StatementMetadata(
                generated_at=datetime.now(UTC),
                line_codes=[line.line_code for line in template.lines],
                total_planning=total_planning,
                total_execution=total_execution,
                variance=total_execution - total_planning,
                warnings=warnings,
                period=period_info,
                facility=facility_info,
                project_type=options.project_type.value if options and options.project_type else None,
            ),
        )


class FinancialStatementProcessor:
    """Execution-only statements: cash flow, revenue & expenditure, assets & liabilities."""

    def generate_statement(
        self,
        template: Template,
        current_aggregated: AggregatedEventData,
        previous_aggregated: AggregatedEventData | None = None,
        options: StatementOptions | None = None,
        period_info: PeriodInfo | None = None,
        facility_info: FacilityInfo | None = None,
    ) -> Statement:
        current_totals = current_aggregated.event_totals
        warnings: list[str] = []
        for index in template.leaf_indices():
            line = template.lines[index]
            for code in _missing_codes(line.event_codes, current_totals):
                warnings.append(f"{line.line_code}: event code {code} has no data source")

        current = roll_up(template, lambda _index, line: current_aggregated.total(line.event_codes))
        previous = (
            roll_up(template, lambda _index, line: previous_aggregated.total(line.event_codes))
            if previous_aggregated is not None
            else None
        )

        lines = [
            _base_line(
                template,
                index,
                current_period_value=current[index],
                previous_period_value=previous[index] if previous is not None else None,
                metadata={
                    "line_code": line.line_code,
                    "sign": line.sign,
                    "event_codes": list(line.event_codes),
                },
            )
            for index, line in enumerate(template.lines)
        ]

        leaves = template.leaf_indices()
        totals = {"total_current_period": sum((current[index] for index in leaves), ZERO)}
        if previous is not None:
            totals["total_previous_period"] = sum((previous[index] for index in leaves), ZERO)

        if warnings:
            logger.warning(
                "Financial statement has unresolved event codes",
                statement_code=template.statement_code,
                warnings=warnings,
            )

        return Statement(
            statement_code=template.statement_code,
            statement_name=template.statement_name,
            lines=lines,
            totals=totals,
            metadata=StatementMetadata(
                generated_at=datetime.now(UTC),
                line_codes=[line.line_code for line in template.lines],
                total_execution=current_aggregated.grand_total(),
                warnings=warnings,
                period=period_info,
                facility=facility_info,
                project_type=options.project_type.value if options and options.project_type else None,
            ),
        )


class CompiledStatementProcessor:
    """Render one financial statement with a value column per facility group."""

    def generate_statement(
        self,
        template: Template,
        column_totals: Mapping[str, AggregatedEventData],
        columns: Sequence[Column],
        scope: StatementScope,
        period_info: PeriodInfo | None = None,
        facility_info: FacilityInfo | None = None,
    ) -> CompiledStatement:
        empty = AggregatedEventData()
        per_column = {
            column.key: roll_up(
                template,
                lambda _index, line, totals=column_totals.get(column.key, empty): totals.total(
                    line.event_codes
                ),
            )
            for column in columns
        }

        lines = []
        for index, line in enumerate(template.lines):
            values = {key: resolved[index] for key, resolved in per_column.items()}
            lines.append(
                _base_line(
                    template,
                    index,
                    values=values,
                    total=sum(values.values(), ZERO),
                    metadata={"line_code": line.line_code, "sign": line.sign},
                )
            )

        return CompiledStatement(
            statement_code=template.statement_code,
            statement_name=template.statement_name,
            scope=scope,
            columns=columns_to_facility_columns(columns),
            lines=lines,
            metadata=StatementMetadata(
                generated_at=datetime.now(UTC),
                line_codes=[line.line_code for line in template.lines],
                total_execution=sum(
                    (totals.grand_total() for totals in column_totals.values()), ZERO
                ),
                period=period_info,
                facility=facility_info,
            ),
        )
