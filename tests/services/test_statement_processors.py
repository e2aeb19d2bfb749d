"""Tests for statement processors and the shared roll-up rule."""

from datetime import date
from decimal import Decimal

from budget_reporting.models import ProjectType
from budget_reporting.schemas.statements import ColumnType, FacilityInfo, PeriodInfo, StatementScope
from budget_reporting.services.column_builders import Column
from budget_reporting.services.custom_event_mapper import CustomEventMapper
from budget_reporting.services.data_aggregation import AggregatedEventData
from budget_reporting.services.statement_processors import (
    BudgetVsActualProcessor,
    CompiledStatementProcessor,
    FinancialStatementProcessor,
    StatementOptions,
    roll_up,
)
from budget_reporting.services.template_engine import Template, TemplateLine


def _totals(**amounts: str) -> AggregatedEventData:
    return AggregatedEventData(event_totals={code: Decimal(value) for code, value in amounts.items()})


def _line(line_id: int, code: str, events: tuple[str, ...] = (), parent: int | None = None, **kwargs) -> TemplateLine:
    return TemplateLine(
        id=line_id,
        line_code=code,
        line_item=code.replace("_", " ").title(),
        event_codes=events,
        display_order=line_id,
        parent_line_id=parent,
        **kwargs,
    )


def _simple_template(statement_code: str = "BUDGET_VS_ACTUAL") -> Template:
    return Template.from_lines(
        statement_code,
        "Budget vs Actual",
        [
            _line(1, "TAX_REVENUE", ("TAX_REVENUE",), parent=3),
            _line(2, "GRANTS", ("GRANTS",), parent=3),
            _line(3, "TOTAL_RECEIPTS", is_total=True),
        ],
    )


def test_parent_is_sum_of_children():
    template = _simple_template()

    values = roll_up(template, lambda _index, line: {"TAX_REVENUE": Decimal("30"), "GRANTS": Decimal("70")}[line.line_code])

    assert values == [Decimal("30"), Decimal("70"), Decimal("100")]


def test_negative_sign_subtracts_from_parent():
    template = Template.from_lines(
        "T",
        "Test",
        [
            _line(1, "RECEIPTS", ("RECEIPTS",), parent=3),
            _line(2, "PAYMENTS", ("PAYMENTS",), parent=3, metadata={"sign": -1}),
            _line(3, "NET", is_total=True),
        ],
    )
    totals = _totals(RECEIPTS="500", PAYMENTS="320")

    values = roll_up(template, lambda _index, line: totals.total(line.event_codes))

    assert values[2] == Decimal("180")


def test_budget_vs_actual_lines_and_totals():
    template = _simple_template()
    statement = BudgetVsActualProcessor().generate_statement(
        template,
        _totals(TAX_REVENUE="30", GRANTS="70"),
        _totals(TAX_REVENUE="25", GRANTS="80"),
        StatementOptions(project_type=ProjectType.MALARIA, facility_id=1),
    )

    total = statement.line("TOTAL_RECEIPTS")
    assert total.revised_budget == Decimal("100")
    assert total.actual == Decimal("105")
    assert total.variance == Decimal("5")
    assert statement.line("TAX_REVENUE").parent_line_code == "TOTAL_RECEIPTS"
    assert statement.totals == {
        "total_budget": Decimal("100"),
        "total_actual": Decimal("105"),
        "total_variance": Decimal("5"),
    }
    assert statement.metadata.line_codes == ["TAX_REVENUE", "GRANTS", "TOTAL_RECEIPTS"]
    assert statement.metadata.total_planning == Decimal("100")
    assert statement.metadata.total_execution == Decimal("105")
    assert statement.metadata.variance == Decimal("5")
    assert statement.metadata.warnings == []


def test_parent_ignores_its_own_event_codes():
    template = Template.from_lines(
        "BUDGET_VS_ACTUAL",
        "Budget vs Actual",
        [
            _line(1, "GRANTS", ("GRANTS",), parent=2),
            _line(2, "TOTAL", ("TAX_REVENUE",), is_total=True),
        ],
    )

    statement = BudgetVsActualProcessor().generate_statement(
        template, _totals(GRANTS="10", TAX_REVENUE="1000"), _totals(GRANTS="4")
    )

    assert statement.line("TOTAL").revised_budget == Decimal("10")
    assert statement.line("TOTAL").actual == Decimal("4")


def test_every_line_is_emitted_with_explicit_zeros():
    template = _simple_template()

    statement = BudgetVsActualProcessor().generate_statement(
        template, AggregatedEventData(), AggregatedEventData()
    )

    assert len(statement.lines) == 3
    for line in statement.lines:
        assert line.revised_budget == Decimal("0")
        assert line.actual == Decimal("0")
        assert line.variance == Decimal("0")
    assert statement.metadata.warnings == [
        "TAX_REVENUE: event code TAX_REVENUE has no data source",
        "GRANTS: event code GRANTS has no data source",
    ]


def test_malaria_goods_and_services_custom_mapping():
    template = Template.from_lines(
        "BUDGET_VS_ACTUAL",
        "Budget vs Actual",
        [
            _line(
                1,
                "GOODS_SERVICES",
                ("GOODS_SERVICES",),
                parent=2,
                metadata={
                    "budgetVsActualMapping": {
                        "budgetEvents": ["GOODS_SERVICES_PLANNING"],
                        "actualEvents": ["GOODS_SERVICES"],
                    }
                },
            ),
            _line(2, "TOTAL_EXPENDITURES", is_total=True),
        ],
    )
    period = PeriodInfo(
        id=2, year=2025, type="ANNUAL", start_date=date(2025, 1, 1), end_date=date(2025, 12, 31)
    )
    facility = FacilityInfo(id=20, name="Kibagabaga", type="health_center")

    statement = BudgetVsActualProcessor(CustomEventMapper.from_template(template)).generate_statement(
        template,
        _totals(GOODS_SERVICES_PLANNING="5000", GOODS_SERVICES="0"),
        _totals(GOODS_SERVICES_PLANNING="0", GOODS_SERVICES="3200"),
        StatementOptions(project_type=ProjectType.MALARIA, reporting_period_id=2, facility_id=20),
        period,
        facility,
    )

    goods = statement.line("GOODS_SERVICES")
    assert goods.revised_budget == Decimal("5000")
    assert goods.actual == Decimal("3200")
    assert goods.variance == Decimal("-1800")
    assert goods.metadata["custom_mapping"] is True
    assert statement.line("TOTAL_EXPENDITURES").variance == Decimal("-1800")
    assert statement.metadata.period.id == 2
    assert statement.metadata.facility.id == 20
    assert statement.metadata.project_type == "Malaria"


def test_financial_statement_with_previous_period():
    template = Template.from_lines(
        "CASH_FLOW",
        "Statement of Cash Flows",
        [
            _line(1, "GRANTS", ("GRANTS",), parent=3),
            _line(2, "GOODS_SERVICES", ("GOODS_SERVICES",), parent=3, metadata={"sign": -1}),
            _line(3, "NET_CASH_FLOW", is_total=True),
        ],
    )

    statement = FinancialStatementProcessor().generate_statement(
        template,
        _totals(GRANTS="1000", GOODS_SERVICES="400"),
        _totals(GRANTS="800", GOODS_SERVICES="500"),
    )

    net = statement.line("NET_CASH_FLOW")
    assert net.current_period_value == Decimal("600")
    assert net.previous_period_value == Decimal("300")
    assert net.revised_budget is None
    assert statement.totals == {
        "total_current_period": Decimal("1400"),
        "total_previous_period": Decimal("1300"),
    }


def test_financial_statement_without_previous_period():
    template = _simple_template("REV_EXP")

    statement = FinancialStatementProcessor().generate_statement(template, _totals(TAX_REVENUE="5"))

    assert statement.line("TOTAL_RECEIPTS").current_period_value == Decimal("5")
    assert statement.line("TOTAL_RECEIPTS").previous_period_value is None
    assert "total_previous_period" not in statement.totals
    assert statement.metadata.warnings == ["GRANTS: event code GRANTS has no data source"]


def test_compiled_statement_has_one_value_per_column():
    template = _simple_template("REV_EXP")
    columns = [
        Column(id=1, name="Alpha", type=ColumnType.FACILITY, facility_ids=[1]),
        Column(id=2, name="Beta", type=ColumnType.FACILITY, facility_ids=[2], has_data=False),
    ]

    compiled = CompiledStatementProcessor().generate_statement(
        template,
        {"facility-1": _totals(TAX_REVENUE="30", GRANTS="70")},
        columns,
        StatementScope.DISTRICT,
    )

    total = next(line for line in compiled.lines if line.line_code == "TOTAL_RECEIPTS")
    assert total.values == {"facility-1": Decimal("100"), "facility-2": Decimal("0")}
    assert total.total == Decimal("100")
    assert [column.key for column in compiled.columns] == ["facility-1", "facility-2"]
    assert compiled.columns[1].has_data is False
    assert compiled.metadata.total_execution == Decimal("100")
