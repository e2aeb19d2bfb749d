"""Tests for budget/actual custom event mappings."""

from decimal import Decimal

from budget_reporting.services.custom_event_mapper import (
    DEFAULT_BUDGET_VS_ACTUAL_MAPPINGS,
    CustomEventMapper,
    CustomMapping,
    mapping_from_metadata,
)
from budget_reporting.services.template_engine import Template, TemplateLine


def _template(*lines: TemplateLine) -> Template:
    return Template.from_lines("BUDGET_VS_ACTUAL", "Budget vs Actual", lines)


def test_apply_mapping_splits_budget_and_actual():
    mapping = CustomMapping(line_code="X", budget_events=("A",), actual_events=("B",))

    result = CustomEventMapper.apply_mapping(
        mapping, {"A": Decimal("100")}, {"B": Decimal("60")}
    )

    assert result.budget_amount == Decimal("100")
    assert result.actual_amount == Decimal("60")
    assert result.actual_amount - result.budget_amount == Decimal("-40")


def test_apply_mapping_missing_codes_count_as_zero():
    mapping = CustomMapping(line_code="X", budget_events=("A", "C"), actual_events=("B",))

    result = CustomEventMapper.apply_mapping(mapping, {"A": Decimal("5")}, {})

    assert result.budget_amount == Decimal("5")
    assert result.actual_amount == Decimal("0")
    assert CustomEventMapper.unresolved_events(mapping, {"A": Decimal("5")}, {}) == ["C", "B"]


def test_from_template_keeps_defaults_only_for_present_lines():
    template = _template(
        TemplateLine(id=1, line_code="GOODS_SERVICES", line_item="Goods", event_codes=("GOODS_SERVICES",)),
        TemplateLine(id=2, line_code="GRANTS", line_item="Grants", event_codes=("GRANTS",)),
    )

    mapper = CustomEventMapper.from_template(template)

    assert mapper.get_event_mapping("GOODS_SERVICES") == DEFAULT_BUDGET_VS_ACTUAL_MAPPINGS["GOODS_SERVICES"]
    assert mapper.get_event_mapping("TRANSFERS_PUBLIC") is None
    assert mapper.get_event_mapping("GRANTS") is None
    assert mapper.referenced_events() == {"GOODS_SERVICES_PLANNING", "GOODS_SERVICES"}


def test_template_metadata_overrides_defaults():
    template = _template(
        TemplateLine(
            id=1,
            line_code="GOODS_SERVICES",
            line_item="Goods",
            event_codes=("GOODS_SERVICES",),
            metadata={
                "budgetVsActualMapping": {
                    "budgetEvents": ["GOODS_PLAN_A", "GOODS_PLAN_B"],
                    "actualEvents": ["GOODS_SPENT"],
                }
            },
        ),
    )

    mapping = CustomEventMapper.from_template(template).get_event_mapping("GOODS_SERVICES")

    assert mapping == CustomMapping(
        line_code="GOODS_SERVICES",
        budget_events=("GOODS_PLAN_A", "GOODS_PLAN_B"),
        actual_events=("GOODS_SPENT",),
    )


def test_malformed_metadata_is_ignored():
    assert mapping_from_metadata("X", None) is None
    assert mapping_from_metadata("X", {"note": "no mapping"}) is None
    assert mapping_from_metadata("X", {"budgetVsActualMapping": "A->B"}) is None
    assert mapping_from_metadata("X", {"budgetVsActualMapping": {"budgetEvents": [1]}}) is None


def test_mapper_without_defaults():
    template = _template(
        TemplateLine(id=1, line_code="GOODS_SERVICES", line_item="Goods", event_codes=("GOODS_SERVICES",)),
    )

    mapper = CustomEventMapper.from_template(template, defaults={})

    assert mapper.mappings == {}
