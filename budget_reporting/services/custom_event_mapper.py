"""Per-line budget/actual event overrides for budget-vs-actual statements.

By default a line takes its budget from the planning totals and its actual
from the execution totals of the same ``event_codes``. Some lines are planned
under one event and spent under another; a custom mapping names the two sets
separately.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from budget_reporting.logger import get_logger

if TYPE_CHECKING:
    from budget_reporting.services.template_engine import Template

logger = get_logger(__name__)

MAPPING_METADATA_KEY = "budgetVsActualMapping"


@dataclass(frozen=True)
class CustomMapping:
    line_code: str
    budget_events: tuple[str, ...]
    actual_events: tuple[str, ...]

    def event_codes(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(self.budget_events + self.actual_events))


@dataclass(frozen=True)
class MappingResult:
    budget_amount: Decimal
    actual_amount: Decimal


DEFAULT_BUDGET_VS_ACTUAL_MAPPINGS: dict[str, CustomMapping] = {
    "GOODS_SERVICES": CustomMapping(
        line_code="GOODS_SERVICES",
        budget_events=("GOODS_SERVICES_PLANNING",),
        actual_events=("GOODS_SERVICES",),
    ),
    "TRANSFERS_PUBLIC": CustomMapping(
        line_code="TRANSFERS_PUBLIC",
        budget_events=("GOODS_SERVICES_PLANNING",),
        actual_events=("TRANSFERS_PUBLIC_ENTITIES",),
    ),
}


def _sum_codes(codes: Iterable[str], totals: Mapping[str, Decimal]) -> Decimal:
    return sum((totals.get(code, Decimal("0")) for code in codes), Decimal("0"))


def _as_code_tuple(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, list | tuple):
        return None
    if not all(isinstance(item, str) and item for item in value):
        return None
    return tuple(value)


def mapping_from_metadata(line_code: str, metadata: Mapping[str, Any] | None) -> CustomMapping | None:
    """Read a ``budgetVsActualMapping`` block from template line metadata."""
    if not metadata:
        return None
    raw = metadata.get(MAPPING_METADATA_KEY)
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring malformed event mapping", line_code=line_code)
        return None

    budget_events = _as_code_tuple(raw.get("budgetEvents", []))
    actual_events = _as_code_tuple(raw.get("actualEvents", []))
    if budget_events is None or actual_events is None:
        logger.warning("Ignoring malformed event mapping", line_code=line_code)
        return None
    return CustomMapping(line_code=line_code, budget_events=budget_events, actual_events=actual_events)


class CustomEventMapper:
    def __init__(self, mappings: Mapping[str, CustomMapping] | None = None) -> None:
        self._mappings: dict[str, CustomMapping] = dict(mappings or {})

    @classmethod
    def from_template(
        cls,
        template: Template,
        defaults: Mapping[str, CustomMapping] | None = None,
    ) -> CustomEventMapper:
        """Build a mapper for one template; template metadata beats defaults."""
        if defaults is None:
            defaults = DEFAULT_BUDGET_VS_ACTUAL_MAPPINGS
        line_codes = {line.line_code for line in template.lines}
        mappings = {code: mapping for code, mapping in defaults.items() if code in line_codes}
        for line in template.lines:
            mapping = mapping_from_metadata(line.line_code, line.metadata)
            if mapping is not None:
                mappings[line.line_code] = mapping
        return cls(mappings)

    @property
    def mappings(self) -> dict[str, CustomMapping]:
        return dict(self._mappings)

    def get_event_mapping(self, line_code: str) -> CustomMapping | None:
        return self._mappings.get(line_code)

    def referenced_events(self) -> set[str]:
        codes: set[str] = set()
        for mapping in self._mappings.values():
            codes.update(mapping.event_codes())
        return codes

    @staticmethod
    def apply_mapping(
        mapping: CustomMapping,
        planning_totals: Mapping[str, Decimal],
        execution_totals: Mapping[str, Decimal],
    ) -> MappingResult:
        return MappingResult(
            budget_amount=_sum_codes(mapping.budget_events, planning_totals),
            actual_amount=_sum_codes(mapping.actual_events, execution_totals),
        )

    @staticmethod
    def unresolved_events(
        mapping: CustomMapping,
        planning_totals: Mapping[str, Decimal],
        execution_totals: Mapping[str, Decimal],
    ) -> list[str]:
        """Codes the mapping names that neither totals pass knows about."""
        return [
            code
            for code in mapping.event_codes()
            if code not in planning_totals and code not in execution_totals
        ]
