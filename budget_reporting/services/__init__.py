"""Services package."""

from budget_reporting.services.custom_event_mapper import (
    DEFAULT_BUDGET_VS_ACTUAL_MAPPINGS,
    CustomEventMapper,
    CustomMapping,
    MappingResult,
)
from budget_reporting.services.data_aggregation import (
    AggregatedEventData,
    AggregationError,
    DataAggregationEngine,
    EventData,
    EventFilters,
    aggregate_by_event,
)
from budget_reporting.services.report_workflow import FinancialReportWorkflow, WorkflowError
from budget_reporting.services.snapshot import SnapshotError, SnapshotService, compute_checksum
from budget_reporting.services.statement_generation import (
    StatementGenerationError,
    StatementGenerationService,
)
from budget_reporting.services.statement_processors import (
    BudgetVsActualProcessor,
    CompiledStatementProcessor,
    FinancialStatementProcessor,
)
from budget_reporting.services.template_engine import Template, TemplateEngine, TemplateError, TemplateLine

__all__ = [
    "DEFAULT_BUDGET_VS_ACTUAL_MAPPINGS",
    "AggregatedEventData",
    "AggregationError",
    "BudgetVsActualProcessor",
    "CompiledStatementProcessor",
    "CustomEventMapper",
    "CustomMapping",
    "DataAggregationEngine",
    "EventData",
    "EventFilters",
    "FinancialReportWorkflow",
    "FinancialStatementProcessor",
    "MappingResult",
    "SnapshotError",
    "SnapshotService",
    "StatementGenerationError",
    "StatementGenerationService",
    "Template",
    "TemplateEngine",
    "TemplateError",
    "TemplateLine",
    "WorkflowError",
    "aggregate_by_event",
    "compute_checksum",
]
