"""Statement generation API router."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter

from budget_reporting.deps import CurrentContext, DbSession
from budget_reporting.logger import get_logger
from budget_reporting.schemas import (
    CompiledExecutionRequest,
    CompiledExecutionResponse,
    CompiledStatement,
    CompiledStatementRequest,
    GenerateStatementRequest,
    Statement,
)
from budget_reporting.services.data_aggregation import AggregationError
from budget_reporting.services.scope import ScopeError
from budget_reporting.services.statement_generation import (
    StatementGenerationError,
    StatementGenerationService,
    StatementNotFoundError,
)
from budget_reporting.services.template_engine import TemplateError
from budget_reporting.utils import raise_bad_request, raise_not_found

router = APIRouter(prefix="/statements", tags=["statements"])
logger = get_logger(__name__)


def _raise_for(exc: Exception) -> NoReturn:
    if isinstance(exc, StatementNotFoundError):
        raise_not_found(str(exc).removesuffix(" not found"), cause=exc)
    if isinstance(exc, TemplateError) and str(exc).startswith("Template not found"):
        raise_not_found("Statement template", cause=exc)
    raise_bad_request(str(exc), cause=exc)


@router.post("/generate", response_model=Statement)
async def generate_statement(
    payload: GenerateStatementRequest,
    db: DbSession,
    ctx: CurrentContext,
) -> Statement:
    """Generate a statement for a facility or an aggregated scope."""
    logger.info(
        "Statement requested",
        statement_code=payload.statement_code,
        scope=payload.scope.value,
        user_id=ctx.user_id,
    )
    try:
        return await StatementGenerationService(db).generate(payload)
    except (StatementGenerationError, TemplateError, ScopeError, AggregationError) as exc:
        _raise_for(exc)


@router.post("/compiled", response_model=CompiledStatement)
async def generate_compiled_statement(
    payload: CompiledStatementRequest,
    db: DbSession,
    ctx: CurrentContext,
) -> CompiledStatement:
    """Generate a statement with one value column per facility, district or province."""
    logger.info(
        "Compiled statement requested",
        statement_code=payload.statement_code,
        scope=payload.scope.value,
        user_id=ctx.user_id,
    )
    try:
        return await StatementGenerationService(db).generate_compiled(payload)
    except (StatementGenerationError, TemplateError, ScopeError, AggregationError) as exc:
        _raise_for(exc)


@router.post("/compiled-execution", response_model=CompiledExecutionResponse)
async def compiled_execution(
    payload: CompiledExecutionRequest,
    db: DbSession,
    ctx: CurrentContext,
) -> CompiledExecutionResponse:
    """Raw form data summed per column for the requested scope."""
    logger.info(
        "Compiled execution requested",
        scope=payload.scope.value,
        entity_type=payload.entity_type.value,
        user_id=ctx.user_id,
    )
    try:
        return await StatementGenerationService(db).compiled_execution(payload)
    except (StatementGenerationError, ScopeError) as exc:
        _raise_for(exc)
