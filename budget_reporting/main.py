"""Health Program Budget Reporting - FastAPI Application."""

import asyncio
import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from budget_reporting.config import settings
from budget_reporting.deps import DbSession
from budget_reporting.database import init_db
from budget_reporting.jobs.outdated_reports import run_outdated_reports_job
from budget_reporting.logger import configure_logging, get_logger
from budget_reporting.routers import financial_reports, statements

# Initialize logging early
configure_logging()
logger = get_logger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - start the outdated reports job."""
    await init_db()
    stop_event = asyncio.Event()
    job_task: asyncio.Task[None] | None = None
    if settings.outdated_reports_job_enabled:
        job_task = asyncio.create_task(
            run_outdated_reports_job(stop_event, settings.outdated_reports_interval_seconds)
        )
    logger.info("Application started", version=VERSION, environment=settings.environment)
    yield
    stop_event.set()
    if job_task is not None:
        job_task.cancel()
        with suppress(asyncio.CancelledError):
            await job_task
    logger.info("Application shutting down")


app = FastAPI(
    title="Budget Reporting API",
    description="Planning, execution and financial statements for health programs",
    version=VERSION,
    lifespan=lifespan,
)


@app.middleware("http")
async def logging_middleware(request: Request, call_next: Any) -> Response:
    """Middleware to inject Request-ID and log request details."""
    request_id = request.headers.get("X-Request-ID", str(uuid4()))

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        logger.info(
            "HTTP Request",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        response.headers["X-Request-ID"] = request_id
        return response
    except Exception as exc:
        duration = time.perf_counter() - start_time
        logger.exception(
            "HTTP Request Failed",
            duration_ms=round(duration * 1000, 2),
            error=str(exc),
        )
        raise


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler to ensure JSON response."""
    if settings.debug:
        detail = str(exc)
        trace = traceback.format_exc()
    else:
        detail = "An internal server error occurred. Please try again later."
        trace = None

    return JSONResponse(
        status_code=500,
        content={
            "detail": detail,
            "trace": trace,
            "request_id": structlog.contextvars.get_contextvars().get("request_id"),
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-User-Id", "X-User-Role", "X-Request-ID"],
)

app.include_router(statements.router)
app.include_router(financial_reports.router)


@app.get("/health")
async def health_check(db: DbSession) -> Response:
    """Return 200 when the database answers, 503 otherwise."""
    try:
        await db.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.error("Health check: database unavailable", error=str(e), error_type=type(e).__name__)
        database_ok = False

    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {"database": database_ok},
            "version": VERSION,
        },
    )
