"""Test fixtures and configuration."""

import logging
import os
import sys

# Settings are read at import time; keep the background job off for the app under test
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("OUTDATED_REPORTS_JOB_ENABLED", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
import structlog  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from budget_reporting.logger import get_logger  # noqa: E402

logger = get_logger(__name__)


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest.fixture
def test_database_url(tmp_path):
    """Per-test SQLite file unless TEST_DATABASE_URL points elsewhere."""
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def db_engine(test_database_url):
    """Create the schema for one test and drop it afterwards.

    Tests commit for real: the outdated reports job and API handlers open their
    own sessions and must see the data.
    """
    from budget_reporting.database import Base
    from budget_reporting import models  # noqa: F401

    engine = create_async_engine(test_database_url, echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    except Exception as e:
        logger.warning(
            "Schema cleanup failed",
            error=str(e),
            error_type=type(e).__name__,
        )
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session maker bound to the test engine, also used by API handlers and jobs."""
    from budget_reporting import database

    maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    previous = database.set_test_session_maker(maker)
    yield maker
    database.set_test_session_maker(previous)


@pytest_asyncio.fixture
async def db(session_maker):
    """Database session for a test."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker):
    """Async API client authenticated as an accountant."""
    from budget_reporting.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-Id": "1", "X-User-Role": "accountant"},
    ) as client_instance:
        yield client_instance


@pytest_asyncio.fixture
async def hierarchy(db):
    """Province > district > hospital with one attached health center."""
    from tests.factories import build_hierarchy

    return await build_hierarchy(db)


@pytest_asyncio.fixture
async def seeded(db):
    """Event catalog, programs and statement templates."""
    from budget_reporting.seeds import seed_reference_data

    await seed_reference_data(db)
    await db.commit()
    return db
