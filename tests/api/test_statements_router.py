"""Tests for the statements API."""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.models import EntityType
from tests.factories import add_entry, map_activity


@pytest.mark.asyncio
async def test_generate_budget_vs_actual(client: AsyncClient, db: AsyncSession, seeded, hierarchy):
    planned = await map_activity(db, "GOODS_SERVICES_PLANNING", EntityType.PLANNING)
    spent = await map_activity(db, "GOODS_SERVICES", EntityType.EXECUTION)
    await add_entry(db, hierarchy, planned, 5000)
    await add_entry(db, hierarchy, spent, 3200)
    await db.commit()

    response = await client.post(
        "/statements/generate",
        json={
            "statement_code": "BUDGET_VS_ACTUAL",
            "project_id": hierarchy.project.id,
            "reporting_period_id": hierarchy.period.id,
            "facility_id": hierarchy.health_center.id,
        },
    )

    assert response.status_code == 200
    data = response.json()
    lines = {line["line_code"]: line for line in data["lines"]}
    assert Decimal(lines["GOODS_SERVICES"]["revised_budget"]) == Decimal("5000")
    assert Decimal(lines["GOODS_SERVICES"]["actual"]) == Decimal("3200")
    assert Decimal(lines["GOODS_SERVICES"]["variance"]) == Decimal("-1800")
    assert data["metadata"]["facility"]["name"] == "Nyagasambu Health Center"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_generate_requires_scope_target(client: AsyncClient):
    response = await client.post(
        "/statements/generate",
        json={"statement_code": "CASH_FLOW", "project_id": 1, "reporting_period_id": 1, "scope": "district"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_generate_unknown_template_is_404(client: AsyncClient, seeded, hierarchy):
    response = await client.post(
        "/statements/generate",
        json={
            "statement_code": "ASSETS_LIABILITIES",
            "project_id": hierarchy.project.id,
            "reporting_period_id": hierarchy.period.id,
            "facility_id": hierarchy.health_center.id,
        },
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Statement template not found"


@pytest.mark.asyncio
async def test_generate_unknown_project_is_404(client: AsyncClient, seeded, hierarchy):
    response = await client.post(
        "/statements/generate",
        json={
            "statement_code": "CASH_FLOW",
            "project_id": 9999,
            "reporting_period_id": hierarchy.period.id,
            "facility_id": hierarchy.health_center.id,
        },
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Project 9999 not found"


@pytest.mark.asyncio
async def test_statements_require_a_caller(client: AsyncClient):
    response = await client.post(
        "/statements/generate",
        json={"statement_code": "CASH_FLOW", "project_id": 1, "reporting_period_id": 1, "facility_id": 1},
        headers={"X-User-Id": ""},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(client: AsyncClient):
    response = await client.post(
        "/statements/generate",
        json={"statement_code": "CASH_FLOW", "project_id": 1, "reporting_period_id": 1, "facility_id": 1},
        headers={"X-User-Role": "auditor"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_compiled_statement(client: AsyncClient, db: AsyncSession, seeded, hierarchy):
    grants = await map_activity(db, "GRANTS", EntityType.EXECUTION)
    await add_entry(db, hierarchy, grants, 40)
    await add_entry(db, hierarchy, grants, 60, facility=hierarchy.hospital)
    await db.commit()

    response = await client.post(
        "/statements/compiled",
        json={
            "statement_code": "REV_EXP",
            "project_id": hierarchy.project.id,
            "reporting_period_id": hierarchy.period.id,
            "district_id": hierarchy.district.id,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["scope"] == "district"
    assert [column["name"] for column in data["columns"]] == [
        "Nyagasambu Health Center",
        "Rwamagana Hospital",
    ]
    total = next(line for line in data["lines"] if line["line_code"] == "TOTAL_REVENUE")
    assert Decimal(total["total"]) == Decimal("100")


@pytest.mark.asyncio
async def test_compiled_execution(client: AsyncClient, db: AsyncSession, hierarchy):
    goods = await map_activity(db, "GOODS_SERVICES", EntityType.EXECUTION)
    await add_entry(db, hierarchy, goods, 25, quarters={"q1": 25})
    await db.commit()

    response = await client.post(
        "/statements/compiled-execution",
        json={
            "project_id": hierarchy.project.id,
            "reporting_period_id": hierarchy.period.id,
            "scope": "province",
            "province_id": hierarchy.province.id,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["entity_type"] == "execution"
    assert len(data["data"]) == 1
    assert data["data"][0]["name"] == "Rwamagana District"
    assert data["data"][0]["form_data"] == {"amount": 25, "quarters": {"q1": 25}}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"] == {"database": True}


@pytest.mark.asyncio
async def test_compiled_budget_vs_actual_is_rejected(client: AsyncClient, seeded, hierarchy):
    response = await client.post(
        "/statements/compiled",
        json={
            "statement_code": "BUDGET_VS_ACTUAL",
            "project_id": hierarchy.project.id,
            "reporting_period_id": hierarchy.period.id,
            "district_id": hierarchy.district.id,
        },
    )

    assert response.status_code == 400
    assert "cannot be compiled" in response.json()["detail"]
