"""Integration-test fixtures.

Requires a PostgreSQL database migrated with `alembic upgrade head` at
DATABASE_URL. Tests are skipped when it cannot be reached.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.qc_common.database import check_database


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped client so the engine pool outlives individual tests."""
    if not await check_database():
        pytest.skip("PostgreSQL is not reachable; run migrations against DATABASE_URL")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _register(client: AsyncClient, name: str) -> dict[str, str]:
    """Register a fresh .edu user and return its Authorization header."""
    email = f"{name.lower()}-{uuid.uuid4().hex[:8]}@integration.edu"
    resp = await client.post("/api/v1/auth/register", json={
        "name": name,
        "email": email,
        "password": "TestPass123!",
    })
    assert resp.status_code == 201, resp.text
    token = resp.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def seller_headers(client: AsyncClient) -> dict[str, str]:
    return await _register(client, "Seller")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def bidder_headers(client: AsyncClient) -> dict[str, str]:
    return await _register(client, "Bidder")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def other_bidder_headers(client: AsyncClient) -> dict[str, str]:
    return await _register(client, "Other")
