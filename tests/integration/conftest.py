"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Requires PostgreSQL with migrations applied (alembic upgrade head). Redis is
optional: notifications that cannot be published are logged and dropped.
"""

import json
import uuid
from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.sm_common.database import async_session_factory, engine
from src.sm_gateway.auth.jwt_handler import create_access_token

_UPSERT_PROVIDER = text("""
    INSERT INTO providers (id, business_name, max_bundle_capacity, services_provided, service_areas)
    VALUES (:id, :name, :capacity, CAST(:services AS JSONB), CAST(:areas AS JSONB))
    ON CONFLICT (id) DO NOTHING
""")

_UPSERT_CUSTOMER = text("""
    INSERT INTO customers (id, email, name, address)
    VALUES (:id, :email, :name, CAST(:address AS JSONB))
    ON CONFLICT (id) DO NOTHING
""")

_UPSERT_SERVICE_REQUEST = text("""
    INSERT INTO service_requests (id, customer_id, provider_id, status)
    VALUES (:id, :customer_id, :provider_id, :status)
    ON CONFLICT (id) DO NOTHING
""")


@dataclass
class Actor:
    id: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class Neighbourhood:
    """One provider, three customers on the same zip code, one completed service request."""

    zip_code: str
    provider: Actor
    customers: list[Actor]
    admin: Actor
    service_request_id: str


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def _require_database() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM money_requests LIMIT 1"))
    except Exception as e:
        pytest.skip(f"PostgreSQL with migrations applied is required: {e}")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def hood() -> Neighbourhood:
    """Fresh directory rows per test so tests never share aggregates."""
    uid = uuid.uuid4().hex[:8]
    zip_code = f"9{uid[:4]}"
    address = {"street": "1 Elm St", "city": "Springfield", "state": "IL", "zip_code": zip_code}
    provider_id = f"prov_{uid}"
    customer_ids = [f"cust_{uid}_{i}" for i in range(3)]
    service_request_id = f"sr_{uid}"

    async with async_session_factory() as db:
        await db.execute(
            _UPSERT_PROVIDER,
            {
                "id": provider_id,
                "name": f"Green Thumb {uid}",
                "capacity": 3,
                "services": json.dumps([{"name": "Lawn Mowing", "hourly_rate_cents": 4000}]),
                "areas": json.dumps([{"zip_code": zip_code, "is_active": True}]),
            },
        )
        for customer_id in customer_ids:
            await db.execute(
                _UPSERT_CUSTOMER,
                {
                    "id": customer_id,
                    "email": f"{customer_id}@example.com",
                    "name": customer_id,
                    "address": json.dumps(address),
                },
            )
        await db.execute(
            _UPSERT_SERVICE_REQUEST,
            {
                "id": service_request_id,
                "customer_id": customer_ids[0],
                "provider_id": provider_id,
                "status": "completed",
            },
        )
        await db.commit()

    return Neighbourhood(
        zip_code=zip_code,
        provider=Actor(provider_id, create_access_token(provider_id, "provider")),
        customers=[Actor(c, create_access_token(c, "customer")) for c in customer_ids],
        admin=Actor(f"adm_{uid}", create_access_token(f"adm_{uid}", "admin")),
        service_request_id=service_request_id,
    )
