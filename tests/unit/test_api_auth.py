"""Role gates and request validation at the HTTP edge."""

from collections.abc import AsyncGenerator, Iterator
from unittest.mock import AsyncMock

import pytest
from fakes import make_db

from src.main import app
from src.sm_common.database import get_db_session
from src.sm_gateway.auth.jwt_handler import create_access_token


def _auth(user_id: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture(autouse=True)
def _stub_db() -> Iterator[None]:
    async def override() -> AsyncGenerator[AsyncMock, None]:
        yield make_db()

    app.dependency_overrides[get_db_session] = override
    yield
    app.dependency_overrides.pop(get_db_session, None)


async def test_health(client) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_missing_token_is_unauthorized(client) -> None:
    resp = await client.get("/api/v1/money-requests")
    assert resp.status_code == 401


async def test_provider_cannot_create_bundle(client) -> None:
    resp = await client.post(
        "/api/v1/bundles",
        json={"title": "Lawn day", "category": "lawn", "services": [{"name": "Lawn Mowing"}]},
        headers=_auth("prov-1", "provider"),
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == 4001


async def test_customer_cannot_read_admin_settings(client) -> None:
    resp = await client.get("/api/v1/admin/settings", headers=_auth("cust-1", "customer"))
    assert resp.status_code == 403
    assert resp.json()["code"] == 4003


async def test_money_request_needs_exactly_one_origin(client) -> None:
    resp = await client.post(
        "/api/v1/money-requests",
        json={"service_request_id": "sr-1", "bundle_id": "bdl_1", "amount": 1000},
        headers=_auth("prov-1", "provider"),
    )
    assert resp.status_code == 422


async def test_negative_tip_rejected(client) -> None:
    resp = await client.post(
        "/api/v1/money-requests/mr_1/accept",
        json={"tip_amount": -100},
        headers=_auth("cust-1", "customer"),
    )
    assert resp.status_code == 422
