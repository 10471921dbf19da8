"""HTTP tests for the payment endpoints with the engine and database stubbed."""

from collections.abc import AsyncGenerator, Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
import stripe
from fakes import make_db, make_money_request

from config.settings import settings
from src.main import app
from src.sm_common.database import get_db_session
from src.sm_common.enums import MoneyRequestStatus
from src.sm_common.errors import MoneyRequestNotFoundError, PaymentNotCompletedError
from src.sm_gateway.auth.jwt_handler import create_access_token
from src.sm_payment.api import router as payment_router
from src.sm_payment.domain.models import ReconcileOutcome, ReconcileResult

WEBHOOK = "/api/v1/payments/webhook"


def _event(event_type: str = "checkout.session.completed") -> dict:
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {"id": "cs_test_1", "metadata": {"money_request_id": "mr_1"}}},
    }


@pytest.fixture(autouse=True)
def _stub_db() -> Iterator[None]:
    async def override() -> AsyncGenerator[AsyncMock, None]:
        yield make_db()

    app.dependency_overrides[get_db_session] = override
    yield
    app.dependency_overrides.pop(get_db_session, None)


@pytest.fixture
def engine(monkeypatch) -> MagicMock:
    stub = MagicMock()
    stub.handle_event = AsyncMock()
    stub.confirm_return = AsyncMock()
    monkeypatch.setattr(payment_router, "_engine", stub)
    return stub


@pytest.fixture
def signed(monkeypatch) -> MagicMock:
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    construct = MagicMock(return_value=_event())
    monkeypatch.setattr(stripe.Webhook, "construct_event", construct)
    return construct


class TestWebhook:
    async def test_missing_secret_rejected(self, client, engine, monkeypatch) -> None:
        monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "")

        resp = await client.post(WEBHOOK, content=b"{}")

        assert resp.status_code == 400
        assert resp.json()["code"] == 5003
        engine.handle_event.assert_not_awaited()

    async def test_bad_signature_rejected(self, client, engine, signed) -> None:
        signed.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=x")

        resp = await client.post(WEBHOOK, content=b"{}", headers={"stripe-signature": "t=1,v1=x"})

        assert resp.status_code == 400
        assert "signature" in resp.json()["message"]
        engine.handle_event.assert_not_awaited()

    async def test_paid_event_reconciles(self, client, engine, signed) -> None:
        engine.handle_event.return_value = ReconcileResult(
            ReconcileOutcome.PAID, make_money_request(status=MoneyRequestStatus.PAID)
        )

        resp = await client.post(WEBHOOK, content=b"{}", headers={"stripe-signature": "sig"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"] == {
            "received": True,
            "event_type": "checkout.session.completed",
            "outcome": "paid",
        }
        args = engine.handle_event.await_args.args
        assert args[1] == "checkout.session.completed"
        assert args[2]["id"] == "cs_test_1"

    async def test_unapplicable_event_acknowledged(self, client, engine, signed) -> None:
        engine.handle_event.side_effect = MoneyRequestNotFoundError("mr_1")

        resp = await client.post(WEBHOOK, content=b"{}", headers={"stripe-signature": "sig"})

        assert resp.status_code == 200
        assert resp.json()["data"]["outcome"] == "ignored"

    async def test_unhandled_event_type(self, client, engine, signed) -> None:
        signed.return_value = _event("customer.created")
        engine.handle_event.return_value = None

        resp = await client.post(WEBHOOK, content=b"{}", headers={"stripe-signature": "sig"})

        assert resp.status_code == 200
        assert resp.json()["data"]["outcome"] is None


class TestReturn:
    async def test_requires_customer_token(self, client, engine) -> None:
        resp = await client.get("/api/v1/payments/success", params={"session_id": "cs_test_1"})
        assert resp.status_code == 401

    async def test_paid_return(self, client, engine) -> None:
        engine.confirm_return.return_value = ReconcileResult(
            ReconcileOutcome.PAID,
            make_money_request(status=MoneyRequestStatus.PAID),
            credit_applied=True,
            notified=True,
        )
        token = create_access_token("cust-1", "customer")

        resp = await client.get(
            "/api/v1/payments/success",
            params={"session_id": "cs_test_1", "money_request_id": "mr_1"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["outcome"] == "paid"
        assert data["money_request"]["status"] == "paid"
        assert data["credit_applied"] is True

    async def test_unpaid_return_is_client_error(self, client, engine) -> None:
        engine.confirm_return.side_effect = PaymentNotCompletedError("unpaid", "open")
        token = create_access_token("cust-1", "customer")

        resp = await client.get(
            "/api/v1/payments/success",
            params={"session_id": "cs_test_1"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == 5002
