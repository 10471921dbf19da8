# tests/integration/test_payment_flow.py
"""Integration tests for money requests through to reconciliation.

The hosted checkout is never contacted: the webhook signature check is
patched so gateway events can be posted directly, and the Stripe session
creation is replaced by a stub returning a fixed session id.
"""

import uuid

import pytest
import stripe
from httpx import AsyncClient

from config.settings import settings

pytestmark = pytest.mark.asyncio(loop_scope="session")


@pytest.fixture
def gateway_stub(monkeypatch) -> dict[str, str]:
    session_id = f"cs_test_{uuid.uuid4().hex[:12]}"

    def fake_create(**params):  # type: ignore[no-untyped-def]
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return {"session_id": session_id}


def _signed_event(monkeypatch, event_type: str, session_id: str, money_request_id: str) -> None:
    event = {
        "id": f"evt_{uuid.uuid4().hex[:12]}",
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "payment_status": "paid",
                "status": "complete",
                "payment_intent": "pi_test",
                "metadata": {"money_request_id": money_request_id},
            }
        },
    }
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda *a, **k: event)


async def _request_payment(client: AsyncClient, hood, amount: int = 10000) -> dict:
    resp = await client.post(
        "/api/v1/money-requests",
        json={"service_request_id": hood.service_request_id, "amount": amount},
        headers=hood.provider.headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["items"][0]


class TestMoneyRequest:
    async def test_duplicate_request_conflicts(self, client: AsyncClient, hood) -> None:
        await _request_payment(client, hood)

        resp = await client.post(
            "/api/v1/money-requests",
            json={"service_request_id": hood.service_request_id, "amount": 5000},
            headers=hood.provider.headers,
        )

        assert resp.status_code == 409
        assert resp.json()["code"] == 3006

    async def test_accept_with_tip(self, client: AsyncClient, hood) -> None:
        mr = await _request_payment(client, hood)
        customer = hood.customers[0]

        resp = await client.post(
            f"/api/v1/money-requests/{mr['id']}/accept",
            json={"tip_amount": 2000},
            headers=customer.headers,
        )

        data = resp.json()["data"]
        assert data["total_amount_cents"] == 12000
        assert data["commission"]["commission_amount_cents"] == 600
        assert data["commission"]["provider_amount_cents"] == 11400


class TestReconciliation:
    async def test_webhook_pays_once_and_credits_provider(
        self, client: AsyncClient, hood, gateway_stub, monkeypatch
    ) -> None:
        mr = await _request_payment(client, hood)
        customer = hood.customers[0]
        balance_before = (
            await client.get("/api/v1/earnings/balance", headers=hood.provider.headers)
        ).json()["data"]["available_balance_cents"]

        pay = await client.post(
            f"/api/v1/money-requests/{mr['id']}/set-amount-and-pay",
            json={"amount": 10000, "tip_amount": 0},
            headers=customer.headers,
        )
        assert pay.status_code == 200, pay.text
        assert pay.json()["data"]["payment_status"] == "checkout_pending"
        assert pay.json()["data"]["money_request"]["status"] == "accepted"

        _signed_event(monkeypatch, "checkout.session.completed", gateway_stub["session_id"], mr["id"])
        first = await client.post("/api/v1/payments/webhook", content=b"{}", headers={"stripe-signature": "sig"})
        second = await client.post("/api/v1/payments/webhook", content=b"{}", headers={"stripe-signature": "sig"})

        assert first.json()["data"]["outcome"] == "paid"
        assert second.json()["data"]["outcome"] == "already_paid"

        detail = (
            await client.get(f"/api/v1/money-requests/{mr['id']}", headers=customer.headers)
        ).json()["data"]
        assert detail["status"] == "paid"
        assert detail["payment_details"]["confirmed_via"] == "webhook"

        balance_after = (
            await client.get("/api/v1/earnings/balance", headers=hood.provider.headers)
        ).json()["data"]["available_balance_cents"]
        assert balance_after - balance_before == 9500

    async def test_dispute_then_admin_resolution(self, client: AsyncClient, hood) -> None:
        mr = await _request_payment(client, hood)
        customer = hood.customers[0]

        disputed = await client.post(
            f"/api/v1/money-requests/{mr['id']}/dispute",
            json={"reason": "Work not finished"},
            headers=customer.headers,
        )
        assert disputed.json()["data"]["status"] == "disputed"

        resolved = await client.post(
            f"/api/v1/admin/money-requests/{mr['id']}/resolve",
            json={"resolution": "Half refunded", "target_status": "accepted", "new_amount": 5000},
            headers=hood.admin.headers,
        )

        data = resolved.json()["data"]
        assert data["status"] == "accepted"
        assert data["total_amount_cents"] == 5000
