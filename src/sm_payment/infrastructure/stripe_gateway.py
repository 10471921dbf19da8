"""StripePaymentGateway — PaymentGatewayProtocol over Stripe Checkout.

The stripe SDK is synchronous; each call runs in a worker thread under
asyncio.wait_for(GATEWAY_TIMEOUT_SECONDS) so a slow gateway cannot stall the
event loop or hold a request open indefinitely.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import stripe

from config.settings import settings
from src.sm_common.errors import ExternalGatewayError
from src.sm_payment.domain.models import CheckoutSession, GatewaySession, LineItem

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def _plain_dict(obj: Any) -> dict[str, str]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return {str(k): str(v) for k, v in obj.items()}
    return {str(k): str(v) for k, v in obj.to_dict().items()}


class StripePaymentGateway:
    def __init__(self, api_key: str | None = None, currency: str | None = None) -> None:
        self._api_key = api_key
        self._currency = currency or settings.PAYMENT_CURRENCY
        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not configured - checkout sessions will fail")

    @property
    def api_key(self) -> str:
        # falls back to settings at call time
        return self._api_key or settings.STRIPE_SECRET_KEY

    async def _call(self, operation: str, fn: Callable[[], T]) -> T:
        if not self.api_key:
            raise ExternalGatewayError("payment gateway is not configured")
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn), timeout=settings.GATEWAY_TIMEOUT_SECONDS
            )
        except TimeoutError as e:
            logger.warning("Stripe %s timed out after %ss", operation, settings.GATEWAY_TIMEOUT_SECONDS)
            raise ExternalGatewayError(f"{operation} timed out") from e
        except stripe.StripeError as e:
            logger.warning("Stripe %s failed: %s", operation, e)
            raise ExternalGatewayError(f"{operation} failed: {e.user_message or e}") from e

    async def create_checkout_session(
        self,
        line_items: list[LineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSession:
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": self._currency,
                        "unit_amount": item.unit_amount,
                        "product_data": {
                            "name": item.name,
                            **({"description": item.description} if item.description else {}),
                        },
                    },
                    "quantity": item.quantity,
                }
                for item in line_items
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
        }
        if customer_email:
            params["customer_email"] = customer_email

        session = await self._call(
            "create_checkout_session",
            lambda: stripe.checkout.Session.create(api_key=self.api_key, **params),
        )
        return CheckoutSession(id=session["id"], url=session["url"])

    async def get_session(self, session_id: str) -> GatewaySession:
        session = await self._call(
            "get_session",
            lambda: stripe.checkout.Session.retrieve(
                session_id, api_key=self.api_key, expand=["payment_intent"]
            ),
        )
        return self.parse_session(session)

    def parse_session(self, raw: Any) -> GatewaySession:
        intent = _field(raw, "payment_intent")
        # unexpanded (webhook payloads) the intent is just its id
        if isinstance(intent, str):
            intent_id, intent_status = intent, None
        else:
            intent_id, intent_status = _field(intent, "id"), _field(intent, "status")
        return GatewaySession(
            id=_field(raw, "id"),
            payment_status=_field(raw, "payment_status"),
            session_status=_field(raw, "status"),
            payment_intent_status=intent_status,
            payment_intent_id=intent_id,
            amount_total=_field(raw, "amount_total"),
            customer_ref=_field(raw, "customer"),
            metadata=_plain_dict(_field(raw, "metadata")),
        )
