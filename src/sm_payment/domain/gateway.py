"""Payment gateway Protocol — hosted checkout sessions.

Implementations must bound every call by a timeout and raise
ExternalGatewayError on failure; a gateway error never reads as success.
"""

from typing import Any, Protocol

from src.sm_payment.domain.models import CheckoutSession, GatewaySession, LineItem


class PaymentGatewayProtocol(Protocol):
    async def create_checkout_session(
        self,
        line_items: list[LineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSession: ...

    async def get_session(self, session_id: str) -> GatewaySession: ...

    def parse_session(self, raw: Any) -> GatewaySession:
        """Map a gateway-native session object (e.g. from a webhook event)."""
        ...
