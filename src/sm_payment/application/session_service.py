"""PaymentSessionService — opens hosted checkout sessions for money requests.

    read + authorize → gateway call (no lock held) → lock + versioned write of
    payment_details{checkout_pending} → commit

The response says "checkout_pending": the request is accepted and settling,
never paid. Paid is only ever written by the reconciliation engine.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sm_common.errors import AuthorizationError
from src.sm_common.principal import CustomerPrincipal
from src.sm_directory.domain.repository import CustomerDirectoryProtocol
from src.sm_directory.infrastructure.persistence import CustomerDirectoryRepository
from src.sm_money.application.schemas import MoneyRequestDetail, PaymentInitiationResponse
from src.sm_money.application.writer import MoneyRequestWriter
from src.sm_money.domain import lifecycle
from src.sm_money.domain.models import MoneyRequest
from src.sm_payment.domain.gateway import PaymentGatewayProtocol
from src.sm_payment.domain.models import LineItem
from src.sm_payment.infrastructure.stripe_gateway import StripePaymentGateway

logger = logging.getLogger(__name__)


def _conversation_slug(mr: MoneyRequest) -> str:
    return f"bundle-{mr.bundle_id}" if mr.bundle_id else f"request-{mr.service_request_id}"


def build_return_urls(mr: MoneyRequest, base_url: str | None = None) -> tuple[str, str]:
    """Success/cancel URLs back to the conversation page of the origin.

    ``{CHECKOUT_SESSION_ID}`` is substituted by the gateway on redirect.
    """
    base = (base_url or settings.FRONTEND_BASE_URL).rstrip("/")
    page = f"{base}/conversation/{_conversation_slug(mr)}"
    success_url = (
        f"{page}?paymentSuccess=1&moneyRequestId={mr.id}&session_id={{CHECKOUT_SESSION_ID}}"
    )
    cancel_url = f"{page}?paymentCancelled=1&moneyRequestId={mr.id}"
    return success_url, cancel_url


def build_line_items(mr: MoneyRequest) -> list[LineItem]:
    description = f"Includes tip of {mr.tip_amount} cents" if mr.tip_amount else None
    return [
        LineItem(
            name=f"Payment for {mr.description or 'Service'}",
            unit_amount=mr.total_amount,
            description=description,
        )
    ]


class PaymentSessionService:
    def __init__(
        self,
        writer: MoneyRequestWriter | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        customers: CustomerDirectoryProtocol | None = None,
    ) -> None:
        self._writer = writer or MoneyRequestWriter()
        self._gateway: PaymentGatewayProtocol = gateway or StripePaymentGateway()
        self._customers: CustomerDirectoryProtocol = customers or CustomerDirectoryRepository()

    async def create_session(
        self, db: AsyncSession, money_request_id: str, customer: CustomerPrincipal
    ) -> PaymentInitiationResponse:
        mr = await self._writer.load(db, money_request_id)
        lifecycle.ensure_payable(mr, customer.id)
        profile = await self._customers.get_customer(db, customer.id)
        # end the read transaction before the gateway round trip
        await db.rollback()

        success_url, cancel_url = build_return_urls(mr)
        session = await self._gateway.create_checkout_session(
            line_items=build_line_items(mr),
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={
                "money_request_id": mr.id,
                "customer_id": mr.customer_id,
                "provider_id": mr.provider_id,
            },
            customer_email=profile.email if profile else None,
        )

        result = await self._writer.apply(
            db,
            money_request_id,
            lambda m, now: lifecycle.record_checkout_session(m, session.id, mr.total_amount, now),
        )
        logger.info(
            "Checkout session %s opened for money request %s (%d cents)",
            session.id,
            money_request_id,
            result.money_request.total_amount,
        )
        return PaymentInitiationResponse(
            money_request=MoneyRequestDetail.from_domain(result.money_request),
            session_id=session.id,
            redirect_url=session.url,
        )

    async def cancel_checkout(
        self, db: AsyncSession, money_request_id: str, customer: CustomerPrincipal
    ) -> MoneyRequestDetail:
        """Customer backed out of the hosted page. The request stays accepted and payable."""
        mr = await self._writer.load(db, money_request_id)
        if mr.customer_id != customer.id:
            raise AuthorizationError("Not the customer of this money request")
        result = await self._writer.apply(
            db, money_request_id, lambda m, now: lifecycle.cancel_checkout(m, now)
        )
        if result.written:
            logger.info("Checkout canceled for money request %s", money_request_id)
        return MoneyRequestDetail.from_domain(result.money_request)
