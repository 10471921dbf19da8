"""sm_payment REST API — checkout return, checkout cancel and gateway webhook."""

import logging
from typing import Annotated

import stripe
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sm_common.database import get_db_session
from src.sm_common.errors import InvalidWebhookError, NotFoundError, ValidationError
from src.sm_common.principal import CustomerPrincipal
from src.sm_common.response import ApiResponse, respond
from src.sm_gateway.auth.dependencies import require_customer
from src.sm_payment.application.reconciliation import ReconciliationEngine
from src.sm_payment.application.schemas import ReconcileResponse, WebhookAck
from src.sm_payment.application.session_service import PaymentSessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

_engine = ReconciliationEngine()
_sessions = PaymentSessionService()


@router.get("/success")
async def payment_success(
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    session_id: str = Query(..., min_length=1),
    money_request_id: str | None = Query(None),
) -> ApiResponse:
    result = await _engine.confirm_return(db, session_id, money_request_id)
    data = ReconcileResponse.from_result(result)
    return respond(request, data.model_dump(), f"Payment {result.outcome.value}")


@router.get("/cancel")
async def payment_cancel(
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    money_request_id: str = Query(..., min_length=1),
) -> ApiResponse:
    data = await _sessions.cancel_checkout(db, money_request_id, customer)
    return respond(request, data.model_dump(), "Checkout canceled")


@router.post("/webhook")
async def payment_webhook(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("Gateway webhook received but STRIPE_WEBHOOK_SECRET not configured")
        raise InvalidWebhookError("webhook secret not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        raise InvalidWebhookError("invalid payload") from e
    except stripe.SignatureVerificationError as e:
        raise InvalidWebhookError("invalid signature") from e

    event_type = event["type"]
    try:
        result = await _engine.handle_event(db, event_type, event["data"]["object"])
    except (ValidationError, NotFoundError) as e:
        # acknowledged so the gateway stops redelivering an event we can never apply
        logger.warning("Webhook %s %s not applicable: %s", event_type, event["id"], e.message)
        ack = WebhookAck(event_type=event_type, outcome="ignored")
        return respond(request, ack.model_dump())

    ack = WebhookAck(event_type=event_type, outcome=result.outcome.value if result else None)
    return respond(request, ack.model_dump())
