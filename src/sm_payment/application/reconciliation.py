"""ReconciliationEngine — the only code that marks a money request paid.

Two paths converge on reconcile():

    Path A  customer returns from checkout → fetch session from gateway → reconcile
    Path B  gateway webhook (signature already verified) → reconcile

Both take the per-money-request lock and write with a version check, so when
they race exactly one performs the paid transition. The loser re-reads,
sees ``paid`` and returns ALREADY_PAID without touching anything.

One-time effects of the winning path:
  - provider credit, inside a SAVEPOINT of the paid transaction. A failing
    credit rolls back only the savepoint; paid still commits and the failure
    is logged for manual reconciliation.
  - "Payment received" notification to the provider, after commit.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.enums import MoneyRequestStatus
from src.sm_common.errors import (
    ConcurrentModificationError,
    PaymentNotCompletedError,
    ReconciliationConflict,
    ValidationError,
)
from src.sm_earnings.application.service import EarningsService
from src.sm_money.application.writer import MoneyRequestWriter
from src.sm_money.domain import lifecycle
from src.sm_money.domain.models import MoneyRequest, MoneyRequestEvent
from src.sm_money.domain.state_machine import GATEWAY_PAYABLE_STATUSES
from src.sm_notification.domain.dispatcher import NotificationDispatcherProtocol
from src.sm_notification.infrastructure.redis_dispatcher import RedisNotificationDispatcher
from src.sm_payment.domain.gateway import PaymentGatewayProtocol
from src.sm_payment.domain.models import (
    ConfirmationSource,
    GatewaySession,
    ReconcileOutcome,
    ReconcileResult,
)
from src.sm_payment.infrastructure.stripe_gateway import StripePaymentGateway

logger = logging.getLogger(__name__)

PAID_EVENTS = frozenset(
    {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
)
FAILED_EVENTS = frozenset({"checkout.session.async_payment_failed"})


def classify(mr: MoneyRequest, session: GatewaySession) -> ReconcileOutcome:
    """Decide what a confirmation does to ``mr``. PAID means "write paid now"."""
    if mr.status == MoneyRequestStatus.PAID:
        return ReconcileOutcome.ALREADY_PAID
    if not session.is_paid:
        return ReconcileOutcome.NOT_PAID
    if mr.status not in GATEWAY_PAYABLE_STATUSES:
        return ReconcileOutcome.MANUAL_REVIEW
    return ReconcileOutcome.PAID


class ReconciliationEngine:
    def __init__(
        self,
        writer: MoneyRequestWriter | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        earnings: EarningsService | None = None,
        notifier: NotificationDispatcherProtocol | None = None,
    ) -> None:
        self._writer = writer or MoneyRequestWriter()
        self._gateway: PaymentGatewayProtocol = gateway or StripePaymentGateway()
        self._earnings = earnings or EarningsService()
        self._notifier: NotificationDispatcherProtocol = notifier or RedisNotificationDispatcher()

    async def reconcile(
        self, db: AsyncSession, session: GatewaySession, source: ConfirmationSource
    ) -> ReconcileResult:
        money_request_id = session.money_request_id
        if money_request_id is None:
            raise ValidationError(f"Checkout session {session.id} carries no money_request_id")

        credit_applied = False

        def mark_paid(mr: MoneyRequest, now: datetime) -> list[MoneyRequestEvent] | None:
            if classify(mr, session) != ReconcileOutcome.PAID:
                return None
            if session.amount_total is not None and session.amount_total != mr.total_amount:
                logger.warning(
                    "Money request %s: gateway charged %d cents, request total is %d",
                    mr.id,
                    session.amount_total,
                    mr.total_amount,
                )
            return lifecycle.mark_paid(
                mr,
                session_id=session.id,
                payment_intent_id=session.payment_intent_id,
                customer_ref=session.customer_ref,
                amount_received=session.amount_total,
                confirmed_via=source.value,
                now=now,
            )

        async def credit_provider(tx: AsyncSession, mr: MoneyRequest) -> None:
            nonlocal credit_applied
            try:
                async with tx.begin_nested():
                    credit_applied = await self._earnings.credit_payment(
                        tx, mr.provider_id, mr.commission.provider_amount, mr.id
                    )
            except Exception:
                logger.error(
                    "Provider credit failed for money request %s (provider %s, %d cents); "
                    "payment recorded, balance needs manual reconciliation",
                    mr.id,
                    mr.provider_id,
                    mr.commission.provider_amount,
                    exc_info=True,
                )

        try:
            result = await self._writer.apply(
                db, money_request_id, mark_paid, before_commit=credit_provider
            )
        except ConcurrentModificationError:
            mr = await self._writer.load(db, money_request_id)
            if mr.status == MoneyRequestStatus.PAID:
                return ReconcileResult(ReconcileOutcome.ALREADY_PAID, mr)
            raise ReconciliationConflict(money_request_id) from None

        mr = result.money_request
        if not result.written:
            outcome = classify(mr, session)
            if outcome == ReconcileOutcome.MANUAL_REVIEW:
                logger.error(
                    "Gateway reports session %s paid but money request %s is %s; "
                    "left unchanged for manual review",
                    session.id,
                    mr.id,
                    mr.status.value,
                )
            else:
                logger.info(
                    "Reconcile %s via %s: %s (session %s)",
                    mr.id,
                    source.value,
                    outcome.value,
                    session.id,
                )
            return ReconcileResult(outcome, mr)

        logger.info(
            "Money request %s paid via %s (session %s, %d cents, credit_applied=%s)",
            mr.id,
            source.value,
            session.id,
            mr.total_amount,
            credit_applied,
        )
        notified = await self._notifier.notify(
            mr.provider_id,
            "Payment received",
            f"You received a payment of {mr.total_amount} cents",
            f"/money-requests/{mr.id}",
        )
        if not notified:
            logger.error("Payment notification for money request %s was not delivered", mr.id)
        return ReconcileResult(
            ReconcileOutcome.PAID, mr, credit_applied=credit_applied, notified=notified
        )

    async def confirm_return(
        self, db: AsyncSession, session_id: str, money_request_id: str | None = None
    ) -> ReconcileResult:
        """Path A. The gateway is asked first, with no lock or transaction held."""
        session = await self._gateway.get_session(session_id)
        if money_request_id is not None and session.money_request_id != money_request_id:
            raise ValidationError(
                f"Checkout session {session_id} does not belong to money request {money_request_id}"
            )
        result = await self.reconcile(db, session, ConfirmationSource.RETURN)
        if result.outcome == ReconcileOutcome.NOT_PAID:
            raise PaymentNotCompletedError(session.payment_status, session.session_status)
        return result

    async def handle_event(
        self, db: AsyncSession, event_type: str, raw_session: object
    ) -> ReconcileResult | None:
        """Path B. Returns None for event types this engine does not act on."""
        if event_type in PAID_EVENTS:
            session = self._gateway.parse_session(raw_session)
            return await self.reconcile(db, session, ConfirmationSource.WEBHOOK)
        if event_type in FAILED_EVENTS:
            session = self._gateway.parse_session(raw_session)
            return await self._mark_failed(db, session)
        logger.debug("Ignoring gateway event %s", event_type)
        return None

    async def _mark_failed(self, db: AsyncSession, session: GatewaySession) -> ReconcileResult:
        money_request_id = session.money_request_id
        if money_request_id is None:
            raise ValidationError(f"Checkout session {session.id} carries no money_request_id")
        result = await self._writer.apply(
            db, money_request_id, lambda mr, now: lifecycle.mark_failed(mr, session.id, now)
        )
        mr = result.money_request
        if not result.written:
            outcome = (
                ReconcileOutcome.ALREADY_PAID
                if mr.status == MoneyRequestStatus.PAID
                else ReconcileOutcome.NOT_PAID
            )
            return ReconcileResult(outcome, mr)
        logger.warning("Money request %s payment failed (session %s)", mr.id, session.id)
        await self._notifier.notify(
            mr.customer_id,
            "Payment failed",
            "Your payment could not be completed, please try again",
            f"/money-requests/{mr.id}",
        )
        return ReconcileResult(ReconcileOutcome.FAILED, mr)
