"""MoneyRequestService — provider-issued payment requests and customer actions.

Creation validates the origin (a completed single service request, or a
bundle the provider is assigned to) and inserts every targeted request in one
transaction. All later changes go through MoneyRequestWriter. Paying hands
over to PaymentSessionService after the amount change has committed, so no
lock or transaction is held across the gateway call.
"""

import logging
from datetime import timedelta
from typing import assert_never

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sm_bundle.domain.models import Bundle
from src.sm_bundle.domain.repository import BundleRepositoryProtocol
from src.sm_bundle.infrastructure.persistence import BundleRepository
from src.sm_common.datetime_utils import utc_now
from src.sm_common.enums import BundleStatus, ServiceRequestStatus
from src.sm_common.errors import (
    AuthorizationError,
    BundleNotFoundError,
    BundleNotOpenError,
    DuplicateMoneyRequestError,
    ServiceRequestNotFoundError,
    ValidationError,
)
from src.sm_common.ids import new_id
from src.sm_common.principal import (
    AdminPrincipal,
    CustomerPrincipal,
    Principal,
    ProviderPrincipal,
)
from src.sm_directory.domain.repository import ServiceRequestLookupProtocol
from src.sm_directory.infrastructure.persistence import ServiceRequestLookupRepository
from src.sm_money.application.schemas import (
    CreateMoneyRequestRequest,
    MoneyRequestCreateResponse,
    MoneyRequestDetail,
    MoneyRequestListResponse,
    MoneyRequestStatsResponse,
    PaymentInitiationResponse,
    cursor_decode,
    cursor_encode,
)
from src.sm_money.application.writer import MoneyRequestWriter
from src.sm_money.domain import lifecycle
from src.sm_money.domain.models import MoneyRequest, MoneyRequestEvent
from src.sm_notification.domain.dispatcher import NotificationDispatcherProtocol
from src.sm_notification.infrastructure.redis_dispatcher import RedisNotificationDispatcher
from src.sm_payment.application.session_service import PaymentSessionService
from src.sm_pricing.application.service import PricingConfigService
from src.sm_pricing.domain.calculator import discount_requested_amount

logger = logging.getLogger(__name__)


class MoneyRequestService:
    def __init__(
        self,
        writer: MoneyRequestWriter | None = None,
        bundles: BundleRepositoryProtocol | None = None,
        service_requests: ServiceRequestLookupProtocol | None = None,
        pricing: PricingConfigService | None = None,
        sessions: PaymentSessionService | None = None,
        notifier: NotificationDispatcherProtocol | None = None,
    ) -> None:
        self._writer = writer or MoneyRequestWriter()
        self._repo = self._writer.repo
        self._bundles: BundleRepositoryProtocol = bundles or BundleRepository()
        self._service_requests: ServiceRequestLookupProtocol = (
            service_requests or ServiceRequestLookupRepository()
        )
        self._pricing = pricing or PricingConfigService()
        self._sessions = sessions or PaymentSessionService(writer=self._writer)
        self._notifier: NotificationDispatcherProtocol = notifier or RedisNotificationDispatcher()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        provider: ProviderPrincipal,
        body: CreateMoneyRequestRequest,
    ) -> MoneyRequestCreateResponse:
        config = await self._pricing.snapshot(db)
        if body.bundle_id is not None:
            bundle = await self._bundle_for_provider(db, body.bundle_id, provider.id)
            customer_ids = _bundle_targets(bundle, body.customer_id)
            discount_bps = bundle.discount_bps
            amount = discount_requested_amount(body.amount, discount_bps)
            rate_bps = config.bundle_commission_bps
        else:
            assert body.service_request_id is not None
            customer_ids = [
                await self._service_request_customer(
                    db, body.service_request_id, provider.id, body.customer_id
                )
            ]
            discount_bps = 0
            amount = body.amount
            rate_bps = config.service_commission_bps

        existing = await self._repo.find_active_customers(
            db, customer_ids, body.bundle_id, body.service_request_id
        )
        if existing:
            raise DuplicateMoneyRequestError(
                f"active request already exists for customer(s) {', '.join(sorted(existing))}"
            )

        now = utc_now()
        due_date = body.due_date or now + timedelta(days=settings.MONEY_REQUEST_DUE_DAYS)
        created: list[MoneyRequest] = []
        events: list[MoneyRequestEvent] = []
        try:
            for customer_id in customer_ids:
                mr, event = lifecycle.new_money_request(
                    money_request_id=new_id("mr"),
                    provider_id=provider.id,
                    customer_id=customer_id,
                    amount=amount,
                    rate_bps=rate_bps,
                    due_date=due_date,
                    now=now,
                    service_request_id=body.service_request_id,
                    bundle_id=body.bundle_id,
                    description=body.description,
                    original_amount=body.amount,
                    discount_bps=discount_bps,
                )
                created.append(await self._repo.insert(db, mr))
                events.append(event)
            await self._repo.append_events(db, events)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        for mr in created:
            logger.info(
                "Money request %s created by %s for %s on %s: %d cents",
                mr.id,
                provider.id,
                mr.customer_id,
                mr.origin_ref,
                mr.total_amount,
            )
            await self._notifier.notify(
                mr.customer_id,
                "Payment requested",
                f"Your provider requested {mr.total_amount} cents",
                f"/money-requests/{mr.id}",
            )
        return MoneyRequestCreateResponse(items=[MoneyRequestDetail.from_domain(m) for m in created])

    async def _bundle_for_provider(
        self, db: AsyncSession, bundle_id: str, provider_id: str
    ) -> Bundle:
        bundle = await self._bundles.get(db, bundle_id)
        if bundle is None:
            raise BundleNotFoundError(bundle_id)
        if bundle.provider_id != provider_id:
            raise AuthorizationError("Only the assigned provider can request payment for this bundle")
        if bundle.status in (BundleStatus.CANCELLED, BundleStatus.EXPIRED):
            raise BundleNotOpenError(bundle_id, bundle.status.value, "request payment")
        return bundle

    async def _service_request_customer(
        self,
        db: AsyncSession,
        service_request_id: str,
        provider_id: str,
        customer_id: str | None,
    ) -> str:
        sr = await self._service_requests.get_service_request(db, service_request_id)
        if sr is None:
            raise ServiceRequestNotFoundError(service_request_id)
        if sr.provider_id != provider_id:
            raise AuthorizationError("Only the assigned provider can request payment")
        if sr.status != ServiceRequestStatus.COMPLETED.value:
            raise ValidationError(
                f"Service request must be completed before requesting payment (is {sr.status})"
            )
        if customer_id is not None and customer_id != sr.customer_id:
            raise ValidationError("customer_id does not match the service request")
        return sr.customer_id

    # ------------------------------------------------------------------
    # Customer commands
    # ------------------------------------------------------------------

    async def _commission_rate(self, db: AsyncSession, money_request_id: str) -> int:
        mr = await self._writer.load(db, money_request_id)
        config = await self._pricing.snapshot(db)
        return config.commission_bps_for(mr.is_bundle)

    async def accept(
        self,
        db: AsyncSession,
        money_request_id: str,
        customer: CustomerPrincipal,
        tip_amount: int,
    ) -> MoneyRequestDetail:
        rate_bps = await self._commission_rate(db, money_request_id)
        result = await self._writer.apply(
            db,
            money_request_id,
            lambda mr, now: lifecycle.accept(mr, customer.id, tip_amount, rate_bps, now),
        )
        mr = result.money_request
        await self._notifier.notify(
            mr.provider_id,
            "Payment request accepted",
            f"Customer accepted your request for {mr.total_amount} cents",
            f"/money-requests/{mr.id}",
        )
        return MoneyRequestDetail.from_domain(mr)

    async def accept_as_is(
        self, db: AsyncSession, money_request_id: str, customer: CustomerPrincipal
    ) -> MoneyRequestDetail:
        rate_bps = await self._commission_rate(db, money_request_id)
        result = await self._writer.apply(
            db,
            money_request_id,
            lambda mr, now: lifecycle.accept_as_is(mr, customer.id, rate_bps, now),
        )
        return MoneyRequestDetail.from_domain(result.money_request)

    async def set_amount_and_pay(
        self,
        db: AsyncSession,
        money_request_id: str,
        customer: CustomerPrincipal,
        amount: int,
        tip_amount: int,
    ) -> PaymentInitiationResponse:
        rate_bps = await self._commission_rate(db, money_request_id)
        await self._writer.apply(
            db,
            money_request_id,
            lambda mr, now: lifecycle.set_amount(mr, customer.id, amount, tip_amount, rate_bps, now),
        )
        return await self._sessions.create_session(db, money_request_id, customer)

    async def initiate_payment(
        self, db: AsyncSession, money_request_id: str, customer: CustomerPrincipal
    ) -> PaymentInitiationResponse:
        return await self._sessions.create_session(db, money_request_id, customer)

    async def cancel(
        self, db: AsyncSession, money_request_id: str, customer: CustomerPrincipal
    ) -> MoneyRequestDetail:
        result = await self._writer.apply(
            db, money_request_id, lambda mr, now: lifecycle.cancel(mr, customer.id, now)
        )
        mr = result.money_request
        await self._notifier.notify(
            mr.provider_id,
            "Payment request cancelled",
            "The customer cancelled your payment request",
            f"/money-requests/{mr.id}",
        )
        return MoneyRequestDetail.from_domain(mr)

    async def dispute(
        self,
        db: AsyncSession,
        money_request_id: str,
        principal: Principal,
        reason: str,
        description: str | None,
    ) -> MoneyRequestDetail:
        result = await self._writer.apply(
            db,
            money_request_id,
            lambda mr, now: lifecycle.dispute(mr, principal, reason, description, now),
        )
        mr = result.money_request
        counterparty = mr.provider_id if isinstance(principal, CustomerPrincipal) else mr.customer_id
        await self._notifier.notify(
            counterparty,
            "Payment disputed",
            f"A dispute was raised: {reason}",
            f"/money-requests/{mr.id}",
        )
        logger.info("Money request %s disputed by %s", mr.id, principal.id)
        return MoneyRequestDetail.from_domain(mr)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(
        self, db: AsyncSession, money_request_id: str, principal: Principal
    ) -> MoneyRequestDetail:
        mr = await self._writer.load(db, money_request_id)
        match principal:
            case CustomerPrincipal(id=customer_id):
                if mr.customer_id != customer_id:
                    raise AuthorizationError("Not the customer of this money request")
            case ProviderPrincipal(id=provider_id):
                if mr.provider_id != provider_id:
                    raise AuthorizationError("Not the provider of this money request")
            case AdminPrincipal():
                pass
            case _:
                assert_never(principal)
        events = await self._repo.list_events(db, money_request_id)
        return MoneyRequestDetail.from_domain(mr, events)

    async def list_for(
        self,
        db: AsyncSession,
        principal: Principal,
        status: str | None,
        origin: str | None,
        cursor: str | None,
        limit: int,
    ) -> MoneyRequestListResponse:
        cursor_ts, cursor_id = cursor_decode(cursor)
        customer_id, provider_id = _owner_filters(principal)
        # Fetch limit+1 to detect has_more without COUNT(*)
        rows = await self._repo.list_for(
            db, customer_id, provider_id, status, origin, cursor_ts, cursor_id, limit + 1
        )
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1]) if has_more and page else None
        return MoneyRequestListResponse(
            items=[MoneyRequestDetail.from_domain(m) for m in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def stats(self, db: AsyncSession, principal: Principal) -> MoneyRequestStatsResponse:
        customer_id, provider_id = _owner_filters(principal)
        return MoneyRequestStatsResponse.from_stats(
            await self._repo.stats(db, customer_id, provider_id)
        )


def _bundle_targets(bundle: Bundle, customer_id: str | None) -> list[str]:
    """Customers a bundle money request is issued to."""
    if customer_id is None:
        if bundle.status != BundleStatus.COMPLETED:
            raise BundleNotOpenError(bundle.id, bundle.status.value, "request payment from all participants")
        targets = [p.customer_id for p in bundle.active_participants()]
        if not targets:
            raise ValidationError("Bundle has no active participants")
        return targets
    if not bundle.has_active_participant(customer_id):
        raise ValidationError(f"Customer {customer_id} is not an active participant of this bundle")
    if bundle.status not in (BundleStatus.IN_PROGRESS, BundleStatus.COMPLETED):
        raise BundleNotOpenError(bundle.id, bundle.status.value, "request payment")
    return [customer_id]


def _owner_filters(principal: Principal) -> tuple[str | None, str | None]:
    match principal:
        case CustomerPrincipal(id=customer_id):
            return customer_id, None
        case ProviderPrincipal(id=provider_id):
            return None, provider_id
        case AdminPrincipal():
            return None, None
        case _:
            assert_never(principal)
