"""BundleLifecycleService — bundle commands and queries.

Every command is one read-modify-write of a single bundle:

    lock(bundle_id) → read → lifecycle rule → versioned UPDATE + events → commit

A lost version check (another process wrote first) rolls back, re-reads and
re-applies the rule against fresh state, so capacity and assignment checks
always run against what is actually committed. Collaborator lookups happen
before the lock is taken.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import assert_never

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.sm_bundle.application.schemas import (
    BundleDetail,
    BundleListResponse,
    CreateBundleRequest,
    StatusUpdateRequest,
    cursor_decode,
    cursor_encode,
)
from src.sm_bundle.domain import lifecycle
from src.sm_bundle.domain.models import Bundle, BundleEvent
from src.sm_bundle.domain.repository import BundleRepositoryProtocol
from src.sm_bundle.infrastructure.persistence import BundleRepository
from src.sm_common.aggregate_lock import AggregateLockRegistry, bundle_locks
from src.sm_common.datetime_utils import utc_now
from src.sm_common.enums import ActorRole, BundleStatus
from src.sm_common.errors import (
    AuthorizationError,
    BundleExpiredError,
    BundleNotFoundError,
    ConcurrentModificationError,
    CustomerNotFoundError,
    InvalidServicesError,
    ProviderNotFoundError,
    ValidationError,
)
from src.sm_common.ids import new_id, new_share_token
from src.sm_common.principal import (
    AdminPrincipal,
    CustomerPrincipal,
    Principal,
    ProviderPrincipal,
)
from src.sm_directory.domain.models import Address, CustomerProfile, ProviderProfile
from src.sm_directory.domain.repository import (
    CustomerDirectoryProtocol,
    ProviderDirectoryProtocol,
    ServiceCatalogProtocol,
)
from src.sm_directory.infrastructure.persistence import (
    CustomerDirectoryRepository,
    ProviderDirectoryRepository,
    ServiceCatalogRepository,
)
from src.sm_notification.domain.dispatcher import NotificationDispatcherProtocol
from src.sm_notification.infrastructure.redis_dispatcher import RedisNotificationDispatcher
from src.sm_pricing.application.service import PricingConfigService
from src.sm_pricing.domain.models import ServiceLine

logger = logging.getLogger(__name__)

Mutation = Callable[[Bundle, datetime], list[BundleEvent]]


class BundleLifecycleService:
    def __init__(
        self,
        repo: BundleRepositoryProtocol | None = None,
        catalog: ServiceCatalogProtocol | None = None,
        providers: ProviderDirectoryProtocol | None = None,
        customers: CustomerDirectoryProtocol | None = None,
        pricing: PricingConfigService | None = None,
        notifier: NotificationDispatcherProtocol | None = None,
        locks: AggregateLockRegistry | None = None,
    ) -> None:
        self._repo: BundleRepositoryProtocol = repo or BundleRepository()
        self._catalog: ServiceCatalogProtocol = catalog or ServiceCatalogRepository()
        self._providers: ProviderDirectoryProtocol = providers or ProviderDirectoryRepository()
        self._customers: CustomerDirectoryProtocol = customers or CustomerDirectoryRepository()
        self._pricing = pricing or PricingConfigService()
        self._notifier: NotificationDispatcherProtocol = notifier or RedisNotificationDispatcher()
        self._locks = locks or bundle_locks

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def _load(self, db: AsyncSession, bundle_id: str) -> Bundle:
        bundle = await self._repo.get(db, bundle_id)
        if bundle is None:
            raise BundleNotFoundError(bundle_id)
        return bundle

    async def _apply(
        self,
        db: AsyncSession,
        bundle_id: str,
        mutate: Mutation,
        gate_expiry: bool = True,
    ) -> Bundle:
        async with self._locks.hold(bundle_id):
            for attempt in range(settings.AGGREGATE_WRITE_RETRIES):
                now = utc_now()
                bundle = await self._load(db, bundle_id)
                if gate_expiry and bundle.is_past_deadline(now):
                    await self._persist_expiry(db, bundle, now)
                    raise BundleExpiredError(bundle.id)

                expected_version = bundle.version
                events = mutate(bundle, now)
                try:
                    if not await self._repo.update(db, bundle, expected_version):
                        await db.rollback()
                        logger.info(
                            "Bundle %s version %d changed underneath, retrying (attempt %d)",
                            bundle_id,
                            expected_version,
                            attempt + 1,
                        )
                        continue
                    await self._repo.append_events(db, events)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
                return bundle
        raise ConcurrentModificationError("Bundle", bundle_id)

    async def _persist_expiry(self, db: AsyncSession, bundle: Bundle, now: datetime) -> None:
        """pending → expired is written before the caller sees the expiry error.
        Other non-terminal states keep their status; expiry only blocks them."""
        if bundle.status != BundleStatus.PENDING:
            return
        expected_version = bundle.version
        events = lifecycle.expire(bundle, now)
        try:
            if await self._repo.update(db, bundle, expected_version):
                await self._repo.append_events(db, events)
                await db.commit()
                logger.info("Bundle %s expired", bundle.id)
            else:
                await db.rollback()
        except Exception:
            await db.rollback()
            raise

    async def _provider(self, db: AsyncSession, provider_id: str) -> ProviderProfile:
        provider = await self._providers.get_provider(db, provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        return provider

    async def _customer(self, db: AsyncSession, customer_id: str) -> CustomerProfile:
        customer = await self._customers.get_customer(db, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    async def _notify_participants(
        self, bundle: Bundle, title: str, body: str, exclude: str | None = None
    ) -> None:
        for p in bundle.active_participants():
            if p.customer_id != exclude:
                await self._notifier.notify(p.customer_id, title, body, f"/bundles/{bundle.id}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(
        self, db: AsyncSession, customer: CustomerPrincipal, body: CreateBundleRequest
    ) -> BundleDetail:
        names = [s.name for s in body.services]
        found = {c.name: c for c in await self._catalog.find_services_by_name(db, names)}
        invalid = [n for n in names if n not in found or not found[n].is_active]
        if invalid:
            raise InvalidServicesError(invalid)

        if body.address is not None:
            address = body.address.to_domain()
        else:
            address = (await self._customer(db, customer.id)).address
        zip_code = body.zip_code or address.zip_code
        if not zip_code:
            raise ValidationError("zip_code is required")

        config = await self._pricing.snapshot(db)
        lines = [
            ServiceLine(
                name=s.name,
                hourly_rate=found[s.name].default_hourly_rate or settings.DEFAULT_HOURLY_RATE_CENTS,
                estimated_hours=s.estimated_hours or settings.DEFAULT_ESTIMATED_HOURS,
            )
            for s in body.services
        ]
        bundle, event = lifecycle.create_bundle(
            bundle_id=new_id("bdl"),
            creator_id=customer.id,
            creator_address=address,
            title=body.title,
            description=body.description,
            category=body.category,
            category_type_name=body.category_type_name,
            zip_code=zip_code,
            services=lines,
            config=config,
            share_token=new_share_token(),
            now=utc_now(),
            max_participants=body.max_participants,
            service_date=body.service_date,
            service_time_start=body.service_time_start,
            service_time_end=body.service_time_end,
        )
        try:
            bundle = await self._repo.insert(db, bundle)
            await self._repo.append_events(db, [event])
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Bundle %s created by %s in %s", bundle.id, customer.id, zip_code)
        return BundleDetail.from_domain(bundle, [event])

    async def join(
        self,
        db: AsyncSession,
        bundle_id: str,
        customer: CustomerPrincipal,
        address: Address | None = None,
    ) -> BundleDetail:
        if address is None:
            address = (await self._customer(db, customer.id)).address
        join_address = address
        bundle = await self._apply(
            db,
            bundle_id,
            lambda b, now: lifecycle.join(b, customer.id, join_address, now),
        )
        await self._notifier.notify(
            bundle.creator_id,
            "New bundle participant",
            f"A customer joined your bundle {bundle.title}",
            f"/bundles/{bundle.id}",
        )
        return BundleDetail.from_domain(bundle)

    async def join_via_share_token(
        self,
        db: AsyncSession,
        share_token: str,
        customer: CustomerPrincipal,
        address: Address | None = None,
    ) -> BundleDetail:
        bundle = await self._repo.get_by_share_token(db, share_token)
        if bundle is None:
            raise BundleNotFoundError(f"share:{share_token}")
        return await self.join(db, bundle.id, customer, address)

    async def submit_offer(
        self,
        db: AsyncSession,
        bundle_id: str,
        provider: ProviderPrincipal,
        message: str | None,
    ) -> BundleDetail:
        profile = await self._provider(db, provider.id)
        bundle = await self._apply(
            db, bundle_id, lambda b, now: lifecycle.submit_offer(b, profile, message, now)
        )
        await self._notifier.notify(
            bundle.creator_id,
            "New provider offer",
            f"{profile.business_name or 'A provider'} offered to serve your bundle",
            f"/bundles/{bundle.id}",
        )
        return BundleDetail.from_domain(bundle)

    async def provider_accept(
        self, db: AsyncSession, bundle_id: str, provider: ProviderPrincipal
    ) -> BundleDetail:
        profile = await self._provider(db, provider.id)
        bundle = await self._apply(
            db,
            bundle_id,
            lambda b, now: lifecycle.provider_accept(
                b, profile, now, provider.id, ActorRole.PROVIDER
            ),
        )
        await self._notify_participants(
            bundle, "Bundle accepted", f"Your bundle {bundle.title} was accepted by a provider"
        )
        return BundleDetail.from_domain(bundle)

    async def accept_offer(
        self,
        db: AsyncSession,
        bundle_id: str,
        customer: CustomerPrincipal,
        provider_id: str,
    ) -> BundleDetail:
        profile = await self._provider(db, provider_id)
        bundle = await self._apply(
            db, bundle_id, lambda b, now: lifecycle.accept_offer(b, customer.id, profile, now)
        )
        await self._notifier.notify(
            provider_id,
            "Offer accepted",
            f"Your offer for bundle {bundle.title} was accepted",
            f"/bundles/{bundle.id}",
        )
        return BundleDetail.from_domain(bundle)

    async def decline(
        self,
        db: AsyncSession,
        bundle_id: str,
        provider: ProviderPrincipal,
        message: str | None,
    ) -> BundleDetail:
        bundle = await self._apply(
            db, bundle_id, lambda b, now: lifecycle.decline(b, provider.id, message, now)
        )
        return BundleDetail.from_domain(bundle)

    async def update_status(
        self,
        db: AsyncSession,
        bundle_id: str,
        provider: ProviderPrincipal,
        body: StatusUpdateRequest,
    ) -> BundleDetail:
        target = BundleStatus(body.status)
        bundle = await self._apply(
            db,
            bundle_id,
            lambda b, now: lifecycle.update_status(
                b, provider.id, target, now, body.note, body.cancellation_reason
            ),
            gate_expiry=False,
        )
        await self._notify_participants(
            bundle,
            "Bundle status updated",
            f"Bundle {bundle.title} is now {bundle.status.value}",
        )
        return BundleDetail.from_domain(bundle)

    async def cancel(
        self,
        db: AsyncSession,
        bundle_id: str,
        customer: CustomerPrincipal,
        reason: str | None,
    ) -> BundleDetail:
        bundle = await self._apply(
            db, bundle_id, lambda b, now: lifecycle.cancel_by_creator(b, customer.id, reason, now)
        )
        await self._notify_participants(
            bundle, "Bundle cancelled", f"Bundle {bundle.title} was cancelled", exclude=customer.id
        )
        return BundleDetail.from_domain(bundle)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, db: AsyncSession, bundle_id: str, principal: Principal) -> BundleDetail:
        bundle = await self._load(db, bundle_id)
        match principal:
            case CustomerPrincipal(id=customer_id):
                # prospective joiners may read open bundles; members may read theirs
                if bundle.is_terminal and not bundle.has_active_participant(customer_id):
                    raise AuthorizationError("Not a participant of this bundle")
            case ProviderPrincipal():
                pass
            case AdminPrincipal():
                pass
            case _:
                assert_never(principal)
        _project_expiry(bundle, utc_now())
        events = await self._repo.list_events(db, bundle_id)
        return BundleDetail.from_domain(bundle, events)

    async def get_by_share_token(self, db: AsyncSession, share_token: str) -> BundleDetail:
        bundle = await self._repo.get_by_share_token(db, share_token)
        if bundle is None:
            raise BundleNotFoundError(f"share:{share_token}")
        _project_expiry(bundle, utc_now())
        return BundleDetail.from_domain(bundle)

    async def list_open(
        self,
        db: AsyncSession,
        zip_code: str,
        category: str | None,
        cursor: str | None,
        limit: int,
    ) -> BundleListResponse:
        cursor_ts, cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without COUNT(*)
        bundles = await self._repo.list_open(db, zip_code, category, cursor_ts, cursor_id, limit + 1)
        return _page(bundles, limit)

    async def list_mine(
        self,
        db: AsyncSession,
        principal: Principal,
        status: str | None,
        cursor: str | None,
        limit: int,
    ) -> BundleListResponse:
        cursor_ts, cursor_id = cursor_decode(cursor)
        match principal:
            case CustomerPrincipal(id=customer_id):
                customer_filter, provider_filter = customer_id, None
            case ProviderPrincipal(id=provider_id):
                customer_filter, provider_filter = None, provider_id
            case AdminPrincipal():
                customer_filter, provider_filter = None, None
            case _:
                assert_never(principal)
        bundles = await self._repo.list_for_member(
            db, customer_filter, provider_filter, status, cursor_ts, cursor_id, limit + 1
        )
        return _page(bundles, limit)


def _project_expiry(bundle: Bundle, now: datetime) -> None:
    """Reads show a lapsed pending bundle as expired even before a write persists it."""
    if bundle.status == BundleStatus.PENDING and bundle.is_past_deadline(now):
        bundle.status = BundleStatus.EXPIRED


def _page(bundles: list[Bundle], limit: int) -> BundleListResponse:
    has_more = len(bundles) > limit
    page = bundles[:limit]
    now = utc_now()
    for b in page:
        _project_expiry(b, now)
    items = [BundleDetail.from_domain(b) for b in page]
    next_cursor = cursor_encode(page[-1]) if has_more and page else None
    return BundleListResponse(items=items, next_cursor=next_cursor, has_more=has_more)
