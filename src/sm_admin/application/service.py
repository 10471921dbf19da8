# src/sm_admin/application/service.py
"""Admin dispute resolution.

Resolving to ``paid`` is an administrative override: it does not go through
the reconciliation engine and does not credit the provider balance.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.enums import MoneyRequestStatus
from src.sm_common.principal import AdminPrincipal
from src.sm_money.application.schemas import MoneyRequestDetail
from src.sm_money.application.writer import MoneyRequestWriter
from src.sm_money.domain import lifecycle
from src.sm_notification.domain.dispatcher import NotificationDispatcherProtocol
from src.sm_notification.infrastructure.redis_dispatcher import RedisNotificationDispatcher
from src.sm_pricing.application.service import PricingConfigService

logger = logging.getLogger(__name__)


class DisputeResolverService:
    def __init__(
        self,
        writer: MoneyRequestWriter | None = None,
        pricing: PricingConfigService | None = None,
        notifier: NotificationDispatcherProtocol | None = None,
    ) -> None:
        self._writer = writer or MoneyRequestWriter()
        self._pricing = pricing or PricingConfigService()
        self._notifier: NotificationDispatcherProtocol = notifier or RedisNotificationDispatcher()

    async def resolve_dispute(
        self,
        db: AsyncSession,
        admin: AdminPrincipal,
        money_request_id: str,
        resolution: str,
        target: MoneyRequestStatus,
        new_amount: int | None = None,
    ) -> MoneyRequestDetail:
        current = await self._writer.load(db, money_request_id)
        config = await self._pricing.snapshot(db)
        rate_bps = config.commission_bps_for(current.is_bundle)
        result = await self._writer.apply(
            db,
            money_request_id,
            lambda mr, now: lifecycle.resolve_dispute(
                mr, admin.id, resolution, target, rate_bps, now, new_amount
            ),
        )
        mr = result.money_request
        logger.info(
            "Dispute on money request %s resolved by %s to %s%s",
            mr.id,
            admin.id,
            target.value,
            f" with amount {new_amount}" if new_amount is not None else "",
        )
        for user_id in (mr.customer_id, mr.provider_id):
            await self._notifier.notify(
                user_id,
                "Dispute resolved",
                f"The dispute was resolved: {resolution}",
                f"/money-requests/{mr.id}",
            )
        events = await self._writer.repo.list_events(db, mr.id)
        return MoneyRequestDetail.from_domain(mr, events)
