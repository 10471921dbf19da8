"""PricingConfigService — loads the configuration snapshot and edits settings.

snapshot() never raises. The lookup runs inside a SAVEPOINT so a failing
query cannot poison the caller's transaction; any failure logs a warning and
returns PricingConfig.fallback().
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.datetime_utils import as_utc
from src.sm_common.errors import ValidationError
from src.sm_pricing.application.schemas import (
    BundleSettingsRequest,
    CommissionEarningsResponse,
    CommissionSettingsRequest,
    PricingSettingsResponse,
)
from src.sm_pricing.domain.models import PricingConfig
from src.sm_pricing.domain.repository import PricingConfigRepositoryProtocol
from src.sm_pricing.infrastructure.persistence import PricingConfigRepository

logger = logging.getLogger(__name__)


class PricingConfigService:
    def __init__(self, repo: PricingConfigRepositoryProtocol | None = None) -> None:
        self._repo: PricingConfigRepositoryProtocol = repo or PricingConfigRepository()

    async def snapshot(self, db: AsyncSession) -> PricingConfig:
        try:
            async with db.begin_nested():
                config = await self._repo.load(db)
        except Exception:
            logger.warning("Pricing settings lookup failed, using fallback rates", exc_info=True)
            return PricingConfig.fallback()
        if config is None:
            logger.warning("No pricing settings configured, using fallback rates")
            return PricingConfig.fallback()
        return config

    async def get_settings(self, db: AsyncSession) -> PricingSettingsResponse:
        return PricingSettingsResponse.from_config(await self.snapshot(db))

    async def update_commission(
        self, db: AsyncSession, body: CommissionSettingsRequest
    ) -> PricingSettingsResponse:
        try:
            await self._repo.save_commission(
                db, body.service_commission_bps, body.bundle_commission_bps
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Commission settings updated: service=%dbps bundle=%dbps",
            body.service_commission_bps,
            body.bundle_commission_bps,
        )
        return await self.get_settings(db)

    async def update_bundle_settings(
        self, db: AsyncSession, body: BundleSettingsRequest
    ) -> PricingSettingsResponse:
        try:
            await self._repo.save_bundle_settings(
                db, body.bundle_discount_bps, body.bundle_expiry_hours, body.max_bundle_size
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return await self.get_settings(db)

    async def commission_earnings(
        self, db: AsyncSession, start: datetime | None = None, end: datetime | None = None
    ) -> CommissionEarningsResponse:
        """Commission collected on paid money requests in [start, end), with current rates."""
        start, end = as_utc(start), as_utc(end)
        if start is not None and end is not None and start >= end:
            raise ValidationError("start_date must be before end_date")
        earnings = await self._repo.commission_earnings(db, start, end)
        config = await self.snapshot(db)
        return CommissionEarningsResponse.build(earnings, config, start, end)
