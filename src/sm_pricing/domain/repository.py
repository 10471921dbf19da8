"""Repository Protocol for pricing configuration and commission reporting."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_pricing.domain.models import CommissionEarnings, PricingConfig


class PricingConfigRepositoryProtocol(Protocol):
    async def load(self, db: AsyncSession) -> PricingConfig | None: ...

    async def save_commission(
        self, db: AsyncSession, service_commission_bps: int, bundle_commission_bps: int
    ) -> None: ...

    async def save_bundle_settings(
        self,
        db: AsyncSession,
        bundle_discount_bps: int,
        bundle_expiry_hours: int,
        max_bundle_size: int,
    ) -> None: ...

    async def commission_earnings(
        self, db: AsyncSession, start: datetime | None, end: datetime | None
    ) -> CommissionEarnings: ...
