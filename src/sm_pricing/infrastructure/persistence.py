"""PricingConfigRepository — single-row settings tables.

commission_settings and bundle_settings each hold one row (id = 1). A missing
or inactive row is reported field-by-field as fallback values, never as an error.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_pricing.domain.models import CommissionEarnings, PricingConfig

_GET_COMMISSION_SQL = text("""
    SELECT service_commission_bps, bundle_commission_bps
    FROM commission_settings
    WHERE id = 1 AND is_active = TRUE
""")

_GET_BUNDLE_SETTINGS_SQL = text("""
    SELECT bundle_discount_bps, bundle_expiry_hours, max_bundle_size
    FROM bundle_settings
    WHERE id = 1
""")

_UPSERT_COMMISSION_SQL = text("""
    INSERT INTO commission_settings (id, service_commission_bps, bundle_commission_bps, is_active)
    VALUES (1, :service_commission_bps, :bundle_commission_bps, TRUE)
    ON CONFLICT (id) DO UPDATE
        SET service_commission_bps = EXCLUDED.service_commission_bps,
            bundle_commission_bps  = EXCLUDED.bundle_commission_bps,
            is_active = TRUE
""")

_UPSERT_BUNDLE_SETTINGS_SQL = text("""
    INSERT INTO bundle_settings (id, bundle_discount_bps, bundle_expiry_hours, max_bundle_size)
    VALUES (1, :bundle_discount_bps, :bundle_expiry_hours, :max_bundle_size)
    ON CONFLICT (id) DO UPDATE
        SET bundle_discount_bps = EXCLUDED.bundle_discount_bps,
            bundle_expiry_hours = EXCLUDED.bundle_expiry_hours,
            max_bundle_size     = EXCLUDED.max_bundle_size
""")


# Admin overrides to paid carry no paid_at; they count from their last update.
_COMMISSION_EARNINGS_SQL = text("""
    SELECT (bundle_id IS NOT NULL)   AS is_bundle,
           COALESCE(SUM(commission_amount), 0) AS commission,
           COUNT(*)                  AS requests
    FROM money_requests
    WHERE status = 'paid'
      AND (CAST(:start AS TIMESTAMPTZ) IS NULL
           OR COALESCE(CAST(payment_details->>'paid_at' AS TIMESTAMPTZ), updated_at) >= CAST(:start AS TIMESTAMPTZ))
      AND (CAST(:end AS TIMESTAMPTZ) IS NULL
           OR COALESCE(CAST(payment_details->>'paid_at' AS TIMESTAMPTZ), updated_at) < CAST(:end AS TIMESTAMPTZ))
    GROUP BY (bundle_id IS NOT NULL)
""")


class PricingConfigRepository:
    async def load(self, db: AsyncSession) -> PricingConfig | None:
        commission = (await db.execute(_GET_COMMISSION_SQL)).fetchone()
        bundle = (await db.execute(_GET_BUNDLE_SETTINGS_SQL)).fetchone()
        if commission is None and bundle is None:
            return None
        fallback = PricingConfig.fallback()
        return PricingConfig(
            service_commission_bps=(
                commission.service_commission_bps if commission else fallback.service_commission_bps
            ),
            bundle_commission_bps=(
                commission.bundle_commission_bps if commission else fallback.bundle_commission_bps
            ),
            bundle_discount_bps=(
                bundle.bundle_discount_bps if bundle else fallback.bundle_discount_bps
            ),
            bundle_expiry_hours=(
                bundle.bundle_expiry_hours if bundle else fallback.bundle_expiry_hours
            ),
            max_bundle_size=bundle.max_bundle_size if bundle else fallback.max_bundle_size,
            is_fallback=commission is None,
        )

    async def save_commission(
        self, db: AsyncSession, service_commission_bps: int, bundle_commission_bps: int
    ) -> None:
        await db.execute(
            _UPSERT_COMMISSION_SQL,
            {
                "service_commission_bps": service_commission_bps,
                "bundle_commission_bps": bundle_commission_bps,
            },
        )

    async def save_bundle_settings(
        self,
        db: AsyncSession,
        bundle_discount_bps: int,
        bundle_expiry_hours: int,
        max_bundle_size: int,
    ) -> None:
        await db.execute(
            _UPSERT_BUNDLE_SETTINGS_SQL,
            {
                "bundle_discount_bps": bundle_discount_bps,
                "bundle_expiry_hours": bundle_expiry_hours,
                "max_bundle_size": max_bundle_size,
            },
        )

    async def commission_earnings(
        self, db: AsyncSession, start: datetime | None, end: datetime | None
    ) -> CommissionEarnings:
        rows = (await db.execute(_COMMISSION_EARNINGS_SQL, {"start": start, "end": end})).fetchall()
        by_origin = {row.is_bundle: row for row in rows}
        service = by_origin.get(False)
        bundle = by_origin.get(True)
        return CommissionEarnings(
            service_commission=int(service.commission) if service else 0,
            service_requests=service.requests if service else 0,
            bundle_commission=int(bundle.commission) if bundle else 0,
            bundle_requests=bundle.requests if bundle else 0,
        )
