"""Pydantic schemas for pricing settings and commission reporting (admin)."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.sm_common.cents import bps_to_percent_display, cents_to_display
from src.sm_pricing.domain.models import CommissionEarnings, PricingConfig


class CommissionSettingsRequest(BaseModel):
    service_commission_bps: int = Field(..., ge=0, le=5000)
    bundle_commission_bps: int = Field(..., ge=0, le=5000)


class BundleSettingsRequest(BaseModel):
    bundle_discount_bps: int = Field(..., ge=0, le=5000)
    bundle_expiry_hours: int = Field(..., ge=1, le=24 * 30)
    max_bundle_size: int = Field(..., ge=2, le=10)


class PricingSettingsResponse(BaseModel):
    service_commission_bps: int
    service_commission_display: str
    bundle_commission_bps: int
    bundle_commission_display: str
    bundle_discount_bps: int
    bundle_discount_display: str
    bundle_expiry_hours: int
    max_bundle_size: int
    is_fallback: bool

    @classmethod
    def from_config(cls, config: PricingConfig) -> "PricingSettingsResponse":
        return cls(
            service_commission_bps=config.service_commission_bps,
            service_commission_display=bps_to_percent_display(config.service_commission_bps),
            bundle_commission_bps=config.bundle_commission_bps,
            bundle_commission_display=bps_to_percent_display(config.bundle_commission_bps),
            bundle_discount_bps=config.bundle_discount_bps,
            bundle_discount_display=bps_to_percent_display(config.bundle_discount_bps),
            bundle_expiry_hours=config.bundle_expiry_hours,
            max_bundle_size=config.max_bundle_size,
            is_fallback=config.is_fallback,
        )


class OriginEarnings(BaseModel):
    commission_cents: int
    commission_display: str
    paid_requests: int
    current_rate_bps: int
    current_rate_display: str


class CommissionEarningsResponse(BaseModel):
    start_date: datetime | None
    end_date: datetime | None
    service_requests: OriginEarnings
    bundles: OriginEarnings
    total_commission_cents: int
    total_commission_display: str

    @classmethod
    def build(
        cls,
        earnings: CommissionEarnings,
        config: PricingConfig,
        start: datetime | None,
        end: datetime | None,
    ) -> "CommissionEarningsResponse":
        return cls(
            start_date=start,
            end_date=end,
            service_requests=OriginEarnings(
                commission_cents=earnings.service_commission,
                commission_display=cents_to_display(earnings.service_commission),
                paid_requests=earnings.service_requests,
                current_rate_bps=config.service_commission_bps,
                current_rate_display=bps_to_percent_display(config.service_commission_bps),
            ),
            bundles=OriginEarnings(
                commission_cents=earnings.bundle_commission,
                commission_display=cents_to_display(earnings.bundle_commission),
                paid_requests=earnings.bundle_requests,
                current_rate_bps=config.bundle_commission_bps,
                current_rate_display=bps_to_percent_display(config.bundle_commission_bps),
            ),
            total_commission_cents=earnings.total_commission,
            total_commission_display=cents_to_display(earnings.total_commission),
        )
