"""Domain models for sm_pricing — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass

from config.settings import settings


@dataclass(frozen=True)
class ServiceLine:
    name: str
    hourly_rate: int        # cents
    estimated_hours: int

    @property
    def line_total(self) -> int:
        return self.hourly_rate * self.estimated_hours


@dataclass(frozen=True)
class DiscountResult:
    discount_amount: int    # cents
    final_price: int        # cents


@dataclass(frozen=True)
class PricingSnapshot:
    original_price: int     # cents
    discount_amount: int    # cents
    final_price: int        # cents
    discount_bps: int


@dataclass(frozen=True)
class CommissionResult:
    rate_bps: int
    commission_amount: int  # cents
    provider_amount: int    # cents, always total - commission


@dataclass(frozen=True)
class PricingConfig:
    """Immutable configuration snapshot handed to the calculator and services.

    Loaded once per operation; a missing or unreadable settings row yields
    PricingConfig.fallback().
    """

    service_commission_bps: int
    bundle_commission_bps: int
    bundle_discount_bps: int
    bundle_expiry_hours: int
    max_bundle_size: int
    is_fallback: bool = False

    @classmethod
    def fallback(cls) -> "PricingConfig":
        return cls(
            service_commission_bps=settings.DEFAULT_COMMISSION_RATE_BPS,
            bundle_commission_bps=settings.DEFAULT_COMMISSION_RATE_BPS,
            bundle_discount_bps=settings.DEFAULT_BUNDLE_DISCOUNT_BPS,
            bundle_expiry_hours=settings.DEFAULT_BUNDLE_EXPIRY_HOURS,
            max_bundle_size=settings.DEFAULT_MAX_BUNDLE_SIZE,
            is_fallback=True,
        )

    def commission_bps_for(self, is_bundle: bool) -> int:
        return self.bundle_commission_bps if is_bundle else self.service_commission_bps


@dataclass(frozen=True)
class CommissionEarnings:
    """Platform commission collected on paid money requests, split by origin."""

    service_commission: int     # cents
    service_requests: int
    bundle_commission: int      # cents
    bundle_requests: int

    @property
    def total_commission(self) -> int:
        return self.service_commission + self.bundle_commission
