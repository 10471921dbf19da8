"""Pricing & commission calculator — pure functions over int cents and bps.

Rounding (half away from zero) happens exactly once, on the value each
function returns. Sums are exact integer sums and never rounded.

    original_price  = Σ(hourly_rate × estimated_hours)
    discount_amount = round(original_price × discount_bps / 10000)
    final_price     = original_price − discount_amount
    commission      = round(total × rate_bps / 10000)
    provider_amount = total − commission
"""

from collections.abc import Iterable

from src.sm_common.cents import apply_bps, validate_rate_bps
from src.sm_pricing.domain.models import (
    CommissionResult,
    DiscountResult,
    PricingSnapshot,
    ServiceLine,
)


def compute_bundle_total(services: Iterable[ServiceLine]) -> int:
    return sum(s.line_total for s in services)


def apply_discount(original_price: int, discount_bps: int) -> DiscountResult:
    validate_rate_bps(discount_bps)
    discount_amount = apply_bps(original_price, discount_bps)
    return DiscountResult(
        discount_amount=discount_amount,
        final_price=original_price - discount_amount,
    )


def compute_commission(total_amount: int, rate_bps: int) -> CommissionResult:
    validate_rate_bps(rate_bps)
    commission = apply_bps(total_amount, rate_bps)
    return CommissionResult(
        rate_bps=rate_bps,
        commission_amount=commission,
        provider_amount=total_amount - commission,
    )


def price_bundle(services: Iterable[ServiceLine], discount_bps: int) -> PricingSnapshot:
    original = compute_bundle_total(services)
    discount = apply_discount(original, discount_bps)
    return PricingSnapshot(
        original_price=original,
        discount_amount=discount.discount_amount,
        final_price=discount.final_price,
        discount_bps=discount_bps,
    )


def discount_requested_amount(amount: int, discount_bps: int) -> int:
    """Per-customer amount for a bundle money request: the discount applies once."""
    return apply_discount(amount, discount_bps).final_price
