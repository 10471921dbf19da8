"""Integer arithmetic utilities for cents-based amounts.

All prices, amounts, and balances use int (cents). Rates use int basis points
(100 bps = 1%). No float, no Decimal.
"""

BPS_DENOMINATOR = 10000


def round_half_away(numerator: int, denominator: int) -> int:
    """Integer division rounded half away from zero.

    round_half_away(5, 2) == 3, round_half_away(-5, 2) == -3
    """
    if denominator <= 0:
        raise ValueError(f"denominator must be positive, got {denominator}")
    sign = -1 if numerator < 0 else 1
    quotient, remainder = divmod(abs(numerator), denominator)
    if remainder * 2 >= denominator:
        quotient += 1
    return sign * quotient


def apply_bps(amount: int, rate_bps: int) -> int:
    """amount × rate, rounded once to the nearest cent."""
    if amount == 0 or rate_bps == 0:
        return 0
    return round_half_away(amount * rate_bps, BPS_DENOMINATOR)


def validate_rate_bps(rate_bps: int, max_bps: int = BPS_DENOMINATOR) -> None:
    if not (0 <= rate_bps <= max_bps):
        raise ValueError(f"Rate must be between 0 and {max_bps} bps, got {rate_bps}")


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def bps_to_percent_display(rate_bps: int) -> str:
    """500 -> '5%', 1250 -> '12.5%'."""
    whole, frac = divmod(rate_bps, 100)
    if frac == 0:
        return f"{whole}%"
    return f"{whole}.{frac:02d}".rstrip("0") + "%"
