"""Shared sizing and duration rules used by every spread allocator.

Amounts are rounded DOWN to whole cents so a split never exceeds the pool.
"""

from decimal import ROUND_DOWN, Decimal

from lendbot.models import PERIOD_2_DAYS, PERIOD_30_DAYS, PERIOD_120_DAYS

_CENT = Decimal("0.01")


def round_down_cents(amount: Decimal) -> Decimal:
    """Round a non-negative amount down to two decimal places."""
    return amount.quantize(_CENT, rounding=ROUND_DOWN)


def plan_splits(
    pool: Decimal, spread_count: int, min_loan: Decimal
) -> tuple[int, Decimal]:
    """Choose how many offers to split ``pool`` into and the size of each.

    Starts from ``spread_count`` equal parts and drops one part at a time
    while each part is at or below ``min_loan`` (never below one part).

    Returns:
        ``(count, amount_each)``. ``count`` is 0 when ``spread_count <= 0``.
    """
    if spread_count <= 0:
        return 0, Decimal("0")

    amount_each = round_down_cents(pool / Decimal(spread_count))
    while amount_each <= min_loan and spread_count > 1:
        spread_count -= 1
        amount_each = round_down_cents(pool / Decimal(spread_count))

    return spread_count, amount_each


def cap_amount(amount: Decimal, max_loan: Decimal) -> Decimal:
    """Apply the per-offer ceiling; ``max_loan <= 0`` means uncapped."""
    if max_loan > 0:
        return min(amount, max_loan)
    return amount


def tier_period(
    daily_rate: Decimal,
    thirty_day_threshold: Decimal,
    one_twenty_day_threshold: Decimal,
) -> int:
    """Map a daily rate to an offer duration.

    A rate exactly at a threshold meets it. A threshold of 0 disables its tier.
    """
    if one_twenty_day_threshold > 0 and daily_rate >= one_twenty_day_threshold:
        return PERIOD_120_DAYS
    if thirty_day_threshold > 0 and daily_rate >= thirty_day_threshold:
        return PERIOD_30_DAYS
    return PERIOD_2_DAYS
