"""Pure rate unit conversions and daily-rate validation.

CRITICAL: All conversions use Decimal. Never use float for rates.
"""

from decimal import Decimal

PERCENT = Decimal("100")
DAYS_PER_YEAR = Decimal("365")

#: Exchange ceiling for a daily lending rate (7%/day).
MAX_DAILY_RATE = Decimal("0.07")


def percentage_to_decimal(percentage: Decimal) -> Decimal:
    """0.05 (%) -> 0.0005."""
    return percentage / PERCENT


def decimal_to_percentage(value: Decimal) -> Decimal:
    """0.0005 -> 0.05 (%)."""
    return value * PERCENT


def daily_to_annual(daily_rate: Decimal) -> Decimal:
    return daily_rate * DAYS_PER_YEAR


def annual_to_daily(annual_rate: Decimal) -> Decimal:
    return annual_rate / DAYS_PER_YEAR


def percentage_daily_to_annual(percentage: Decimal) -> Decimal:
    """Daily percent to annualized decimal: 0.5 (%/day) -> 0.005 -> 1.825."""
    return daily_to_annual(percentage_to_decimal(percentage))


def annual_to_percentage(annual_rate: Decimal) -> Decimal:
    """Annualized decimal back to daily percent."""
    return decimal_to_percentage(annual_to_daily(annual_rate))


def validate_daily_rate(daily_rate: Decimal) -> bool:
    """True if ``0 < daily_rate <= 0.07``."""
    return Decimal("0") < daily_rate <= MAX_DAILY_RATE


def validate_percentage_rate(percentage: Decimal) -> bool:
    """Validate a daily rate given in percent (0-7%)."""
    return validate_daily_rate(percentage_to_decimal(percentage))
