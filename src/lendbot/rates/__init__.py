"""Rate unit conversions (percent/decimal, daily/annual)."""

from lendbot.rates.converter import (
    MAX_DAILY_RATE,
    annual_to_daily,
    annual_to_percentage,
    daily_to_annual,
    decimal_to_percentage,
    percentage_daily_to_annual,
    percentage_to_decimal,
    validate_daily_rate,
    validate_percentage_rate,
)

__all__ = [
    "MAX_DAILY_RATE",
    "annual_to_daily",
    "annual_to_percentage",
    "daily_to_annual",
    "decimal_to_percentage",
    "percentage_daily_to_annual",
    "percentage_to_decimal",
    "validate_daily_rate",
    "validate_percentage_rate",
]
