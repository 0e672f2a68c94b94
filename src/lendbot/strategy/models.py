"""Market-analysis data models for the smart strategy.

CRITICAL: All rate and volume values use Decimal.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class TrendDirection(str, Enum):
    """Funding rate trend classification from recent samples."""

    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass(frozen=True)
class RateSnapshot:
    """Best book rate and near-book volume observed in one cycle."""

    daily_rate: Decimal
    volume: Decimal
    timestamp: float


@dataclass(frozen=True)
class MarketCondition:
    """Derived market state. Recomputed every cycle, never persisted."""

    trend: TrendDirection
    volatility: Decimal
    liquidity_depth: int
    avg_rate: Decimal
    rate_ratio: Decimal
