"""Shared data models for the lending bot.

CRITICAL: All amounts and rates use Decimal. Rates are daily decimal
fractions (0.0003 = 0.03%/day) unless a field name says otherwise.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

#: Offer durations in days. The tier thresholds deciding between them are config.
PERIOD_2_DAYS = 2
PERIOD_30_DAYS = 30
PERIOD_120_DAYS = 120


class StrategyKind(str, Enum):
    """Offer-pricing strategy. Exactly one is active per cycle."""

    TRADITIONAL = "traditional"
    SMART = "smart"
    KLINE = "kline"


class SmoothMethod(str, Enum):
    """Reduction of a candle series to one representative rate."""

    MAX = "max"
    SMA = "sma"
    EMA = "ema"
    HLA = "hla"
    P90 = "p90"


@dataclass(frozen=True)
class FundingBookEntry:
    """One price level of the funding order book (depth-ordered, not rate-sorted)."""

    daily_rate: Decimal
    amount: Decimal
    period: int
    count: int = 1


@dataclass(frozen=True)
class Candle:
    """OHLCV bar of the funding rate over a fixed time window."""

    open_time_ms: int
    open: Decimal
    close: Decimal
    high: Decimal
    low: Decimal
    volume: Decimal


@dataclass(frozen=True)
class FundingSnapshot:
    """Market state for one allocation cycle. Built fresh each cycle, never mutated."""

    available_balance: Decimal
    book_entries: tuple[FundingBookEntry, ...] = ()
    candles: tuple[Candle, ...] = ()


@dataclass(frozen=True)
class LoanOfferDraft:
    """A lending offer to submit: amount, daily rate and duration."""

    amount: Decimal
    daily_rate: Decimal
    period_days: int


@dataclass
class FundingOffer:
    """A pending (cancellable) funding offer already on the exchange."""

    id: int
    symbol: str
    amount: Decimal
    daily_rate: Decimal
    period_days: int


@dataclass
class FundingCredit:
    """An active, matched loan."""

    id: int
    symbol: str
    amount: Decimal
    daily_rate: Decimal
    period_days: int
    opened_at_ms: int
    status: str = "ACTIVE"

    @property
    def expected_earnings(self) -> Decimal:
        """Interest earned over the full period: amount * rate * period."""
        return self.amount * self.daily_rate * Decimal(self.period_days)


@dataclass
class SubmittedOffer:
    """Result of submitting one draft."""

    offer_id: str
    draft: LoanOfferDraft
    is_simulated: bool = False
    symbol: str = field(default="")
