"""Smart (adaptive) strategy: market-aware capital split, rates and periods.

DynamicRateModel feeds each cycle's best book rate into the shared
MarketConditionAnalyzer, then uses the resulting condition to:
1. Split capital between the high-hold leg and the spread leg.
2. Price the high-hold leg dynamically against the best book rate.
3. Price the spread leg along a progressive ladder across the observed
   in-book rate range.
4. Shorten durations in rising or volatile markets.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import Decimal

from lendbot.config import StrategyConfig
from lendbot.logging import get_logger
from lendbot.models import (
    PERIOD_2_DAYS,
    PERIOD_30_DAYS,
    PERIOD_120_DAYS,
    FundingBookEntry,
    LoanOfferDraft,
)
from lendbot.strategy.high_hold import FundPool, HighHoldAllocator
from lendbot.strategy.market_analyzer import MarketConditionAnalyzer
from lendbot.strategy.models import MarketCondition, TrendDirection
from lendbot.strategy.splits import cap_amount, plan_splits, tier_period

logger = get_logger(__name__)

#: Book levels summed into the per-cycle volume sample.
VOLUME_LEVELS = 10

_BASE_HIGH_HOLD_RATIO = Decimal("0.5")
_RISING_HIGH_HOLD_RATIO = Decimal("0.3")
_FALLING_HIGH_HOLD_RATIO = Decimal("0.7")
_RATIO_STEP = Decimal("0.1")
_MIN_HIGH_HOLD_RATIO = Decimal("0.2")
_MAX_HIGH_HOLD_RATIO = Decimal("0.8")

#: Spread count multiplier in volatile markets.
_VOLATILE_SPLIT_FACTOR = Decimal("0.7")

#: Ladders narrower than 1% of their floor are widened to 5%.
_MIN_LADDER_WIDTH = Decimal("0.01")
_ARTIFICIAL_LADDER_WIDTH = Decimal("1.05")

#: Per-offer step of the synthetic ladder used when no level clears min rate.
_SYNTHETIC_STEP = Decimal("0.05")


class DynamicRateModel:
    """Smart-strategy allocator backed by a shared market analyzer.

    Args:
        analyzer: Process-wide rolling history; injected, never global.
        high_hold: Allocator used for the high-hold leg.
    """

    def __init__(
        self,
        analyzer: MarketConditionAnalyzer,
        high_hold: HighHoldAllocator | None = None,
    ) -> None:
        self._analyzer = analyzer
        self._high_hold = high_hold or HighHoldAllocator()

    @property
    def analyzer(self) -> MarketConditionAnalyzer:
        return self._analyzer

    def observe(self, book: Sequence[FundingBookEntry]) -> MarketCondition:
        """Record this cycle's sample (when the book has data) and analyze."""
        if not book:
            return self._analyzer.analyze(0)

        volume = sum(
            (abs(entry.amount) for entry in book[:VOLUME_LEVELS]), Decimal("0")
        )
        return self._analyzer.observe(book[0].daily_rate, volume, len(book))

    def allocation_ratio(
        self, condition: MarketCondition, config: StrategyConfig
    ) -> tuple[Decimal, Decimal]:
        """Split capital between high-hold and spread legs.

        Base 0.5 (0.3 rising, 0.7 falling); +0.1 when volatile; +0.1 when
        the latest rate is over 1.2x the average, -0.1 under 0.8x; clamped
        to [0.2, 0.8].

        Returns:
            ``(high_hold_ratio, spread_ratio)`` summing to 1.
        """
        if condition.trend == TrendDirection.RISING:
            ratio = _RISING_HIGH_HOLD_RATIO
        elif condition.trend == TrendDirection.FALLING:
            ratio = _FALLING_HIGH_HOLD_RATIO
        else:
            ratio = _BASE_HIGH_HOLD_RATIO

        if condition.volatility > config.volatility_threshold:
            ratio += _RATIO_STEP

        if condition.rate_ratio > Decimal("1.2"):
            ratio += _RATIO_STEP
        elif condition.rate_ratio < Decimal("0.8"):
            ratio -= _RATIO_STEP

        ratio = max(_MIN_HIGH_HOLD_RATIO, min(_MAX_HIGH_HOLD_RATIO, ratio))
        return ratio, Decimal("1") - ratio

    def dynamic_high_hold_rate(
        self,
        condition: MarketCondition,
        book: Sequence[FundingBookEntry],
        config: StrategyConfig,
    ) -> Decimal:
        """Price the high-hold leg relative to the best book rate.

        Never below ``base * min_rate_multiplier``. Rising markets track
        85% of the best rate (capped at ``base * max_rate_multiplier``);
        stable markets track 80% only when the best rate exceeds 1.5x base.
        """
        base = config.high_hold_rate
        floor = base * config.min_rate_multiplier
        ceiling = base * config.max_rate_multiplier

        if not book:
            return base

        best = book[0].daily_rate
        if condition.trend == TrendDirection.RISING:
            return max(floor, min(best * Decimal("0.85"), ceiling))
        if condition.trend == TrendDirection.FALLING:
            return max(floor, base)
        if best > base * Decimal("1.5"):
            return max(floor, min(best * Decimal("0.8"), ceiling))
        return max(floor, base)

    def progressive_rate(
        self,
        book: Sequence[FundingBookEntry],
        min_daily_rate: Decimal,
        order_index: int,
        total_orders: int,
    ) -> Decimal:
        """Rate for offer ``order_index`` of an evenly stepped ladder.

        The ladder spans the in-book rates at or above ``min_daily_rate``.
        A range under 1% of its floor is widened to 5% so offers stay
        distinct. With no qualifying level the ladder is synthesized as
        ``min_daily_rate * (1 + 0.05 * order_index)``.
        """
        rates = [e.daily_rate for e in book if e.daily_rate >= min_daily_rate]
        if not rates:
            return min_daily_rate + min_daily_rate * _SYNTHETIC_STEP * Decimal(order_index)

        low = min(rates)
        high = max(rates)
        if total_orders <= 1:
            return low

        if high - low < low * _MIN_LADDER_WIDTH:
            high = low * _ARTIFICIAL_LADDER_WIDTH

        step = (high - low) / Decimal(total_orders - 1)
        return low + step * Decimal(order_index)

    def smart_period(
        self,
        daily_rate: Decimal,
        condition: MarketCondition,
        config: StrategyConfig,
    ) -> int:
        """Duration tier adjusted for the market.

        Rising markets demote one tier (120 -> 30, 30 -> 2) to reprice
        sooner. Falling markets lock a 2-day offer into 30 days when its
        rate beats the average by 10%. Volatility above 1.5x threshold
        caps the tier at 30 days.
        """
        period = tier_period(
            daily_rate, config.thirty_day_threshold, config.one_twenty_day_threshold
        )

        if condition.trend == TrendDirection.RISING:
            if period == PERIOD_120_DAYS:
                period = PERIOD_30_DAYS
            elif period == PERIOD_30_DAYS:
                period = PERIOD_2_DAYS
        elif condition.trend == TrendDirection.FALLING:
            if (
                period == PERIOD_2_DAYS
                and daily_rate > condition.avg_rate * Decimal("1.1")
            ):
                period = PERIOD_30_DAYS

        if (
            condition.volatility > config.volatility_threshold * Decimal("1.5")
            and period > PERIOD_30_DAYS
        ):
            period = PERIOD_30_DAYS

        return period

    def allocate(
        self,
        funds_available: Decimal,
        book: Sequence[FundingBookEntry],
        config: StrategyConfig,
    ) -> list[LoanOfferDraft]:
        """Run one smart cycle: observe, split capital, build both legs."""
        condition = self.observe(book)
        high_ratio, spread_ratio = self.allocation_ratio(condition, config)

        logger.info(
            "smart_market_condition",
            trend=condition.trend.value,
            volatility=str(condition.volatility),
            rate_ratio=str(condition.rate_ratio),
            high_hold_ratio=str(high_ratio),
            spread_ratio=str(spread_ratio),
        )

        pool = FundPool(funds_available)
        offers: list[LoanOfferDraft] = []

        if (
            config.high_hold_amount > config.min_loan
            and funds_available * high_ratio >= config.high_hold_amount
        ):
            rate = self.dynamic_high_hold_rate(condition, book, config)
            offers.extend(
                self._high_hold.allocate(
                    pool,
                    config,
                    rate=rate,
                    period_days=self.smart_period(rate, condition, config),
                )
            )

        if pool.available >= config.min_loan:
            offers.extend(self._spread_offers(pool.available, book, condition, config))

        return offers

    def _spread_offers(
        self,
        pool_amount: Decimal,
        book: Sequence[FundingBookEntry],
        condition: MarketCondition,
        config: StrategyConfig,
    ) -> list[LoanOfferDraft]:
        spread_count = config.spread_count
        if condition.volatility > config.volatility_threshold:
            spread_count = int(Decimal(spread_count) * _VOLATILE_SPLIT_FACTOR)

        count, amount_each = plan_splits(pool_amount, spread_count, config.min_loan)
        if count <= 0:
            return []

        gap_bottom, gap_top = self._analyzer.optimal_depth_range(
            pool_amount, condition, config.volatility_threshold
        )
        logger.debug(
            "smart_spread_diagnostics",
            splits=count,
            depth_bottom=str(gap_bottom),
            depth_top=str(gap_top),
            suggested_rate=str(self._analyzer.competition_spread(book)),
            book_levels=len(book),
        )

        offers: list[LoanOfferDraft] = []
        for i in range(count):
            amount = cap_amount(amount_each, config.max_loan)
            if amount < config.min_loan:
                break

            rate = self.progressive_rate(book, config.min_daily_rate, i, count)
            offers.append(
                LoanOfferDraft(
                    amount=amount,
                    daily_rate=rate,
                    period_days=self.smart_period(rate, condition, config),
                )
            )

        return offers
