"""Candle-smoothed strategy: one target rate spread across N offers.

The smoothed candle rate (plus ``kline_spread_percent``) becomes the
target; offer i is priced at ``target * (1 + i * rate_range_increase_percent)``.
"""

from decimal import Decimal

from lendbot.config import StrategyConfig
from lendbot.logging import get_logger
from lendbot.models import LoanOfferDraft
from lendbot.strategy.splits import cap_amount, plan_splits, tier_period

logger = get_logger(__name__)


class KlineAllocator:
    """Spread a pool over a ladder anchored at a smoothed candle rate."""

    def target_rate(self, smoothed_rate: Decimal, config: StrategyConfig) -> Decimal:
        """``max(min_daily_rate, smoothed * (1 + spread_percent / 100))``."""
        multiplier = Decimal("1") + config.kline_spread_percent / Decimal("100")
        return max(config.min_daily_rate, smoothed_rate * multiplier)

    def allocate(
        self,
        pool_amount: Decimal,
        target_rate: Decimal,
        config: StrategyConfig,
    ) -> list[LoanOfferDraft]:
        count, amount_each = plan_splits(pool_amount, config.spread_count, config.min_loan)
        if count <= 0:
            return []

        offers: list[LoanOfferDraft] = []
        for i in range(count):
            amount = cap_amount(amount_each, config.max_loan)
            if amount < config.min_loan:
                break

            step = Decimal(i) * config.rate_range_increase_percent
            rate = max(config.min_daily_rate, target_rate * (Decimal("1") + step))
            offers.append(
                LoanOfferDraft(
                    amount=amount,
                    daily_rate=rate,
                    period_days=tier_period(
                        rate,
                        config.thirty_day_threshold,
                        config.one_twenty_day_threshold,
                    ),
                )
            )

        logger.debug(
            "kline_spread_built",
            target_rate=str(target_rate),
            splits=count,
            offers=len(offers),
        )
        return offers
