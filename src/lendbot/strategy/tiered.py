"""Traditional tiered spread: walk deeper into the book as the ladder climbs.

The remaining pool is split into N offers. Offer i takes its rate from a
book level reached by advancing a depth index toward a target that climbs
linearly from ``gap_bottom`` to ``gap_top``. The depth index is a proxy
for competition, not a sort key: deeper levels need not have higher rates.
"""

from collections.abc import Sequence
from decimal import Decimal

from lendbot.config import StrategyConfig
from lendbot.logging import get_logger
from lendbot.models import FundingBookEntry, LoanOfferDraft
from lendbot.strategy.splits import cap_amount, plan_splits, tier_period

logger = get_logger(__name__)


class TieredSpreadAllocator:
    """Split a pool across a depth-sampled rate ladder."""

    def allocate(
        self,
        pool_amount: Decimal,
        book: Sequence[FundingBookEntry],
        config: StrategyConfig,
    ) -> list[LoanOfferDraft]:
        """Build the spread offers for ``pool_amount``.

        Steps:
        1. Size the splits (cent-rounded, reduced while at or below min_loan).
        2. ``gap_climb = (gap_top - gap_bottom) / count``.
        3. Per offer: advance the depth index while it is below the target
           and not at the last level; rate is that level's rate floored at
           ``min_daily_rate`` (or ``min_daily_rate`` with no book).

        Returns:
            Offers in ladder order. Empty when the pool cannot be split.
        """
        count, amount_each = plan_splits(pool_amount, config.spread_count, config.min_loan)
        if count <= 0:
            return []

        gap_climb = (config.gap_top - config.gap_bottom) / Decimal(count)
        next_lend = config.gap_bottom
        depth_index = 0

        offers: list[LoanOfferDraft] = []
        for _ in range(count):
            while depth_index < next_lend and depth_index < len(book) - 1:
                depth_index += 1

            amount = cap_amount(amount_each, config.max_loan)
            if amount < config.min_loan:
                break

            if book:
                rate = max(book[depth_index].daily_rate, config.min_daily_rate)
            else:
                rate = config.min_daily_rate

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
            next_lend += gap_climb

        logger.debug(
            "tiered_spread_built",
            splits=count,
            amount_each=str(amount_each),
            offers=len(offers),
            book_levels=len(book),
        )
        return offers
