"""High-hold reservation: fixed-size, long-period offers carved out first.

HighHoldAllocator draws whole ``high_hold_amount`` units from a FundPool
before any spread allocator runs on the remainder.
"""

from dataclasses import dataclass
from decimal import Decimal

from lendbot.config import StrategyConfig
from lendbot.logging import get_logger
from lendbot.models import PERIOD_120_DAYS, LoanOfferDraft
from lendbot.strategy.splits import cap_amount

logger = get_logger(__name__)


@dataclass
class FundPool:
    """Funds still unallocated in the current cycle."""

    available: Decimal

    def take(self, amount: Decimal) -> None:
        self.available -= amount


class HighHoldAllocator:
    """Emit up to ``high_hold_orders`` offers of the (capped) high-hold amount."""

    def allocate(
        self,
        pool: FundPool,
        config: StrategyConfig,
        rate: Decimal | None = None,
        period_days: int = PERIOD_120_DAYS,
    ) -> list[LoanOfferDraft]:
        """Reserve high-hold offers from ``pool``, decrementing it per offer.

        Only runs when ``high_hold_amount > min_loan``. Each offer is
        ``min(high_hold_amount, max_loan)``; the number of offers is bounded
        by both ``high_hold_orders`` and how many whole units the pool holds.

        Args:
            pool: Mutable pool; reduced by each emitted offer.
            config: Cycle configuration.
            rate: Offer rate. Defaults to the configured fixed high-hold rate.
            period_days: Offer duration. Defaults to 120 days.

        Returns:
            The reserved offers (possibly empty).
        """
        if config.high_hold_amount <= config.min_loan:
            return []

        amount = cap_amount(config.high_hold_amount, config.max_loan)
        if amount <= 0:
            return []

        rate = config.high_hold_rate if rate is None else rate
        wanted = max(config.high_hold_orders, 1)
        possible = int(pool.available // amount)
        actual = min(wanted, possible)

        offers: list[LoanOfferDraft] = []
        for _ in range(actual):
            if pool.available < amount:
                break
            offers.append(
                LoanOfferDraft(amount=amount, daily_rate=rate, period_days=period_days)
            )
            pool.take(amount)

        if offers:
            logger.debug(
                "high_hold_reserved",
                orders=len(offers),
                amount_each=str(amount),
                rate=str(rate),
                period_days=period_days,
                remaining=str(pool.available),
            )
        return offers
