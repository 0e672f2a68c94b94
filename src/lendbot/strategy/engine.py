"""Allocation engine: turns a funding snapshot into the cycle's offer list.

Per cycle:
1. Return nothing when the balance is below ``min_loan``.
2. Dispatch on the single active StrategyKind:
   - KLINE: smooth candles to a target rate; fixed high-hold, then the
     candle-anchored spread on the remainder.
   - SMART: DynamicRateModel (dynamic high-hold plus progressive spread).
   - TRADITIONAL: fixed high-hold, then the tiered depth spread.
3. Finalize: add the rate bonus when nothing was pending, drop offers
   whose rate fails validation. The orchestrator enforces ``order_limit``
   while submitting, counting only offers the exchange accepted.

The engine is synchronous and performs no I/O. The only state it touches
across cycles is the injected MarketConditionAnalyzer.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence

from lendbot.config import StrategyConfig
from lendbot.logging import get_logger
from lendbot.models import FundingSnapshot, LoanOfferDraft, StrategyKind
from lendbot.rates import percentage_to_decimal, validate_daily_rate
from lendbot.strategy.high_hold import FundPool, HighHoldAllocator
from lendbot.strategy.kline import KlineAllocator
from lendbot.strategy.market_analyzer import MarketConditionAnalyzer
from lendbot.strategy.smart import DynamicRateModel
from lendbot.strategy.smoothing import smooth_candles
from lendbot.strategy.tiered import TieredSpreadAllocator

logger = get_logger(__name__)


class AllocationEngine:
    """Top-level strategy dispatcher and post-processor.

    Args:
        analyzer: Shared rolling market history. A fresh one is created
            when omitted; pass the process-wide instance in production.
    """

    def __init__(self, analyzer: MarketConditionAnalyzer | None = None) -> None:
        self._analyzer = analyzer or MarketConditionAnalyzer()
        self._high_hold = HighHoldAllocator()
        self._tiered = TieredSpreadAllocator()
        self._smart = DynamicRateModel(self._analyzer, self._high_hold)
        self._kline = KlineAllocator()

    @property
    def analyzer(self) -> MarketConditionAnalyzer:
        return self._analyzer

    def allocate(
        self, snapshot: FundingSnapshot, config: StrategyConfig
    ) -> list[LoanOfferDraft]:
        """Build raw drafts for the active strategy (no bonus, no cap)."""
        funds = snapshot.available_balance
        if funds < config.min_loan:
            logger.info(
                "allocation_skipped_insufficient_funds",
                available=str(funds),
                min_loan=str(config.min_loan),
            )
            return []

        if config.strategy == StrategyKind.KLINE:
            return self._allocate_kline(snapshot, config)
        if config.strategy == StrategyKind.SMART:
            return self._smart.allocate(funds, snapshot.book_entries, config)
        return self._allocate_traditional(snapshot, config)

    def finalize(
        self,
        drafts: Sequence[LoanOfferDraft],
        config: StrategyConfig,
        had_pending_offers: bool,
    ) -> list[LoanOfferDraft]:
        """Apply the rate bonus and validation to raw drafts.

        The bonus (``rate_bonus`` percent) is added only when no offers were
        pending at cycle start. Offers failing ``validate_daily_rate`` after
        the bonus are dropped individually.
        """
        bonus = percentage_to_decimal(config.rate_bonus)
        apply_bonus = not had_pending_offers and bonus != 0

        accepted: list[LoanOfferDraft] = []
        for draft in drafts:
            if apply_bonus:
                draft = LoanOfferDraft(
                    amount=draft.amount,
                    daily_rate=draft.daily_rate + bonus,
                    period_days=draft.period_days,
                )

            if not validate_daily_rate(draft.daily_rate):
                logger.warning(
                    "offer_rate_rejected",
                    amount=str(draft.amount),
                    daily_rate=str(draft.daily_rate),
                    period_days=draft.period_days,
                )
                continue

            accepted.append(draft)

        return accepted

    def plan(
        self,
        snapshot: FundingSnapshot,
        config: StrategyConfig,
        had_pending_offers: bool = False,
    ) -> list[LoanOfferDraft]:
        """Allocate and finalize in one call; the list handed to submission."""
        drafts = self.allocate(snapshot, config)
        offers = self.finalize(drafts, config, had_pending_offers)
        logger.info(
            "allocation_planned",
            strategy=config.strategy.value,
            available=str(snapshot.available_balance),
            drafts=len(drafts),
            offers=len(offers),
        )
        return offers

    def _allocate_traditional(
        self, snapshot: FundingSnapshot, config: StrategyConfig
    ) -> list[LoanOfferDraft]:
        pool = FundPool(snapshot.available_balance)
        offers = self._high_hold.allocate(pool, config)
        if pool.available >= config.min_loan:
            offers.extend(
                self._tiered.allocate(pool.available, snapshot.book_entries, config)
            )
        return offers

    def _allocate_kline(
        self, snapshot: FundingSnapshot, config: StrategyConfig
    ) -> list[LoanOfferDraft]:
        smoothed = smooth_candles(
            snapshot.candles, config.kline_smooth_method, config.min_daily_rate
        )
        target = self._kline.target_rate(smoothed, config)
        logger.info(
            "kline_target_rate",
            method=str(config.kline_smooth_method.value),
            candles=len(snapshot.candles),
            smoothed=str(smoothed),
            target=str(target),
        )

        pool = FundPool(snapshot.available_balance)
        offers = self._high_hold.allocate(pool, config)
        if pool.available >= config.min_loan:
            offers.extend(self._kline.allocate(pool.available, target, config))
        return offers
