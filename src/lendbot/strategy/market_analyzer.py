"""Rolling market-condition analysis over recent best-rate samples.

MarketConditionAnalyzer owns the only state that outlives a lending cycle:
a bounded FIFO of RateSnapshot samples. One instance is built per process
and injected into the allocation engine. A lock serializes append and read,
since a scheduled cycle can overlap a manually triggered one.

CRITICAL: All computations use Decimal. Never use float.
"""

import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from decimal import Decimal

from lendbot.models import FundingBookEntry
from lendbot.strategy.models import MarketCondition, RateSnapshot, TrendDirection

#: Samples kept (12h of 15-minute cycles).
HISTORY_SIZE = 48

#: Below this many samples the analyzer reports a neutral, stable market.
MIN_SAMPLES = 3

#: Trend looks at the last 6 samples (5 consecutive deltas).
TREND_WINDOW = 6
TREND_MIN_MOVES = 4

#: A delta must exceed 0.01%/day to count as a move.
TREND_DELTA = Decimal("0.0001")

#: Book levels examined for competition spread.
COMPETITION_LEVELS = 10
COMPETITION_SPREAD_WEIGHT = Decimal("0.3")


def classify_trend(rates: Sequence[Decimal]) -> TrendDirection:
    """Classify the trend from the last ``TREND_WINDOW`` rates.

    Counts deltas above ``+TREND_DELTA`` as up and below ``-TREND_DELTA``
    as down. Four or more moves in one direction set the trend.
    Returns STABLE with fewer than ``TREND_WINDOW`` rates.
    """
    if len(rates) < TREND_WINDOW:
        return TrendDirection.STABLE

    recent = list(rates)[-TREND_WINDOW:]
    up = down = 0
    for prev, cur in zip(recent, recent[1:]):
        diff = cur - prev
        if diff > TREND_DELTA:
            up += 1
        elif diff < -TREND_DELTA:
            down += 1

    if up >= TREND_MIN_MOVES:
        return TrendDirection.RISING
    if down >= TREND_MIN_MOVES:
        return TrendDirection.FALLING
    return TrendDirection.STABLE


def population_stdev(values: Sequence[Decimal], mean: Decimal) -> Decimal:
    """Population standard deviation around a precomputed mean."""
    if len(values) < 2:
        return Decimal("0")
    variance = sum((v - mean) ** 2 for v in values) / Decimal(len(values))
    return variance.sqrt()


class MarketConditionAnalyzer:
    """Bounded rate history plus the statistics derived from it.

    Args:
        max_history: Ring capacity; the oldest sample is evicted on overflow.
        clock: Timestamp source for recorded samples.
    """

    def __init__(
        self,
        max_history: int = HISTORY_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._history: deque[RateSnapshot] = deque(maxlen=max_history)
        self._clock = clock
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    @property
    def history(self) -> list[RateSnapshot]:
        """Copy of the recorded samples, oldest first."""
        with self._lock:
            return list(self._history)

    def record_sample(self, daily_rate: Decimal, volume: Decimal) -> None:
        """Append one sample, evicting the oldest when full."""
        with self._lock:
            self._append(daily_rate, volume)

    def analyze(self, book_length: int) -> MarketCondition:
        """Derive the current market condition from the recorded history."""
        with self._lock:
            samples = list(self._history)
        return self._condition(samples, book_length)

    def observe(
        self, daily_rate: Decimal, volume: Decimal, book_length: int
    ) -> MarketCondition:
        """Record a sample and analyze in one critical section."""
        with self._lock:
            self._append(daily_rate, volume)
            samples = list(self._history)
        return self._condition(samples, book_length)

    def _append(self, daily_rate: Decimal, volume: Decimal) -> None:
        self._history.append(
            RateSnapshot(daily_rate=daily_rate, volume=volume, timestamp=self._clock())
        )

    @staticmethod
    def _condition(samples: list[RateSnapshot], book_length: int) -> MarketCondition:
        if len(samples) < MIN_SAMPLES:
            return MarketCondition(
                trend=TrendDirection.STABLE,
                volatility=Decimal("0"),
                liquidity_depth=book_length,
                avg_rate=Decimal("0"),
                rate_ratio=Decimal("1"),
            )

        rates = [s.daily_rate for s in samples]
        avg_rate = sum(rates) / Decimal(len(rates))
        rate_ratio = rates[-1] / avg_rate if avg_rate != 0 else Decimal("1")

        return MarketCondition(
            trend=classify_trend(rates),
            volatility=population_stdev(rates, avg_rate),
            liquidity_depth=book_length,
            avg_rate=avg_rate,
            rate_ratio=rate_ratio,
        )

    @staticmethod
    def competition_spread(book: Sequence[FundingBookEntry]) -> Decimal:
        """Suggest a rate slightly above the best level.

        Averages the positive deltas between consecutive levels among the
        first ``COMPETITION_LEVELS`` and returns
        ``book[0].rate + 0.3 * avg_delta``. Returns 0 when the book has
        fewer than 10 levels or no level steps up.
        """
        if len(book) < COMPETITION_LEVELS:
            return Decimal("0")

        levels = book[:COMPETITION_LEVELS]
        spreads = [
            cur.daily_rate - prev.daily_rate
            for prev, cur in zip(levels, levels[1:])
            if cur.daily_rate - prev.daily_rate > 0
        ]
        if not spreads:
            return Decimal("0")

        avg_spread = sum(spreads) / Decimal(len(spreads))
        return book[0].daily_rate + avg_spread * COMPETITION_SPREAD_WEIGHT

    @staticmethod
    def optimal_depth_range(
        funds_available: Decimal,
        condition: MarketCondition,
        volatility_threshold: Decimal,
    ) -> tuple[Decimal, Decimal]:
        """Adaptive ``(bottom, top)`` depth bounds for sampling the book.

        Larger pools sample a wider range. A rising market narrows the
        range, a falling one widens it, and high volatility raises the top.
        """
        if funds_available > 1000:
            bottom, top = Decimal("5"), Decimal("3000")
        elif funds_available > 500:
            bottom, top = Decimal("8"), Decimal("2000")
        else:
            bottom, top = Decimal("10"), Decimal("1000")

        if condition.trend == TrendDirection.RISING:
            bottom *= Decimal("1.2")
            top *= Decimal("0.8")
        elif condition.trend == TrendDirection.FALLING:
            bottom *= Decimal("0.8")
            top *= Decimal("1.2")

        if condition.volatility > volatility_threshold:
            top *= Decimal("1.3")

        return bottom, top
