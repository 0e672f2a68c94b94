"""Tests for MarketConditionAnalyzer rolling history and statistics.

Verifies:
- Neutral condition below 3 samples
- 48-entry ring buffer with FIFO eviction
- Mean, population stdev and rate ratio
- Trend classification over the last 6 samples
- Competition spread and adaptive depth range
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from lendbot.strategy.market_analyzer import (
    HISTORY_SIZE,
    MarketConditionAnalyzer,
    classify_trend,
)
from lendbot.strategy.models import MarketCondition, TrendDirection


def _rates(*values: str) -> list[Decimal]:
    return [Decimal(v) for v in values]


def _record(analyzer: MarketConditionAnalyzer, *rates: str) -> None:
    for rate in rates:
        analyzer.record_sample(Decimal(rate), Decimal("1000"))


def _condition(
    trend: TrendDirection = TrendDirection.STABLE, volatility: str = "0"
) -> MarketCondition:
    return MarketCondition(
        trend=trend,
        volatility=Decimal(volatility),
        liquidity_depth=10,
        avg_rate=Decimal("0.0003"),
        rate_ratio=Decimal("1"),
    )


class TestAnalyze:
    def test_fewer_than_three_samples_is_neutral(self) -> None:
        analyzer = MarketConditionAnalyzer()
        _record(analyzer, "0.0001", "0.0009")

        condition = analyzer.analyze(book_length=42)

        assert condition.trend == TrendDirection.STABLE
        assert condition.volatility == Decimal("0")
        assert condition.avg_rate == Decimal("0")
        assert condition.rate_ratio == Decimal("1")
        assert condition.liquidity_depth == 42

    def test_mean_stdev_and_ratio(self) -> None:
        analyzer = MarketConditionAnalyzer()
        _record(analyzer, "0.0001", "0.0002", "0.0003")

        condition = analyzer.analyze(book_length=5)

        assert condition.avg_rate == Decimal("0.0002")
        assert condition.rate_ratio == Decimal("1.5")
        # population stdev = 0.0001 * sqrt(2/3)
        assert abs(condition.volatility - Decimal("0.0000816496580927726")) < Decimal("1e-15")

    def test_zero_average_gives_unit_ratio(self) -> None:
        analyzer = MarketConditionAnalyzer()
        _record(analyzer, "0", "0", "0")
        assert analyzer.analyze(0).rate_ratio == Decimal("1")

    def test_observe_records_then_analyzes(self) -> None:
        analyzer = MarketConditionAnalyzer()
        _record(analyzer, "0.0002", "0.0002")

        condition = analyzer.observe(Decimal("0.0005"), Decimal("10"), book_length=3)

        assert len(analyzer) == 3
        assert condition.avg_rate == Decimal("0.0003")

    def test_samples_carry_clock_timestamp(self) -> None:
        analyzer = MarketConditionAnalyzer(clock=lambda: 1700000000.0)
        analyzer.record_sample(Decimal("0.0003"), Decimal("5"))
        assert analyzer.history[0].timestamp == 1700000000.0


class TestRingBuffer:
    def test_never_exceeds_capacity(self) -> None:
        analyzer = MarketConditionAnalyzer()
        for i in range(HISTORY_SIZE + 1):
            analyzer.record_sample(Decimal(i), Decimal("1"))

        history = analyzer.history
        assert len(history) == HISTORY_SIZE
        # 49th append evicted the first sample (rate 0)
        assert history[0].daily_rate == Decimal("1")
        assert history[-1].daily_rate == Decimal(HISTORY_SIZE)

    def test_concurrent_appends_stay_bounded(self) -> None:
        analyzer = MarketConditionAnalyzer()
        with ThreadPoolExecutor(max_workers=8) as pool:
            for i in range(500):
                pool.submit(analyzer.record_sample, Decimal(i), Decimal("1"))
        assert len(analyzer) == HISTORY_SIZE


class TestClassifyTrend:
    def test_rising(self) -> None:
        rates = _rates("0.0001", "0.0003", "0.0005", "0.0007", "0.0009", "0.0011")
        assert classify_trend(rates) == TrendDirection.RISING

    def test_falling(self) -> None:
        rates = _rates("0.0011", "0.0009", "0.0007", "0.0005", "0.0003", "0.0001")
        assert classify_trend(rates) == TrendDirection.FALLING

    def test_deltas_at_threshold_do_not_count(self) -> None:
        rates = _rates("0.0001", "0.0002", "0.0003", "0.0004", "0.0005", "0.0006")
        assert classify_trend(rates) == TrendDirection.STABLE

    def test_fewer_than_six_samples_is_stable(self) -> None:
        rates = _rates("0.0001", "0.0003", "0.0005", "0.0007", "0.0009")
        assert classify_trend(rates) == TrendDirection.STABLE

    def test_only_last_six_samples_count(self) -> None:
        rates = _rates(
            "0.0020", "0.0010", "0.0001", "0.0003", "0.0005", "0.0007", "0.0009", "0.0011"
        )
        assert classify_trend(rates) == TrendDirection.RISING

    def test_three_moves_is_stable(self) -> None:
        rates = _rates("0.0001", "0.0003", "0.0005", "0.0007", "0.0007", "0.0007")
        assert classify_trend(rates) == TrendDirection.STABLE


class TestCompetitionSpread:
    def test_fewer_than_ten_levels_returns_zero(self, make_book) -> None:
        book = make_book(*["0.0003"] * 9)
        assert MarketConditionAnalyzer.competition_spread(book) == Decimal("0")

    def test_suggests_rate_above_best(self, make_book) -> None:
        book = make_book(*[Decimal("0.0001") * i for i in range(1, 11)])
        # avg delta 0.0001; 0.0001 + 0.3 * 0.0001
        assert MarketConditionAnalyzer.competition_spread(book) == Decimal("0.00013")

    def test_flat_book_returns_zero(self, make_book) -> None:
        book = make_book(*["0.0003"] * 12)
        assert MarketConditionAnalyzer.competition_spread(book) == Decimal("0")


class TestOptimalDepthRange:
    def test_large_pool_stable(self) -> None:
        bottom, top = MarketConditionAnalyzer.optimal_depth_range(
            Decimal("2000"), _condition(), Decimal("0.002")
        )
        assert (bottom, top) == (Decimal("5"), Decimal("3000"))

    def test_medium_pool_rising_narrows(self) -> None:
        bottom, top = MarketConditionAnalyzer.optimal_depth_range(
            Decimal("800"), _condition(TrendDirection.RISING), Decimal("0.002")
        )
        assert bottom == Decimal("9.6")
        assert top == Decimal("1600")

    def test_small_pool_falling_and_volatile_widens(self) -> None:
        bottom, top = MarketConditionAnalyzer.optimal_depth_range(
            Decimal("100"),
            _condition(TrendDirection.FALLING, volatility="0.01"),
            Decimal("0.002"),
        )
        assert bottom == Decimal("8")
        assert top == Decimal("1560")
