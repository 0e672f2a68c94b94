"""Tests for the high-hold reservation."""

from decimal import Decimal

from lendbot.config import StrategyConfig
from lendbot.models import PERIOD_30_DAYS, PERIOD_120_DAYS
from lendbot.strategy.high_hold import FundPool, HighHoldAllocator


def _config(**overrides) -> StrategyConfig:
    values = {
        "min_loan": Decimal("150"),
        "high_hold_amount": Decimal("500"),
        "high_hold_rate": Decimal("0.001"),
        "high_hold_orders": 1,
    }
    values.update(overrides)
    return StrategyConfig(**values)


class TestHighHoldAllocator:
    def test_single_reservation(self) -> None:
        pool = FundPool(Decimal("2000"))
        offers = HighHoldAllocator().allocate(pool, _config())

        assert len(offers) == 1
        assert offers[0].amount == Decimal("500")
        assert offers[0].daily_rate == Decimal("0.001")
        assert offers[0].period_days == PERIOD_120_DAYS
        assert pool.available == Decimal("1500")

    def test_disabled_when_amount_not_above_min_loan(self) -> None:
        pool = FundPool(Decimal("2000"))
        offers = HighHoldAllocator().allocate(pool, _config(high_hold_amount=Decimal("150")))
        assert offers == []
        assert pool.available == Decimal("2000")

    def test_orders_bounded_by_pool(self) -> None:
        pool = FundPool(Decimal("1200"))
        offers = HighHoldAllocator().allocate(pool, _config(high_hold_orders=3))
        assert len(offers) == 2
        assert pool.available == Decimal("200")

    def test_amount_capped_by_max_loan(self) -> None:
        pool = FundPool(Decimal("2000"))
        offers = HighHoldAllocator().allocate(
            pool, _config(max_loan=Decimal("300"), high_hold_orders=2)
        )
        assert [o.amount for o in offers] == [Decimal("300"), Decimal("300")]
        assert pool.available == Decimal("1400")

    def test_zero_orders_treated_as_one(self) -> None:
        pool = FundPool(Decimal("2000"))
        offers = HighHoldAllocator().allocate(pool, _config(high_hold_orders=0))
        assert len(offers) == 1

    def test_pool_smaller_than_amount(self) -> None:
        pool = FundPool(Decimal("400"))
        assert HighHoldAllocator().allocate(pool, _config()) == []

    def test_explicit_rate_and_period(self) -> None:
        pool = FundPool(Decimal("2000"))
        offers = HighHoldAllocator().allocate(
            pool, _config(), rate=Decimal("0.0015"), period_days=PERIOD_30_DAYS
        )
        assert offers[0].daily_rate == Decimal("0.0015")
        assert offers[0].period_days == PERIOD_30_DAYS
