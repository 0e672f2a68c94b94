"""Tests for the shared split sizing, cap and duration tier rules."""

from decimal import Decimal

import pytest

from lendbot.models import PERIOD_2_DAYS, PERIOD_30_DAYS, PERIOD_120_DAYS
from lendbot.strategy.splits import cap_amount, plan_splits, round_down_cents, tier_period

THIRTY = Decimal("0.0005")
ONE_TWENTY = Decimal("0.001")


class TestRoundDownCents:
    def test_truncates_toward_zero(self) -> None:
        assert round_down_cents(Decimal("133.339")) == Decimal("133.33")

    def test_exact_cents_unchanged(self) -> None:
        assert round_down_cents(Decimal("200")) == Decimal("200.00")


class TestPlanSplits:
    def test_even_split(self) -> None:
        assert plan_splits(Decimal("1500"), 3, Decimal("150")) == (3, Decimal("500.00"))

    def test_reduces_count_while_parts_too_small(self) -> None:
        """400 / 3 = 133.33 <= 150, so two parts of 200."""
        assert plan_splits(Decimal("400"), 3, Decimal("150")) == (2, Decimal("200.00"))

    def test_part_equal_to_min_loan_is_reduced(self) -> None:
        assert plan_splits(Decimal("300"), 2, Decimal("150")) == (1, Decimal("300.00"))

    def test_never_below_one_part(self) -> None:
        count, amount = plan_splits(Decimal("100"), 3, Decimal("150"))
        assert count == 1
        assert amount == Decimal("100.00")

    @pytest.mark.parametrize("spread_count", [0, -2])
    def test_non_positive_count_yields_nothing(self, spread_count: int) -> None:
        assert plan_splits(Decimal("1000"), spread_count, Decimal("150"))[0] == 0


class TestCapAmount:
    def test_capped(self) -> None:
        assert cap_amount(Decimal("500"), Decimal("300")) == Decimal("300")

    def test_zero_means_uncapped(self) -> None:
        assert cap_amount(Decimal("500"), Decimal("0")) == Decimal("500")


class TestTierPeriod:
    def test_rate_at_thirty_day_threshold_meets_it(self) -> None:
        assert tier_period(Decimal("0.0005"), THIRTY, ONE_TWENTY) == PERIOD_30_DAYS

    def test_rate_at_one_twenty_day_threshold_meets_it(self) -> None:
        assert tier_period(Decimal("0.001"), THIRTY, ONE_TWENTY) == PERIOD_120_DAYS

    def test_below_thresholds_is_two_days(self) -> None:
        assert tier_period(Decimal("0.0004999"), THIRTY, ONE_TWENTY) == PERIOD_2_DAYS

    def test_zero_thresholds_disable_tiers(self) -> None:
        assert tier_period(Decimal("0.01"), Decimal("0"), Decimal("0")) == PERIOD_2_DAYS
        assert tier_period(Decimal("0.01"), THIRTY, Decimal("0")) == PERIOD_30_DAYS
