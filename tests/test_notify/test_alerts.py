"""Tests for rate and new-credit alerts."""

from decimal import Decimal

from lendbot.models import FundingCredit
from lendbot.notify.alerts import (
    CreditWatcher,
    format_active_credits,
    format_credit_notification,
    format_rate_alert,
    rate_exceeds_threshold,
    recent_high_percentage,
)


def _credit(credit_id: int = 1, opened_at_ms: int = 0, rate: str = "0.0005") -> FundingCredit:
    return FundingCredit(
        id=credit_id,
        symbol="fUSD",
        amount=Decimal("1000"),
        daily_rate=Decimal(rate),
        period_days=2,
        opened_at_ms=opened_at_ms,
    )


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateAlert:
    def test_recent_high_in_percent(self, make_candle) -> None:
        candles = [make_candle(h) for h in ("0.0003", "0.0007", "0.0004")]
        assert recent_high_percentage(candles) == Decimal("0.07")

    def test_no_candles_is_zero(self) -> None:
        assert recent_high_percentage([]) == Decimal("0")

    def test_threshold_is_strict(self) -> None:
        assert rate_exceeds_threshold(Decimal("0.051"), Decimal("0.05"))
        assert not rate_exceeds_threshold(Decimal("0.05"), Decimal("0.05"))

    def test_alert_message(self) -> None:
        text = format_rate_alert(Decimal("0.07"), Decimal("0.05"))
        assert "0.0700%" in text
        assert "0.0500% threshold" in text
        assert "12 x 5m" in text


class TestCreditNotification:
    def test_single_credit_details(self) -> None:
        text = format_credit_notification([_credit()], "USD")

        assert text.startswith("New lending credits")
        assert "Amount: 1000.00 USD" in text
        assert "Daily rate: 0.0500%" in text
        assert "Annual rate: 18.2500%" in text
        assert "Period: 2 days" in text
        assert "Expected earnings: 1.0000 USD" in text
        assert "Total credits: 1" in text

    def test_long_list_truncated_with_totals_over_all(self) -> None:
        credits = [_credit(i) for i in range(7)]
        text = format_credit_notification(credits, "USD")

        assert "Credit #5" in text
        assert "Credit #6" not in text
        assert "... 2 more" in text
        assert "Total credits: 7" in text
        assert "Total amount: 7000.00 USD" in text
        assert "Total expected earnings: 7.0000 USD" in text


class TestActiveCreditsReport:
    def test_empty(self) -> None:
        assert format_active_credits([], "USD") == "No active lending credits"

    def test_totals_and_yield(self) -> None:
        text = format_active_credits([_credit(1), _credit(2, rate="0.001")], "USD")

        assert "Credit #1 (ID: 1)" in text
        assert "Daily earnings: 0.5000 USD" in text
        assert "Total lent: 2000.00 USD" in text
        assert "Total daily earnings: 1.5000 USD" in text
        # 1.5 / 2000 * 365 * 100
        assert "Annualized yield: 27.38%" in text

    def test_report_lists_ten(self) -> None:
        text = format_active_credits([_credit(i) for i in range(12)], "USD")
        assert "Credit #10" in text
        assert "Credit #11" not in text
        assert "... 2 more not shown" in text
        assert "Total credits: 12" in text


class TestCreditWatcher:
    def test_first_check_only_initializes(self) -> None:
        watcher = CreditWatcher(clock=FakeClock(1000.0))

        assert watcher.check([_credit(opened_at_ms=999_000)]) == []
        assert watcher.cursor_ms == 1_000_000

    def test_reports_credits_after_cursor(self) -> None:
        clock = FakeClock(1000.0)
        watcher = CreditWatcher(clock=clock)
        watcher.check([])

        clock.now = 1600.0
        old = _credit(1, opened_at_ms=1_000_000)
        new = _credit(2, opened_at_ms=1_200_000)

        assert watcher.check([old, new]) == [new]
        assert watcher.cursor_ms == 1_600_000

    def test_cursor_advances_without_new_credits(self) -> None:
        clock = FakeClock(1000.0)
        watcher = CreditWatcher(clock=clock)
        watcher.check([])

        clock.now = 1600.0
        assert watcher.check([]) == []
        clock.now = 2200.0
        assert watcher.check([_credit(opened_at_ms=1_300_000)]) == []
        assert watcher.cursor_ms == 2_200_000
