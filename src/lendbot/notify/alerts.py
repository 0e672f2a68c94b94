"""Rate-threshold and new-credit alerts.

Both alerts compute plain-text messages from data the orchestrator
fetches; neither performs I/O.

CRITICAL: All computations use Decimal. Never use float.
"""

import time
from collections.abc import Callable, Sequence
from datetime import datetime
from decimal import Decimal

from lendbot.logging import get_logger
from lendbot.models import Candle, FundingCredit
from lendbot.rates import daily_to_annual, decimal_to_percentage

logger = get_logger(__name__)

#: The hourly rate check inspects the last hour of 5-minute candles.
RATE_ALERT_TIME_FRAME = "5m"
RATE_ALERT_CANDLES = 12

#: Credits listed individually per new-credit message.
MAX_LISTED_CREDITS = 5

#: Credits listed individually by the on-demand lending report.
MAX_REPORTED_CREDITS = 10

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def recent_high_percentage(candles: Sequence[Candle]) -> Decimal:
    """Highest candle ``high`` as a daily percentage (0 for no candles)."""
    if not candles:
        return Decimal("0")
    return decimal_to_percentage(max(c.high for c in candles))


def rate_exceeds_threshold(rate_percentage: Decimal, threshold: Decimal) -> bool:
    return rate_percentage > threshold


def format_rate_alert(rate_percentage: Decimal, threshold: Decimal) -> str:
    return (
        f"Rate alert: highest rate in the last hour {rate_percentage:.4f}% "
        f"is above the {threshold:.4f}% threshold\n\n"
        f"Source: last {RATE_ALERT_CANDLES} x {RATE_ALERT_TIME_FRAME} candle highs"
    )


def _format_opened(opened_at_ms: int) -> str:
    return datetime.fromtimestamp(opened_at_ms / 1000).strftime(_TIME_FORMAT)


def format_credit_notification(
    credits: Sequence[FundingCredit], currency: str
) -> str:
    """Message announcing newly matched credits.

    Lists at most ``MAX_LISTED_CREDITS`` credits, then a ``... N more``
    line, then totals over all of them.
    """
    lines = ["New lending credits", ""]
    for i, credit in enumerate(credits):
        if i >= MAX_LISTED_CREDITS:
            lines.append(f"... {len(credits) - MAX_LISTED_CREDITS} more")
            lines.append("")
            break
        daily_pct = decimal_to_percentage(credit.daily_rate)
        lines.extend(
            [
                f"Credit #{i + 1}",
                f"Amount: {credit.amount:.2f} {currency}",
                f"Daily rate: {daily_pct:.4f}%",
                f"Annual rate: {decimal_to_percentage(daily_to_annual(credit.daily_rate)):.4f}%",
                f"Period: {credit.period_days} days",
                f"Expected earnings: {credit.expected_earnings:.4f} {currency}",
                f"Opened: {_format_opened(credit.opened_at_ms)}",
                "",
            ]
        )

    total_amount = sum((c.amount for c in credits), Decimal("0"))
    total_earnings = sum((c.expected_earnings for c in credits), Decimal("0"))
    lines.extend(
        [
            f"Total credits: {len(credits)}",
            f"Total amount: {total_amount:.2f} {currency}",
            f"Total expected earnings: {total_earnings:.4f} {currency}",
        ]
    )
    return "\n".join(lines)


def format_active_credits(credits: Sequence[FundingCredit], currency: str) -> str:
    """On-demand report of every active credit, with daily yield totals."""
    if not credits:
        return "No active lending credits"

    lines = ["Active lending credits", ""]
    for i, credit in enumerate(credits[:MAX_REPORTED_CREDITS]):
        daily_earnings = credit.amount * credit.daily_rate
        lines.extend(
            [
                f"Credit #{i + 1} (ID: {credit.id})",
                f"Amount: {credit.amount:.2f} {currency}",
                f"Daily rate: {decimal_to_percentage(credit.daily_rate):.4f}%",
                f"Daily earnings: {daily_earnings:.4f} {currency}",
                f"Period: {credit.period_days} days",
                f"Period earnings: {credit.expected_earnings:.4f} {currency}",
                f"Opened: {_format_opened(credit.opened_at_ms)}",
                f"Status: {credit.status}",
                "",
            ]
        )
    if len(credits) > MAX_REPORTED_CREDITS:
        lines.append(f"... {len(credits) - MAX_REPORTED_CREDITS} more not shown")
        lines.append("")

    total_amount = sum((c.amount for c in credits), Decimal("0"))
    total_daily = sum((c.amount * c.daily_rate for c in credits), Decimal("0"))
    lines.append(f"Total credits: {len(credits)}")
    lines.append(f"Total lent: {total_amount:.2f} {currency}")
    lines.append(f"Total daily earnings: {total_daily:.4f} {currency}")
    if total_amount > 0:
        annual = total_daily / total_amount * Decimal("365") * Decimal("100")
        lines.append(f"Annualized yield: {annual:.2f}%")
    return "\n".join(lines)


class CreditWatcher:
    """Detects credits opened since the previous check.

    The cursor is a millisecond timestamp. The first check only sets it;
    every later check reports credits opened after it, then moves it to now.

    Args:
        clock: Seconds-since-epoch source.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._cursor_ms: int | None = None

    @property
    def cursor_ms(self) -> int | None:
        return self._cursor_ms

    def check(self, credits: Sequence[FundingCredit]) -> list[FundingCredit]:
        """Return credits opened after the cursor and advance the cursor."""
        now_ms = int(self._clock() * 1000)

        if self._cursor_ms is None:
            self._cursor_ms = now_ms
            logger.info("credit_watcher_initialized", existing_credits=len(credits))
            return []

        new_credits = [c for c in credits if c.opened_at_ms > self._cursor_ms]
        self._cursor_ms = now_ms
        return new_credits
