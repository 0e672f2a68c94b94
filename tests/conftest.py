"""Shared test fixtures for the lending bot."""

from collections.abc import Callable
from decimal import Decimal

import pytest

from lendbot.config import AppSettings, BitfinexSettings, LendingSettings
from lendbot.models import Candle, FundingBookEntry


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (paper mode, dummy API keys)."""
    return AppSettings(
        log_level="DEBUG",
        bitfinex=BitfinexSettings(
            api_key="test-api-key",  # type: ignore[arg-type]
            api_secret="test-api-secret",  # type: ignore[arg-type]
        ),
        lending=LendingSettings(mode="paper"),
    )


@pytest.fixture
def make_book() -> Callable[..., list[FundingBookEntry]]:
    """Build a depth-ordered book from daily rates (strings or Decimals)."""

    def _make(*rates, amount: str = "1000") -> list[FundingBookEntry]:
        return [
            FundingBookEntry(
                daily_rate=Decimal(str(rate)), amount=Decimal(amount), period=2
            )
            for rate in rates
        ]

    return _make


@pytest.fixture
def make_candle() -> Callable[..., Candle]:
    """Build a candle; low and close default to the high."""

    def _make(high, low=None, close=None, open_time_ms: int = 0) -> Candle:
        high = Decimal(str(high))
        low = high if low is None else Decimal(str(low))
        close = high if close is None else Decimal(str(close))
        return Candle(
            open_time_ms=open_time_ms,
            open=close,
            close=close,
            high=high,
            low=low,
            volume=Decimal("1000"),
        )

    return _make
