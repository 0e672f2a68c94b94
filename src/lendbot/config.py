"""Configuration system using pydantic-settings with environment variable loading.

Rates in settings are entered the way users think about them: daily
PERCENT values (``0.02`` = 0.02%/day). ``StrategyConfig.from_settings``
converts them to decimal daily rates once per cycle.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lendbot.models import SmoothMethod, StrategyKind
from lendbot.rates import percentage_to_decimal

# Depths the funding book endpoint accepts
BOOK_DEPTHS = (1, 25, 100)


class BitfinexSettings(BaseSettings):
    """Bitfinex API credentials."""

    model_config = SettingsConfigDict(env_prefix="BITFINEX_")

    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")


class LendingSettings(BaseSettings):
    """Core lending parameters."""

    model_config = SettingsConfigDict(env_prefix="LENDING_")

    mode: Literal["paper", "live"] = "paper"
    currency: str = Field(default="USD", min_length=1)
    order_limit: int = Field(default=3, ge=0)  # max offers placed per cycle, 0 = unlimited
    minutes_run: int = Field(default=15, gt=0)  # minutes between lending cycles
    min_loan: Decimal = Field(default=Decimal("150"), gt=0)
    max_loan: Decimal = Field(default=Decimal("0"), ge=0)  # 0 = no cap
    min_daily_lend_rate: Decimal = Field(default=Decimal("0.02"), gt=0)  # percent
    spread_lend: int = Field(default=3, gt=0)
    gap_bottom: Decimal = Field(default=Decimal("10"), ge=0)
    gap_top: Decimal = Field(default=Decimal("5000"), ge=0)
    thirty_day_threshold: Decimal = Field(default=Decimal("0.05"), ge=0)  # percent, 0 disables
    one_twenty_day_threshold: Decimal = Field(default=Decimal("0.1"), ge=0)  # percent, 0 disables
    # percent, added when no offers were pending
    rate_bonus: Decimal = Field(default=Decimal("0"), ge=0)
    reserve_amount: Decimal = Field(default=Decimal("0"), ge=0)
    book_depth: int = 100

    @field_validator("book_depth")
    @classmethod
    def validate_book_depth(cls, v: int) -> int:
        if v not in BOOK_DEPTHS:
            raise ValueError(f"book_depth must be one of {BOOK_DEPTHS}")
        return v

    @model_validator(mode="after")
    def check_bounds(self) -> "LendingSettings":
        if self.max_loan > 0 and self.max_loan < self.min_loan:
            raise ValueError("max_loan must be 0 or at least min_loan")
        if self.gap_top <= self.gap_bottom:
            raise ValueError("gap_top must be greater than gap_bottom")
        return self


class HighHoldSettings(BaseSettings):
    """Fixed-rate, long-period reservation carved out before spreading."""

    model_config = SettingsConfigDict(env_prefix="HIGH_HOLD_")

    amount: Decimal = Field(default=Decimal("0"), ge=0)  # 0 disables
    rate: Decimal = Field(default=Decimal("0.1"), gt=0)  # percent
    orders: int = Field(default=1, ge=1)


class StrategySettings(BaseSettings):
    """Strategy selection and smart-strategy tuning."""

    model_config = SettingsConfigDict(env_prefix="STRATEGY_")

    kind: StrategyKind = StrategyKind.TRADITIONAL
    volatility_threshold: Decimal = Field(default=Decimal("0.002"), gt=0, le=Decimal("0.01"))
    max_rate_multiplier: Decimal = Field(default=Decimal("2.0"), gt=1, le=5)
    min_rate_multiplier: Decimal = Field(default=Decimal("0.8"), ge=Decimal("0.1"), lt=1)
    # fraction: 0.1 = 10% per step
    rate_range_increase_percent: Decimal = Field(default=Decimal("0.1"), gt=0, le=1)


class KlineSettings(BaseSettings):
    """Candle-smoothed strategy parameters."""

    model_config = SettingsConfigDict(env_prefix="KLINE_")

    time_frame: str = "15m"
    period: int = Field(default=24, gt=0)  # candles, 24 x 15m = 6h
    spread_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    smooth_method: SmoothMethod = SmoothMethod.EMA


class NotifySettings(BaseSettings):
    """Alert thresholds and check schedules."""

    model_config = SettingsConfigDict(env_prefix="NOTIFY_")

    rate_threshold: Decimal = Field(default=Decimal("0.05"), ge=0)  # percent
    lending_check_minutes: int = Field(default=10, gt=0)
    # minute of each hour to run the rate alert
    rate_check_minute: int = Field(default=6, ge=0, le=59)


class TelegramSettings(BaseSettings):
    """Telegram chat control and notification delivery."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    enabled: bool = False
    bot_token: SecretStr = SecretStr("")
    auth_token: SecretStr = SecretStr("")
    poll_timeout: int = Field(default=60, gt=0)  # long-poll seconds for getUpdates

    @model_validator(mode="after")
    def check_tokens(self) -> "TelegramSettings":
        if self.enabled and not (
            self.bot_token.get_secret_value() and self.auth_token.get_secret_value()
        ):
            raise ValueError("telegram needs bot_token and auth_token when enabled")
        return self


@dataclass
class RuntimeConfig:
    """Mutable runtime config overlay. Non-None fields override BaseSettings values.

    Written by chat commands without restarting the bot. Changes are
    applied at the start of each lending cycle.
    """

    strategy: StrategyKind | None = None
    notify_rate_threshold: Decimal | None = None
    reserve_amount: Decimal | None = None
    order_limit: int | None = None
    min_daily_lend_rate: Decimal | None = None
    min_loan: Decimal | None = None
    max_loan: Decimal | None = None
    high_hold_rate: Decimal | None = None
    high_hold_amount: Decimal | None = None
    high_hold_orders: int | None = None
    rate_range_increase_percent: Decimal | None = None
    kline_smooth_method: SmoothMethod | None = None


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    bitfinex: BitfinexSettings = BitfinexSettings()
    lending: LendingSettings = LendingSettings()
    high_hold: HighHoldSettings = HighHoldSettings()
    strategy: StrategySettings = StrategySettings()
    kline: KlineSettings = KlineSettings()
    notify: NotifySettings = NotifySettings()
    telegram: TelegramSettings = TelegramSettings()

    @model_validator(mode="after")
    def check_live_credentials(self) -> "AppSettings":
        if self.lending.mode == "live" and not (
            self.bitfinex.api_key.get_secret_value()
            and self.bitfinex.api_secret.get_secret_value()
        ):
            raise ValueError("live mode needs BITFINEX_API_KEY and BITFINEX_API_SECRET")
        return self

    @property
    def funding_symbol(self) -> str:
        """Exchange funding symbol, e.g. ``fUSD``."""
        return f"f{self.lending.currency.upper()}"


def _pick(override, default):
    return default if override is None else override


@dataclass(frozen=True)
class StrategyConfig:
    """Immutable per-cycle view of the allocation parameters.

    All rates are decimal daily rates except ``rate_bonus`` and
    ``kline_spread_percent``, which stay in percent. Not validated here;
    validation happens where the values are entered.
    """

    strategy: StrategyKind = StrategyKind.TRADITIONAL
    min_loan: Decimal = Decimal("150")
    max_loan: Decimal = Decimal("0")
    spread_count: int = 3
    gap_bottom: Decimal = Decimal("10")
    gap_top: Decimal = Decimal("5000")
    min_daily_rate: Decimal = Decimal("0.0002")
    thirty_day_threshold: Decimal = Decimal("0.0005")
    one_twenty_day_threshold: Decimal = Decimal("0.001")
    rate_bonus: Decimal = Decimal("0")
    high_hold_amount: Decimal = Decimal("0")
    high_hold_rate: Decimal = Decimal("0.001")
    high_hold_orders: int = 1
    order_limit: int = 0
    volatility_threshold: Decimal = Decimal("0.002")
    max_rate_multiplier: Decimal = Decimal("2.0")
    min_rate_multiplier: Decimal = Decimal("0.8")
    rate_range_increase_percent: Decimal = Decimal("0.1")
    kline_spread_percent: Decimal = Decimal("0")
    kline_smooth_method: SmoothMethod = SmoothMethod.EMA

    @classmethod
    def from_settings(
        cls, settings: AppSettings, runtime: RuntimeConfig | None = None
    ) -> "StrategyConfig":
        """Resolve settings plus the runtime overlay into one cycle's config."""
        rt = runtime or RuntimeConfig()
        lending = settings.lending
        return cls(
            strategy=_pick(rt.strategy, settings.strategy.kind),
            min_loan=_pick(rt.min_loan, lending.min_loan),
            max_loan=_pick(rt.max_loan, lending.max_loan),
            spread_count=lending.spread_lend,
            gap_bottom=lending.gap_bottom,
            gap_top=lending.gap_top,
            min_daily_rate=percentage_to_decimal(
                _pick(rt.min_daily_lend_rate, lending.min_daily_lend_rate)
            ),
            thirty_day_threshold=percentage_to_decimal(lending.thirty_day_threshold),
            one_twenty_day_threshold=percentage_to_decimal(
                lending.one_twenty_day_threshold
            ),
            rate_bonus=lending.rate_bonus,
            high_hold_amount=_pick(rt.high_hold_amount, settings.high_hold.amount),
            high_hold_rate=percentage_to_decimal(
                _pick(rt.high_hold_rate, settings.high_hold.rate)
            ),
            high_hold_orders=_pick(rt.high_hold_orders, settings.high_hold.orders),
            order_limit=_pick(rt.order_limit, lending.order_limit),
            volatility_threshold=settings.strategy.volatility_threshold,
            max_rate_multiplier=settings.strategy.max_rate_multiplier,
            min_rate_multiplier=settings.strategy.min_rate_multiplier,
            rate_range_increase_percent=_pick(
                rt.rate_range_increase_percent,
                settings.strategy.rate_range_increase_percent,
            ),
            kline_spread_percent=settings.kline.spread_percent,
            kline_smooth_method=_pick(
                rt.kline_smooth_method, settings.kline.smooth_method
            ),
        )
