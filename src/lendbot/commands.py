"""Chat commands, parsed once at the boundary into typed values.

``parse_command`` maps raw text to one of a closed set of frozen
dataclasses. Setting commands are applied to the RuntimeConfig overlay
by ``apply_setting``; strategy toggles resolve to a single StrategyKind
via ``resolve_toggle``.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from lendbot.config import RuntimeConfig, StrategyConfig
from lendbot.exceptions import CommandError
from lendbot.models import SmoothMethod, StrategyKind
from lendbot.rates import decimal_to_percentage, validate_percentage_rate


class Query(str, Enum):
    """Argument-less commands."""

    HELP = "help"
    RESTART = "restart"
    RATE = "rate"
    CHECK = "check"
    STATUS = "status"
    STRATEGY = "strategy"
    LENDING = "lending"


class Parameter(str, Enum):
    """Runtime-adjustable settings; values are the chat command names."""

    THRESHOLD = "threshold"
    RESERVE = "reserve"
    ORDER_LIMIT = "orderlimit"
    MIN_DAILY_RATE = "mindailylendrate"
    MIN_LOAN = "minloan"
    MAX_LOAN = "maxloan"
    HIGH_HOLD_RATE = "highholdrate"
    HIGH_HOLD_AMOUNT = "highholdamount"
    HIGH_HOLD_ORDERS = "highholdorders"
    RATE_RANGE_INCREASE = "raterangeincrease"
    SMOOTH_METHOD = "smoothmethod"


@dataclass(frozen=True)
class QueryCommand:
    query: Query


@dataclass(frozen=True)
class SetParameter:
    parameter: Parameter
    value: Decimal | int | SmoothMethod


@dataclass(frozen=True)
class ToggleStrategy:
    strategy: StrategyKind
    enabled: bool


Command = QueryCommand | SetParameter | ToggleStrategy

_TOGGLES = {
    "smartstrategy": StrategyKind.SMART,
    "klinestrategy": StrategyKind.KLINE,
}

_INTEGER_PARAMETERS = {Parameter.ORDER_LIMIT, Parameter.HIGH_HOLD_ORDERS}

_SMOOTH_METHOD_DESCRIPTIONS = {
    SmoothMethod.MAX: "highest high (aggressive)",
    SmoothMethod.SMA: "simple moving average of closes (conservative)",
    SmoothMethod.EMA: "exponential moving average of highs (responsive)",
    SmoothMethod.HLA: "average of highs and lows (balanced)",
    SmoothMethod.P90: "90th percentile of highs (ignores spikes)",
}

HELP_TEXT = """Available commands:
/rate - current lending rate and alert threshold
/check - check the current rate against the threshold
/threshold [value] - set the rate alert threshold (percent)
/reserve [value] - set the amount kept out of lending
/orderlimit [value] - max offers per cycle (0 = unlimited)
/mindailylendrate [value] - minimum daily lending rate (percent)
/minloan [value] - minimum offer amount
/maxloan [value] - maximum offer amount (0 = unlimited)
/highholdrate [value] - high-hold daily rate (percent)
/highholdamount [value] - high-hold amount (0 disables)
/highholdorders [value] - number of high-hold offers
/raterangeincrease [value] - per-offer rate step (0-100 percent)
/smoothmethod [max|sma|ema|hla|p90] - kline smoothing method
/strategy - active strategy and its settings
/smartstrategy on|off - toggle the smart strategy
/klinestrategy on|off - toggle the kline strategy
/lending - active lending credits
/status - system status
/restart - cancel all offers and run a lending cycle now
/help - this message"""


def describe_smooth_method(method: SmoothMethod) -> str:
    return _SMOOTH_METHOD_DESCRIPTIONS.get(method, "unknown method")


def _parse_number(parameter: Parameter, raw: str) -> Decimal | int:
    try:
        if parameter in _INTEGER_PARAMETERS:
            return int(raw)
        value = Decimal(raw)
    except (ValueError, InvalidOperation) as exc:
        raise CommandError(f"/{parameter.value} needs a number, got {raw!r}") from exc
    if not value.is_finite():
        raise CommandError(f"/{parameter.value} needs a finite number")
    return value


def _parse_value(parameter: Parameter, raw: str) -> Decimal | int | SmoothMethod:
    if parameter == Parameter.SMOOTH_METHOD:
        try:
            return SmoothMethod(raw.lower())
        except ValueError as exc:
            methods = ", ".join(m.value for m in SmoothMethod)
            raise CommandError(f"Unknown smoothing method {raw!r}; use one of: {methods}") from exc

    value = _parse_number(parameter, raw)

    if parameter in (Parameter.RESERVE, Parameter.MAX_LOAN, Parameter.HIGH_HOLD_AMOUNT):
        if value < 0:
            raise CommandError(f"/{parameter.value} must be zero or positive")
    elif parameter == Parameter.ORDER_LIMIT:
        if value < 0:
            raise CommandError("/orderlimit must be a non-negative integer")
    elif parameter == Parameter.HIGH_HOLD_ORDERS:
        if value < 1:
            raise CommandError("/highholdorders must be a positive integer")
    elif value <= 0:
        raise CommandError(f"/{parameter.value} must be positive")

    if parameter in (Parameter.MIN_DAILY_RATE, Parameter.HIGH_HOLD_RATE):
        if not validate_percentage_rate(value):
            raise CommandError("Rate out of range (0-7%)")
    if parameter == Parameter.RATE_RANGE_INCREASE and value > 100:
        raise CommandError("/raterangeincrease cannot exceed 100%")

    return value


def parse_command(text: str) -> Command:
    """Parse chat text into a Command.

    Raises:
        CommandError: Unknown command, wrong arity or invalid argument.
    """
    parts = text.strip().split()
    if not parts or not parts[0].startswith("/"):
        raise CommandError("Invalid command, send /help for the list")

    name = parts[0][1:].lower()
    args = parts[1:]

    if name == "start":
        name = Query.HELP.value

    try:
        query = Query(name)
    except ValueError:
        query = None
    if query is not None:
        if args:
            raise CommandError(f"/{name} takes no arguments")
        return QueryCommand(query)

    if name in _TOGGLES:
        if len(args) != 1 or args[0].lower() not in ("on", "off"):
            raise CommandError(f"Usage: /{name} on|off")
        return ToggleStrategy(_TOGGLES[name], args[0].lower() == "on")

    try:
        parameter = Parameter(name)
    except ValueError as exc:
        raise CommandError("Invalid command, send /help for the list") from exc

    if len(args) != 1:
        raise CommandError(f"Usage: /{parameter.value} [value]")
    return SetParameter(parameter, _parse_value(parameter, args[0]))


def resolve_toggle(current: StrategyKind, command: ToggleStrategy) -> StrategyKind:
    """Strategy in effect after a toggle.

    Enabling selects the strategy, which implicitly disables the others.
    Disabling the active strategy falls back to TRADITIONAL; disabling an
    inactive one changes nothing.
    """
    if command.enabled:
        return command.strategy
    if current == command.strategy:
        return StrategyKind.TRADITIONAL
    return current


def apply_setting(
    command: SetParameter,
    runtime: RuntimeConfig,
    current: StrategyConfig,
    currency: str = "USD",
) -> str:
    """Write one setting to the runtime overlay and return the confirmation.

    ``current`` supplies the in-effect values for cross-field checks
    (min loan against max loan).

    Raises:
        CommandError: The value conflicts with the current configuration.
    """
    value = command.value
    parameter = command.parameter

    if parameter == Parameter.THRESHOLD:
        runtime.notify_rate_threshold = value
        return f"Rate alert threshold set to {value:.4f}%"
    if parameter == Parameter.RESERVE:
        runtime.reserve_amount = value
        return f"Reserve amount set to {value:.2f} {currency}"
    if parameter == Parameter.ORDER_LIMIT:
        runtime.order_limit = value
        return f"Order limit per cycle set to {value}"
    if parameter == Parameter.MIN_DAILY_RATE:
        runtime.min_daily_lend_rate = value
        return f"Minimum daily lending rate set to {value:.4f}%"
    if parameter == Parameter.MIN_LOAN:
        if current.max_loan > 0 and value > current.max_loan:
            raise CommandError(
                f"Minimum loan cannot exceed the maximum loan ({current.max_loan:.2f} {currency})"
            )
        runtime.min_loan = value
        return f"Minimum loan set to {value:.2f} {currency}"
    if parameter == Parameter.MAX_LOAN:
        if value > 0 and value < current.min_loan:
            raise CommandError(
                f"Maximum loan cannot be below the minimum loan ({current.min_loan:.2f} {currency})"
            )
        runtime.max_loan = value
        if value == 0:
            return "Maximum loan set to unlimited"
        return f"Maximum loan set to {value:.2f} {currency}"
    if parameter == Parameter.HIGH_HOLD_RATE:
        runtime.high_hold_rate = value
        return f"High-hold daily rate set to {value:.4f}%"
    if parameter == Parameter.HIGH_HOLD_AMOUNT:
        runtime.high_hold_amount = value
        if value == 0:
            return "High-hold disabled (amount set to 0.00)"
        return f"High-hold amount set to {value:.2f} {currency}"
    if parameter == Parameter.HIGH_HOLD_ORDERS:
        runtime.high_hold_orders = value
        return f"High-hold orders set to {value}"
    if parameter == Parameter.RATE_RANGE_INCREASE:
        fraction = value / Decimal("100")
        runtime.rate_range_increase_percent = fraction
        return f"Rate range increase set to {value:.2f}% ({fraction:.4f})"
    if parameter == Parameter.SMOOTH_METHOD:
        runtime.kline_smooth_method = value
        return (
            f"Kline smoothing method set to {value.value} - "
            f"{describe_smooth_method(value)}"
        )
    raise CommandError(f"Unsupported parameter {parameter.value}")


def format_strategy_status(config: StrategyConfig, kline_time_frame: str, kline_period: int) -> str:
    """Summary of the active strategy and its tuning."""
    lines = [f"Active strategy: {config.strategy.value}"]
    if config.strategy == StrategyKind.KLINE:
        lines.extend(
            [
                f"Time frame: {kline_time_frame}",
                f"Candles: {kline_period}",
                f"Spread: {config.kline_spread_percent:.1f}%",
                f"Smoothing: {config.kline_smooth_method.value} - "
                f"{describe_smooth_method(config.kline_smooth_method)}",
                f"Rate step: {config.rate_range_increase_percent * 100:.1f}%",
            ]
        )
    elif config.strategy == StrategyKind.SMART:
        lines.extend(
            [
                f"Volatility threshold: {config.volatility_threshold:.4f}",
                f"Max rate multiplier: {config.max_rate_multiplier:.1f}x",
                f"Min rate multiplier: {config.min_rate_multiplier:.1f}x",
            ]
        )
    else:
        lines.extend(
            [
                f"High-hold rate: {decimal_to_percentage(config.high_hold_rate):.4f}%",
                f"Spread offers: {config.spread_count}",
                f"Depth range: {config.gap_bottom}-{config.gap_top}",
            ]
        )
    lines.append("")
    lines.append("Switch with /smartstrategy on|off or /klinestrategy on|off")
    return "\n".join(lines)
