"""Candle smoothing: reduce a funding-rate candle series to one rate.

Five interchangeable reductions, selected by SmoothMethod:
- max: highest ``high``
- sma: mean of ``close``
- ema: exponential average of ``high`` with alpha = 2 / (n + 1)
- hla: average of mean ``high`` and mean ``low``
- p90: 90th percentile of ``high``

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Callable, Sequence
from decimal import Decimal

from lendbot.logging import get_logger
from lendbot.models import Candle, SmoothMethod

logger = get_logger(__name__)

#: Precision limit for EMA intermediate results (12 decimal places).
_EMA_QUANTIZE = Decimal("0.000000000001")


def smooth_max(candles: Sequence[Candle]) -> Decimal:
    return max(c.high for c in candles)


def smooth_sma(candles: Sequence[Candle]) -> Decimal:
    return sum(c.close for c in candles) / Decimal(len(candles))


def smooth_ema(candles: Sequence[Candle]) -> Decimal:
    """EMA over candle highs, seeded with the first high.

    The span is the series length, so longer windows smooth harder.
    A single candle returns its high unchanged.
    """
    alpha = Decimal("2") / (Decimal(len(candles)) + Decimal("1"))
    one_minus_alpha = Decimal("1") - alpha

    ema = candles[0].high
    for candle in candles[1:]:
        ema = (alpha * candle.high + one_minus_alpha * ema).quantize(_EMA_QUANTIZE)
    return ema


def smooth_hla(candles: Sequence[Candle]) -> Decimal:
    n = Decimal(len(candles))
    avg_high = sum(c.high for c in candles) / n
    avg_low = sum(c.low for c in candles) / n
    return (avg_high + avg_low) / Decimal("2")


def smooth_p90(candles: Sequence[Candle]) -> Decimal:
    """90th percentile of highs: sorted index ``floor(0.9 * n)``, clamped to n-1."""
    highs = sorted(c.high for c in candles)
    index = min(int(len(highs) * Decimal("0.9")), len(highs) - 1)
    return highs[index]


_SMOOTHERS: dict[SmoothMethod, Callable[[Sequence[Candle]], Decimal]] = {
    SmoothMethod.MAX: smooth_max,
    SmoothMethod.SMA: smooth_sma,
    SmoothMethod.EMA: smooth_ema,
    SmoothMethod.HLA: smooth_hla,
    SmoothMethod.P90: smooth_p90,
}


def smooth_candles(
    candles: Sequence[Candle],
    method: SmoothMethod | str,
    fallback_rate: Decimal,
) -> Decimal:
    """Reduce ``candles`` to one representative daily rate.

    Args:
        candles: Candle series, oldest first.
        method: Smoothing method. Unknown names fall back to EMA.
        fallback_rate: Returned for an empty series (normally the min daily rate).

    Returns:
        The smoothed daily rate.
    """
    if not candles:
        return fallback_rate

    try:
        resolved = SmoothMethod(method)
    except ValueError:
        logger.warning("unknown_smooth_method", method=str(method), fallback="ema")
        resolved = SmoothMethod.EMA

    return _SMOOTHERS[resolved](candles)
