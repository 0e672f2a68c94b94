"""Offer allocation strategies and the engine that dispatches between them."""

from lendbot.strategy.engine import AllocationEngine
from lendbot.strategy.high_hold import FundPool, HighHoldAllocator
from lendbot.strategy.kline import KlineAllocator
from lendbot.strategy.market_analyzer import MarketConditionAnalyzer
from lendbot.strategy.models import MarketCondition, RateSnapshot, TrendDirection
from lendbot.strategy.smart import DynamicRateModel
from lendbot.strategy.smoothing import smooth_candles
from lendbot.strategy.tiered import TieredSpreadAllocator

__all__ = [
    "AllocationEngine",
    "DynamicRateModel",
    "FundPool",
    "HighHoldAllocator",
    "KlineAllocator",
    "MarketCondition",
    "MarketConditionAnalyzer",
    "RateSnapshot",
    "TieredSpreadAllocator",
    "TrendDirection",
    "smooth_candles",
]
