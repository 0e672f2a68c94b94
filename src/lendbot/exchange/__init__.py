"""Exchange adapters for the funding market."""

from lendbot.exchange.bitfinex_client import BitfinexClient
from lendbot.exchange.client import MarketDataSource, OfferSubmitter

__all__ = ["BitfinexClient", "MarketDataSource", "OfferSubmitter"]
