"""Bitfinex funding client via ccxt async.

Wraps ccxt.async_support.bitfinex and calls the v2 funding endpoints
through ccxt's implicit API methods, since ccxt's unified API has no
funding-offer support. Every numeric field is converted through
Decimal(str(value)) to avoid float precision loss.
"""

from decimal import Decimal

import ccxt.async_support as ccxt_async

from lendbot.config import BitfinexSettings
from lendbot.exceptions import ExchangeAPIError, OfferSubmissionError
from lendbot.exchange.client import MarketDataSource, OfferSubmitter
from lendbot.logging import get_logger
from lendbot.models import (
    Candle,
    FundingBookEntry,
    FundingCredit,
    FundingOffer,
    LoanOfferDraft,
)

logger = get_logger(__name__)

# Bitfinex v2 array layouts
_OFFER_ID, _OFFER_SYMBOL, _OFFER_AMOUNT, _OFFER_RATE, _OFFER_PERIOD = 0, 1, 4, 14, 15
_CREDIT_ID, _CREDIT_SYMBOL, _CREDIT_AMOUNT, _CREDIT_STATUS = 0, 1, 5, 7
_CREDIT_RATE, _CREDIT_PERIOD, _CREDIT_OPENED = 11, 12, 13
_WALLET_TYPE, _WALLET_CURRENCY, _WALLET_AVAILABLE = 0, 1, 4

_FUNDING_WALLET = "funding"


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def parse_book_entry(row: list) -> FundingBookEntry:
    """Parse ``[rate, period, count, amount]``."""
    return FundingBookEntry(
        daily_rate=_dec(row[0]),
        period=int(row[1]),
        count=int(row[2]),
        amount=_dec(row[3]),
    )


def parse_candle(row: list) -> Candle:
    """Parse ``[mts, open, close, high, low, volume]``."""
    return Candle(
        open_time_ms=int(row[0]),
        open=_dec(row[1]),
        close=_dec(row[2]),
        high=_dec(row[3]),
        low=_dec(row[4]),
        volume=_dec(row[5]),
    )


def parse_offer(row: list) -> FundingOffer:
    return FundingOffer(
        id=int(row[_OFFER_ID]),
        symbol=str(row[_OFFER_SYMBOL]),
        amount=_dec(row[_OFFER_AMOUNT]),
        daily_rate=_dec(row[_OFFER_RATE]),
        period_days=int(row[_OFFER_PERIOD]),
    )


def parse_credit(row: list) -> FundingCredit:
    return FundingCredit(
        id=int(row[_CREDIT_ID]),
        symbol=str(row[_CREDIT_SYMBOL]),
        amount=abs(_dec(row[_CREDIT_AMOUNT])),
        daily_rate=_dec(row[_CREDIT_RATE]),
        period_days=int(row[_CREDIT_PERIOD]),
        opened_at_ms=int(row[_CREDIT_OPENED]),
        status=str(row[_CREDIT_STATUS]),
    )


class BitfinexClient(MarketDataSource, OfferSubmitter):
    """Concrete Bitfinex funding client using ccxt async."""

    def __init__(self, settings: BitfinexSettings) -> None:
        self._settings = settings
        self._exchange = ccxt_async.bitfinex(
            {
                "apiKey": settings.api_key.get_secret_value(),
                "secret": settings.api_secret.get_secret_value(),
                "enableRateLimit": True,
            }
        )

    @property
    def exchange(self) -> ccxt_async.bitfinex:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Funding endpoints need no market metadata; only logs readiness."""
        logger.info(
            "bitfinex_connected",
            authenticated=bool(self._settings.api_key.get_secret_value()),
        )

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        logger.info("closing_bitfinex_connection")
        await self._exchange.close()
        logger.info("bitfinex_connection_closed")

    async def fetch_funding_book(
        self, symbol: str, depth: int = 100
    ) -> list[FundingBookEntry]:
        """Fetch the P0 funding book as returned, in depth order."""
        try:
            rows = await self._exchange.public_get_book_symbol_precision(
                {"symbol": symbol, "precision": "P0", "len": depth}
            )
        except ccxt_async.BaseError as exc:
            raise ExchangeAPIError(f"funding book fetch failed for {symbol}: {exc}") from exc

        entries = [parse_book_entry(row) for row in rows]
        logger.debug("funding_book_fetched", symbol=symbol, levels=len(entries))
        return entries

    async def fetch_funding_candles(
        self, symbol: str, time_frame: str, limit: int
    ) -> list[Candle]:
        """Fetch aggregated (a30, p2-p30) funding candles, oldest first."""
        try:
            rows = await self._exchange.public_get_candles_candle_section(
                {
                    "candle": f"trade:{time_frame}:{symbol}:a30:p2:p30",
                    "section": "hist",
                    "limit": limit,
                }
            )
        except ccxt_async.BaseError as exc:
            raise ExchangeAPIError(f"candle fetch failed for {symbol}: {exc}") from exc

        candles = sorted((parse_candle(row) for row in rows), key=lambda c: c.open_time_ms)
        logger.debug(
            "funding_candles_fetched",
            symbol=symbol,
            time_frame=time_frame,
            count=len(candles),
        )
        return candles

    async def fetch_available_balance(self, currency: str) -> Decimal:
        try:
            rows = await self._exchange.private_post_auth_r_wallets()
        except ccxt_async.BaseError as exc:
            raise ExchangeAPIError(f"wallet fetch failed: {exc}") from exc

        for row in rows:
            if (
                row[_WALLET_TYPE] == _FUNDING_WALLET
                and str(row[_WALLET_CURRENCY]).upper() == currency.upper()
            ):
                return _dec(row[_WALLET_AVAILABLE])
        return Decimal("0")

    async def fetch_open_offers(self, symbol: str) -> list[FundingOffer]:
        try:
            rows = await self._exchange.private_post_auth_r_funding_offers_symbol(
                {"symbol": symbol}
            )
        except ccxt_async.BaseError as exc:
            raise ExchangeAPIError(f"open offers fetch failed for {symbol}: {exc}") from exc
        return [parse_offer(row) for row in rows]

    async def fetch_active_credits(self, symbol: str) -> list[FundingCredit]:
        try:
            rows = await self._exchange.private_post_auth_r_funding_credits_symbol(
                {"symbol": symbol}
            )
        except ccxt_async.BaseError as exc:
            raise ExchangeAPIError(f"credits fetch failed for {symbol}: {exc}") from exc
        return [parse_credit(row) for row in rows]

    async def submit_offer(self, symbol: str, draft: LoanOfferDraft) -> str:
        """Submit a LIMIT funding offer; returns the new offer id."""
        logger.info(
            "submitting_funding_offer",
            symbol=symbol,
            amount=str(draft.amount),
            daily_rate=str(draft.daily_rate),
            period_days=draft.period_days,
        )
        try:
            result = await self._exchange.private_post_auth_w_funding_offer_submit(
                {
                    "type": "LIMIT",
                    "symbol": symbol,
                    "amount": str(draft.amount),
                    "rate": str(draft.daily_rate),
                    "period": draft.period_days,
                    "flags": 0,
                }
            )
        except ccxt_async.BaseError as exc:
            raise OfferSubmissionError(f"offer submit failed: {exc}") from exc

        # Notification envelope: [mts, type, msg_id, null, offer_array, code, status, text]
        offer = result[4] if len(result) > 4 and isinstance(result[4], list) else []
        return str(offer[_OFFER_ID]) if offer else ""

    async def cancel_offer(self, offer_id: int) -> None:
        logger.info("cancelling_funding_offer", offer_id=offer_id)
        try:
            await self._exchange.private_post_auth_w_funding_offer_cancel({"id": offer_id})
        except ccxt_async.BaseError as exc:
            raise OfferSubmissionError(f"offer cancel failed for {offer_id}: {exc}") from exc
