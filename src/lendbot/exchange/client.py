"""Abstract funding-market interfaces.

Defines the contract for all exchange implementations. The orchestrator
depends only on these interfaces, keeping Bitfinex-specific details
isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from lendbot.models import (
    Candle,
    FundingBookEntry,
    FundingCredit,
    FundingOffer,
    LoanOfferDraft,
)


class MarketDataSource(ABC):
    """Read side of the funding market: book, candles, wallet, credits."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the connection."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def fetch_funding_book(
        self, symbol: str, depth: int = 100
    ) -> list[FundingBookEntry]:
        """Fetch the funding book, depth-ordered."""
        ...

    @abstractmethod
    async def fetch_funding_candles(
        self, symbol: str, time_frame: str, limit: int
    ) -> list[Candle]:
        """Fetch funding-rate candles, oldest first."""
        ...

    @abstractmethod
    async def fetch_available_balance(self, currency: str) -> Decimal:
        """Return the available amount in the funding wallet."""
        ...

    @abstractmethod
    async def fetch_open_offers(self, symbol: str) -> list[FundingOffer]:
        """Return pending (unmatched) funding offers."""
        ...

    @abstractmethod
    async def fetch_active_credits(self, symbol: str) -> list[FundingCredit]:
        """Return funding credits (matched loans) currently lent out."""
        ...


class OfferSubmitter(ABC):
    """Write side of the funding market: place and cancel offers.

    Both the live client and PaperSubmitter implement this ABC, so the
    lending cycle is identical regardless of mode.
    """

    @abstractmethod
    async def submit_offer(self, symbol: str, draft: LoanOfferDraft) -> str:
        """Submit one LIMIT funding offer and return its id.

        Raises:
            OfferSubmissionError: If the exchange rejects the offer.
        """
        ...

    @abstractmethod
    async def cancel_offer(self, offer_id: int) -> None:
        """Cancel a pending funding offer.

        Raises:
            OfferSubmissionError: If the cancellation fails.
        """
        ...
