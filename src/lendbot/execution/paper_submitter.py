"""Paper-mode offer submitter.

Implements the same OfferSubmitter ABC as the live Bitfinex client, so the
lending cycle is identical in both modes. Offers are logged and recorded,
never sent; each gets a simulated id.
"""

from uuid import uuid4

from lendbot.exchange.client import OfferSubmitter
from lendbot.logging import get_logger
from lendbot.models import LoanOfferDraft, SubmittedOffer

logger = get_logger(__name__)


class PaperSubmitter(OfferSubmitter):
    """Simulated submitter for paper mode.

    Keeps every simulated offer in ``submitted`` so callers can inspect
    what would have been placed.
    """

    def __init__(self) -> None:
        self.submitted: list[SubmittedOffer] = []

    async def submit_offer(self, symbol: str, draft: LoanOfferDraft) -> str:
        offer_id = f"paper_{uuid4().hex[:12]}"
        self.submitted.append(
            SubmittedOffer(
                offer_id=offer_id, draft=draft, is_simulated=True, symbol=symbol
            )
        )
        logger.info(
            "paper_offer_placed",
            offer_id=offer_id,
            symbol=symbol,
            amount=str(draft.amount),
            daily_rate=str(draft.daily_rate),
            period_days=draft.period_days,
        )
        return offer_id

    async def cancel_offer(self, offer_id: int) -> None:
        logger.info("paper_offer_cancel_skipped", offer_id=offer_id)
