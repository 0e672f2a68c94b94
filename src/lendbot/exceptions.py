"""Custom exceptions for the lending bot.

Allocation code never raises on degenerate market data; these cover the
collaborator seams (exchange, notifications, chat commands).
"""


class LendingBotError(Exception):
    """Base exception for all lending bot errors."""


class ExchangeAPIError(LendingBotError):
    """Raised when an exchange request fails or returns malformed data."""


class OfferSubmissionError(LendingBotError):
    """Raised when a funding offer cannot be submitted or cancelled."""


class NotificationError(LendingBotError):
    """Raised when a notification cannot be delivered."""


class CommandError(LendingBotError):
    """Raised when chat command text cannot be parsed or its argument is invalid."""
