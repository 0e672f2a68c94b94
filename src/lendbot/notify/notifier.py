"""Notification delivery interface.

The orchestrator depends only on Notifier. LogNotifier is used when no
chat transport is configured. When a transport fails, the orchestrator
logs the undelivered text with the ``notification_failed`` event.
"""

from abc import ABC, abstractmethod

from lendbot.logging import get_logger

logger = get_logger(__name__)


class Notifier(ABC):
    """Abstract base class for plain-text notification sinks."""

    @abstractmethod
    async def send(self, text: str) -> None:
        """Deliver one message.

        Raises:
            NotificationError: If the message cannot be delivered.
        """
        ...


class LogNotifier(Notifier):
    """Writes notifications to the structured log."""

    async def send(self, text: str) -> None:
        logger.info("notification", text=text)
