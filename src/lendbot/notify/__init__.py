"""Alerts and their delivery channels."""

from lendbot.notify.alerts import (
    CreditWatcher,
    format_active_credits,
    format_credit_notification,
    format_rate_alert,
    rate_exceeds_threshold,
    recent_high_percentage,
)
from lendbot.notify.notifier import LogNotifier, Notifier
from lendbot.notify.telegram import ChatSession, TelegramBot, TelegramClient, TelegramNotifier

__all__ = [
    "ChatSession",
    "CreditWatcher",
    "LogNotifier",
    "Notifier",
    "TelegramBot",
    "TelegramClient",
    "TelegramNotifier",
    "format_active_credits",
    "format_credit_notification",
    "format_rate_alert",
    "rate_exceeds_threshold",
    "recent_high_percentage",
]
