"""Entry point for the funding lending bot.

Wires all components together and runs the orchestrator, plus the
Telegram poller when enabled, in one asyncio event loop.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. BitfinexClient (market data, and offer submission in live mode)
2. Submitter (client in live mode, PaperSubmitter in paper mode)
3. MarketConditionAnalyzer + AllocationEngine
4. Notifier (TelegramNotifier when enabled, else LogNotifier)
5. LendingOrchestrator (lending cycle, alerts, chat commands)
6. TelegramBot (chat control, when enabled)
"""

import asyncio
import signal
from typing import Any

from lendbot.config import AppSettings
from lendbot.exchange.bitfinex_client import BitfinexClient
from lendbot.exchange.client import OfferSubmitter
from lendbot.execution.paper_submitter import PaperSubmitter
from lendbot.logging import get_logger, setup_logging
from lendbot.notify.notifier import LogNotifier, Notifier
from lendbot.notify.telegram import ChatSession, TelegramBot, TelegramClient, TelegramNotifier
from lendbot.orchestrator import LendingOrchestrator
from lendbot.strategy.engine import AllocationEngine
from lendbot.strategy.market_analyzer import MarketConditionAnalyzer

# Extra seconds on top of the long-poll timeout before httpx gives up
_POLL_TIMEOUT_MARGIN = 15


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all bot components from settings.

    Does NOT call client.connect() -- that happens in run().

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("lendbot.main")

    client = BitfinexClient(settings.bitfinex)

    submitter: OfferSubmitter
    if settings.lending.mode == "live":
        submitter = client
    else:
        submitter = PaperSubmitter()
        logger.info("paper_mode", note="Offers are logged, never submitted.")

    engine = AllocationEngine(MarketConditionAnalyzer())

    notifier: Notifier = LogNotifier()
    telegram_client: TelegramClient | None = None
    session = ChatSession()
    if settings.telegram.enabled:
        telegram_client = TelegramClient(
            settings.telegram.bot_token.get_secret_value(),
            timeout=settings.telegram.poll_timeout + _POLL_TIMEOUT_MARGIN,
        )
        notifier = TelegramNotifier(telegram_client, session)

    orchestrator = LendingOrchestrator(
        settings=settings,
        market_data=client,
        submitter=submitter,
        engine=engine,
        notifier=notifier,
    )

    telegram_bot: TelegramBot | None = None
    if telegram_client is not None:
        telegram_bot = TelegramBot(
            client=telegram_client,
            session=session,
            auth_token=settings.telegram.auth_token.get_secret_value(),
            handler=orchestrator.handle_command,
            poll_timeout=settings.telegram.poll_timeout,
        )

    return {
        "client": client,
        "orchestrator": orchestrator,
        "telegram_client": telegram_client,
        "telegram_bot": telegram_bot,
    }


def _setup_signal_handlers(
    orchestrator: LendingOrchestrator, telegram_bot: TelegramBot | None
) -> None:
    """Register SIGINT/SIGTERM handlers for graceful shutdown."""
    logger = get_logger("lendbot.main")
    loop = asyncio.get_running_loop()

    def _shutdown_handler() -> None:
        logger.info("shutdown_signal_received")
        if telegram_bot is not None:
            telegram_bot.stop()
        asyncio.ensure_future(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _shutdown_handler)


async def run() -> None:
    """Run the lending bot until a shutdown signal arrives."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("lendbot.main")

    # 3. Build all components
    components = _build_components(settings)
    orchestrator: LendingOrchestrator = components["orchestrator"]
    telegram_bot: TelegramBot | None = components["telegram_bot"]

    _setup_signal_handlers(orchestrator, telegram_bot)

    logger.info(
        "lending_bot_starting",
        mode=settings.lending.mode,
        currency=settings.lending.currency,
        strategy=settings.strategy.kind.value,
        telegram=settings.telegram.enabled,
    )

    bot_task: asyncio.Task | None = None
    try:
        await components["client"].connect()
        if telegram_bot is not None:
            bot_task = asyncio.create_task(telegram_bot.run())
        await orchestrator.start()
    finally:
        if bot_task is not None:
            bot_task.cancel()
            try:
                await bot_task
            except asyncio.CancelledError:
                pass
        if components["telegram_client"] is not None:
            await components["telegram_client"].close()
        await components["client"].close()
        logger.info("lending_bot_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
