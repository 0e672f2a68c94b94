"""Lending orchestrator -- wires the collaborators and runs the schedules.

Each lending cycle:
  1. CANCEL: Cancel every open offer, remembering whether any existed
  2. BALANCE: Fetch the funding wallet, subtract the reserve
  3. MARKET: Fetch the book (empty on failure) and, for kline, candles
  4. PLAN: AllocationEngine turns the snapshot into accepted offers
  5. PLACE: Submit each offer; a failed offer does not stop the rest

Three independent schedules run in one event loop: the lending cycle
every ``minutes_run``, the new-credit check every
``lending_check_minutes``, and the rate alert once an hour at
``rate_check_minute``. Cycles are serialized by a lock so a chat
``/restart`` never overlaps a scheduled cycle.

Works identically with PaperSubmitter and the live client -- the
orchestrator only sees the OfferSubmitter ABC.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal

from lendbot.commands import (
    HELP_TEXT,
    Command,
    Query,
    QueryCommand,
    SetParameter,
    ToggleStrategy,
    apply_setting,
    format_strategy_status,
    parse_command,
    resolve_toggle,
)
from lendbot.config import AppSettings, RuntimeConfig, StrategyConfig
from lendbot.exceptions import (
    CommandError,
    ExchangeAPIError,
    LendingBotError,
    NotificationError,
    OfferSubmissionError,
)
from lendbot.exchange.client import MarketDataSource, OfferSubmitter
from lendbot.logging import cycle_context, get_logger
from lendbot.models import (
    Candle,
    FundingBookEntry,
    FundingCredit,
    FundingSnapshot,
    LoanOfferDraft,
    StrategyKind,
)
from lendbot.notify.alerts import (
    RATE_ALERT_CANDLES,
    RATE_ALERT_TIME_FRAME,
    CreditWatcher,
    format_active_credits,
    format_credit_notification,
    format_rate_alert,
    rate_exceeds_threshold,
    recent_high_percentage,
)
from lendbot.notify.notifier import Notifier
from lendbot.rates import decimal_to_percentage
from lendbot.strategy.engine import AllocationEngine

logger = get_logger(__name__)

# Pause after cancelling so the freed funds show up in the wallet
_CANCEL_SETTLE_SECONDS = 1.0

# Back-off after an unexpected scheduler error
_ERROR_BACKOFF_SECONDS = 10.0


def seconds_until_minute(now: datetime, minute: int) -> float:
    """Seconds from ``now`` to the next ``HH:minute:00`` strictly after it."""
    target = now.replace(minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(hours=1)
    return (target - now).total_seconds()


class LendingOrchestrator:
    """Runs lending cycles, alerts and chat commands against the exchange.

    Args:
        settings: Application-wide settings.
        market_data: Book, candle, wallet and credit source.
        submitter: Offer placement (live client or PaperSubmitter).
        engine: Allocation engine holding the shared market history.
        notifier: Alert delivery channel.
        credit_watcher: New-credit cursor; created when omitted.
        runtime_config: Mutable overlay written by chat commands.
        cancel_settle_delay: Seconds to wait after cancelling offers.
        now: Wall-clock source for the hourly schedule.
    """

    def __init__(
        self,
        settings: AppSettings,
        market_data: MarketDataSource,
        submitter: OfferSubmitter,
        engine: AllocationEngine,
        notifier: Notifier,
        credit_watcher: CreditWatcher | None = None,
        runtime_config: RuntimeConfig | None = None,
        cancel_settle_delay: float = _CANCEL_SETTLE_SECONDS,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._market_data = market_data
        self._submitter = submitter
        self._engine = engine
        self._notifier = notifier
        self._credit_watcher = credit_watcher or CreditWatcher()
        self._runtime_config = runtime_config or RuntimeConfig()
        self._cancel_settle_delay = cancel_settle_delay
        self._now = now
        self._cycle_lock = asyncio.Lock()
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._last_cycle_at: float | None = None
        self._cycle_count = 0

    @property
    def symbol(self) -> str:
        return self._settings.funding_symbol

    @property
    def currency(self) -> str:
        return self._settings.lending.currency.upper()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def runtime_config(self) -> RuntimeConfig:
        """Current runtime config overlay."""
        return self._runtime_config

    @property
    def reserve_amount(self) -> Decimal:
        rc = self._runtime_config.reserve_amount
        return self._settings.lending.reserve_amount if rc is None else rc

    @property
    def rate_threshold(self) -> Decimal:
        """Alert threshold in daily percent."""
        rc = self._runtime_config.notify_rate_threshold
        return self._settings.notify.rate_threshold if rc is None else rc

    def current_config(self) -> StrategyConfig:
        """Resolve settings plus the runtime overlay for the next cycle."""
        return StrategyConfig.from_settings(self._settings, self._runtime_config)

    # ------------------------------------------------------------------
    # Lending cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> list[LoanOfferDraft]:
        """Run one lending cycle under the cycle lock.

        Returns:
            The offers handed to the submitter.

        Raises:
            ExchangeAPIError: Open offers or the balance could not be fetched.
        """
        async with self._cycle_lock:
            self._cycle_count += 1
            with cycle_context(self._cycle_count):
                offers = await self._lending_cycle()
            self._last_cycle_at = time.time()
            return offers

    async def _lending_cycle(self) -> list[LoanOfferDraft]:
        config = self.current_config()
        logger.info(
            "lending_cycle_started",
            strategy=config.strategy.value,
            mode=self._settings.lending.mode,
        )

        had_pending_offers = await self._cancel_open_offers()
        if had_pending_offers and self._cancel_settle_delay > 0:
            await asyncio.sleep(self._cancel_settle_delay)

        balance = await self._market_data.fetch_available_balance(self.currency)
        funds = max(Decimal("0"), balance - self.reserve_amount)
        logger.info(
            "funds_available",
            currency=self.currency,
            balance=str(balance),
            reserve=str(self.reserve_amount),
            available=str(funds),
        )

        if funds < config.min_loan:
            logger.info(
                "lending_cycle_skipped",
                reason="funds_below_min_loan",
                available=str(funds),
                min_loan=str(config.min_loan),
            )
            return []

        book = await self._fetch_book()
        candles: list[Candle] = []
        if config.strategy == StrategyKind.KLINE:
            candles = await self._fetch_kline_candles()

        snapshot = FundingSnapshot(
            available_balance=funds,
            book_entries=tuple(book),
            candles=tuple(candles),
        )
        offers = self._engine.plan(snapshot, config, had_pending_offers)
        placed = await self._place_offers(offers, config.order_limit)

        logger.info(
            "lending_cycle_complete",
            planned=len(offers),
            placed=placed,
            had_pending_offers=had_pending_offers,
        )
        return offers

    async def _cancel_open_offers(self) -> bool:
        """Cancel every open offer. Returns True if any existed."""
        offers = await self._market_data.fetch_open_offers(self.symbol)
        if not offers:
            logger.info("no_open_offers")
            return False

        for offer in offers:
            try:
                await self._submitter.cancel_offer(offer.id)
            except OfferSubmissionError as e:
                logger.error("offer_cancel_failed", offer_id=offer.id, error=str(e))
        return True

    async def _fetch_book(self) -> list[FundingBookEntry]:
        try:
            return await self._market_data.fetch_funding_book(
                self.symbol, self._settings.lending.book_depth
            )
        except ExchangeAPIError as e:
            logger.warning("funding_book_unavailable", error=str(e), fallback="min_rate")
            return []

    async def _fetch_kline_candles(self) -> list[Candle]:
        kline = self._settings.kline
        try:
            return await self._market_data.fetch_funding_candles(
                self.symbol, kline.time_frame, kline.period
            )
        except ExchangeAPIError as e:
            logger.warning("kline_candles_unavailable", error=str(e), fallback="min_rate")
            return []

    async def _place_offers(self, offers: list[LoanOfferDraft], order_limit: int) -> int:
        """Submit offers in order until ``order_limit`` succeed (0 = unlimited).

        Only successful submissions count toward the limit, so a rejected
        offer leaves its slot to the next one.
        """
        placed = 0
        for index, draft in enumerate(offers):
            if order_limit > 0 and placed >= order_limit:
                logger.info(
                    "order_limit_reached",
                    order_limit=order_limit,
                    unplaced=len(offers) - index,
                )
                break
            try:
                offer_id = await self._submitter.submit_offer(self.symbol, draft)
            except OfferSubmissionError as e:
                logger.error(
                    "offer_submit_failed",
                    amount=str(draft.amount),
                    daily_rate=str(draft.daily_rate),
                    period_days=draft.period_days,
                    error=str(e),
                )
                continue
            placed += 1
            logger.info(
                "offer_placed",
                offer_id=offer_id,
                amount=str(draft.amount),
                daily_rate=str(draft.daily_rate),
                period_days=draft.period_days,
            )
        return placed

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def check_rate_threshold(self) -> tuple[bool, Decimal]:
        """Compare the last hour's highest rate against the alert threshold.

        Returns:
            ``(exceeded, highest_rate_percentage)``.
        """
        candles = await self._market_data.fetch_funding_candles(
            self.symbol, RATE_ALERT_TIME_FRAME, RATE_ALERT_CANDLES
        )
        highest = recent_high_percentage(candles)
        threshold = self.rate_threshold
        exceeded = rate_exceeds_threshold(highest, threshold)
        logger.info(
            "rate_threshold_checked",
            highest_pct=str(highest),
            threshold_pct=str(threshold),
            exceeded=exceeded,
        )
        if exceeded:
            await self._notify(format_rate_alert(highest, threshold))
        return exceeded, highest

    async def check_new_credits(self) -> list[FundingCredit]:
        """Notify about credits opened since the previous check."""
        credits = await self._market_data.fetch_active_credits(self.symbol)
        new_credits = self._credit_watcher.check(credits)
        if new_credits:
            logger.info("new_credits_found", count=len(new_credits))
            await self._notify(format_credit_notification(new_credits, self.currency))
        return new_credits

    async def _notify(self, text: str) -> None:
        try:
            await self._notifier.send(text)
        except NotificationError as e:
            logger.warning("notification_failed", error=str(e), text=text)

    # ------------------------------------------------------------------
    # Chat commands
    # ------------------------------------------------------------------

    async def handle_command(self, text: str) -> str:
        """Parse and execute one chat command, returning the reply text."""
        try:
            command = parse_command(text)
            return await self._execute(command)
        except CommandError as e:
            return str(e)
        except LendingBotError as e:
            logger.warning("command_failed", command=text, error=str(e))
            return f"Command failed: {e}"
        except Exception as e:
            logger.error("command_failed", command=text, error=str(e), exc_info=True)
            return f"Command failed: {e}"

    async def _execute(self, command: Command) -> str:
        if isinstance(command, SetParameter):
            reply = apply_setting(
                command, self._runtime_config, self.current_config(), self.currency
            )
            logger.info(
                "runtime_config_updated",
                parameter=command.parameter.value,
                value=str(command.value),
            )
            return reply

        if isinstance(command, ToggleStrategy):
            previous = self.current_config().strategy
            selected = resolve_toggle(previous, command)
            self._runtime_config.strategy = selected
            logger.info(
                "strategy_switched", previous=previous.value, selected=selected.value
            )
            return (
                f"{command.strategy.value} strategy "
                f"{'enabled' if command.enabled else 'disabled'}\n"
                f"Active strategy from the next cycle: {selected.value}"
            )

        return await self._query(command)

    async def _query(self, command: QueryCommand) -> str:
        query = command.query
        if query == Query.HELP:
            return HELP_TEXT
        if query == Query.RESTART:
            offers = await self.run_cycle()
            return f"Restart complete: offers cancelled, {len(offers)} new offers planned"
        if query == Query.RATE:
            rate = await self._current_rate_percentage()
            return (
                f"Current lending rate: {rate:.4f}%\n"
                f"Alert threshold: {self.rate_threshold:.4f}%"
            )
        if query == Query.CHECK:
            rate = await self._current_rate_percentage()
            verdict = (
                "Rate is above the threshold!"
                if rate_exceeds_threshold(rate, self.rate_threshold)
                else "Rate is below the threshold"
            )
            return (
                f"Current lending rate: {rate:.4f}%\n"
                f"Threshold: {self.rate_threshold:.4f}%\n{verdict}"
            )
        if query == Query.STRATEGY:
            return format_strategy_status(
                self.current_config(),
                self._settings.kline.time_frame,
                self._settings.kline.period,
            )
        if query == Query.LENDING:
            credits = await self._market_data.fetch_active_credits(self.symbol)
            return format_active_credits(credits, self.currency)
        return await self._status_report()

    async def _current_rate_percentage(self) -> Decimal:
        book = await self._market_data.fetch_funding_book(self.symbol, 1)
        if not book:
            raise ExchangeAPIError("funding book is empty")
        return decimal_to_percentage(book[0].daily_rate)

    async def _status_report(self) -> str:
        config = self.current_config()
        try:
            balance = await self._market_data.fetch_available_balance(self.currency)
            balance_line = f"Funding balance: {balance:.2f} {self.currency}"
        except ExchangeAPIError as e:
            balance_line = f"Funding balance: unavailable ({e})"

        lines = [
            "System status",
            "",
            balance_line,
            f"Mode: {self._settings.lending.mode}",
            f"Currency: {self.currency}",
            f"Min loan: {config.min_loan:.2f}",
            f"Max loan: {config.max_loan:.2f}" if config.max_loan > 0 else "Max loan: unlimited",
            f"Reserve: {self.reserve_amount:.2f}",
            f"Order limit: {config.order_limit}",
            f"Min daily rate: {decimal_to_percentage(config.min_daily_rate):.4f}%",
            f"Cycle interval: {self._settings.lending.minutes_run} min",
        ]
        if config.high_hold_amount > 0:
            lines.append(
                f"High-hold: {config.high_hold_orders} x {config.high_hold_amount:.2f} "
                f"at {decimal_to_percentage(config.high_hold_rate):.4f}%"
            )
        else:
            lines.append("High-hold: disabled")
        lines.append(f"Strategy: {config.strategy.value}")
        if self._last_cycle_at is not None:
            last = datetime.fromtimestamp(self._last_cycle_at).strftime("%Y-%m-%d %H:%M:%S")
            lines.append(f"Last cycle: {last}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all schedules and wait until they finish or stop() is called."""
        logger.info(
            "orchestrator_starting",
            mode=self._settings.lending.mode,
            symbol=self.symbol,
            minutes_run=self._settings.lending.minutes_run,
        )
        self._running = True
        self._tasks = [
            asyncio.create_task(self._lending_loop(), name="lending_cycle"),
            asyncio.create_task(self._credit_loop(), name="credit_check"),
            asyncio.create_task(self._rate_alert_loop(), name="rate_alert"),
        ]
        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            pass
        finally:
            self._running = False
            logger.info("orchestrator_stopped")

    async def stop(self) -> None:
        """Signal all schedules to stop; an in-flight cycle is cancelled."""
        logger.info("orchestrator_stopping_gracefully")
        self._running = False
        for task in self._tasks:
            task.cancel()

    async def _lending_loop(self) -> None:
        interval = self._settings.lending.minutes_run * 60
        while self._running:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("lending_cycle_error", error=str(e), exc_info=True)
            await asyncio.sleep(interval)

    async def _credit_loop(self) -> None:
        interval = self._settings.notify.lending_check_minutes * 60
        while self._running:
            try:
                await self.check_new_credits()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("credit_check_error", error=str(e), exc_info=True)
            await asyncio.sleep(interval)

    async def _rate_alert_loop(self) -> None:
        minute = self._settings.notify.rate_check_minute
        while self._running:
            delay = seconds_until_minute(self._now(), minute)
            logger.debug("rate_check_scheduled", delay_seconds=delay)
            await asyncio.sleep(delay)
            try:
                await self.check_rate_threshold()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("rate_check_error", error=str(e), exc_info=True)
                await asyncio.sleep(_ERROR_BACKOFF_SECONDS)
