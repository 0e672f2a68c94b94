"""Tests for component wiring in the entry point."""

from pydantic import SecretStr

from lendbot.config import (
    AppSettings,
    BitfinexSettings,
    LendingSettings,
    TelegramSettings,
)
from lendbot.execution.paper_submitter import PaperSubmitter
from lendbot.main import _build_components
from lendbot.notify.notifier import LogNotifier
from lendbot.notify.telegram import TelegramNotifier


class TestBuildComponents:
    def test_paper_mode_uses_paper_submitter(self, mock_settings: AppSettings) -> None:
        components = _build_components(mock_settings)

        orchestrator = components["orchestrator"]
        assert isinstance(orchestrator._submitter, PaperSubmitter)
        assert isinstance(orchestrator._notifier, LogNotifier)
        assert components["telegram_bot"] is None

    def test_live_mode_submits_through_client(self) -> None:
        settings = AppSettings(
            bitfinex=BitfinexSettings(
                api_key=SecretStr("key"),
                api_secret=SecretStr("secret"),
            ),
            lending=LendingSettings(mode="live"),
        )

        components = _build_components(settings)

        assert components["orchestrator"]._submitter is components["client"]

    def test_telegram_wiring(self) -> None:
        settings = AppSettings(
            telegram=TelegramSettings(
                enabled=True,
                bot_token=SecretStr("123:abc"),
                auth_token=SecretStr("secret"),
            )
        )

        components = _build_components(settings)

        assert isinstance(components["orchestrator"]._notifier, TelegramNotifier)
        assert components["telegram_bot"] is not None
        assert components["telegram_client"] is not None
