"""Tests for the Telegram transport using httpx.MockTransport."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from lendbot.exceptions import NotificationError
from lendbot.notify.telegram import ChatSession, TelegramBot, TelegramClient, TelegramNotifier

AUTH_TOKEN = "s3cret"


class RecordingTransport:
    """Collects Bot API calls and answers with queued results."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.updates: list[list[dict]] = []
        self.status_code = 200
        self.ok = True

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        payload = json.loads(request.content)
        self.calls.append((method, payload))

        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"ok": False})
        if not self.ok:
            return httpx.Response(200, json={"ok": False, "description": "Bad Request"})
        if method == "getUpdates":
            result = self.updates.pop(0) if self.updates else []
            return httpx.Response(200, json={"ok": True, "result": result})
        return httpx.Response(200, json={"ok": True, "result": {}})

    def sent(self) -> list[dict]:
        return [payload for method, payload in self.calls if method == "sendMessage"]


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def client(transport) -> TelegramClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    return TelegramClient("123:abc", http=http)


def _update(update_id: int, chat_id: int, text: str) -> dict:
    return {"update_id": update_id, "message": {"chat": {"id": chat_id}, "text": text}}


class TestTelegramClient:
    @pytest.mark.asyncio
    async def test_send_message_posts_json(self, client, transport) -> None:
        await client.send_message(42, "hello")

        method, payload = transport.calls[0]
        assert method == "sendMessage"
        assert payload == {"chat_id": 42, "text": "hello"}

    @pytest.mark.asyncio
    async def test_get_updates_passes_offset(self, client, transport) -> None:
        transport.updates.append([_update(7, 42, "/help")])

        updates = await client.get_updates(offset=5, timeout=1)

        assert updates[0]["update_id"] == 7
        assert transport.calls[0][1]["offset"] == 5
        assert transport.calls[0][1]["allowed_updates"] == ["message"]

    @pytest.mark.asyncio
    async def test_http_error_raises(self, client, transport) -> None:
        transport.status_code = 502
        with pytest.raises(NotificationError, match="sendMessage failed"):
            await client.send_message(42, "hello")

    @pytest.mark.asyncio
    async def test_api_rejection_raises(self, client, transport) -> None:
        transport.ok = False
        with pytest.raises(NotificationError, match="Bad Request"):
            await client.send_message(42, "hello")


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_requires_authorized_chat(self, client) -> None:
        notifier = TelegramNotifier(client, ChatSession())
        with pytest.raises(NotificationError, match="no authorized"):
            await notifier.send("hi")

    @pytest.mark.asyncio
    async def test_sends_to_authorized_chat(self, client, transport) -> None:
        session = ChatSession()
        session.authorize(42)

        await TelegramNotifier(client, session).send("hi")

        assert transport.sent() == [{"chat_id": 42, "text": "hi"}]


class TestTelegramBot:
    @pytest.fixture
    def handler(self) -> AsyncMock:
        return AsyncMock(return_value="handled")

    @pytest.fixture
    def bot(self, client, handler) -> TelegramBot:
        return TelegramBot(client, ChatSession(), AUTH_TOKEN, handler, poll_timeout=1)

    @pytest.mark.asyncio
    async def test_auth_handshake(self, bot, handler) -> None:
        assert await bot.handle_message(42, "/status") == "Authenticate first: send /auth to start."
        assert await bot.handle_message(42, "/auth") == "Please send the auth token:"
        assert await bot.handle_message(42, AUTH_TOKEN) == "Authenticated. You can send commands now."

        assert await bot.handle_message(42, "/status") == "handled"
        handler.assert_awaited_once_with("/status")

    @pytest.mark.asyncio
    async def test_wrong_token_rejected(self, bot, handler) -> None:
        await bot.handle_message(42, "/auth")
        reply = await bot.handle_message(42, "wrong")

        assert reply == "Authenticate first: send /auth to start."
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_chat_not_authorized(self, bot, handler) -> None:
        await bot.handle_message(42, AUTH_TOKEN)
        reply = await bot.handle_message(99, "/status")

        assert reply.startswith("Authenticate first")
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_auth_token_never_authorizes(self, client, handler) -> None:
        bot = TelegramBot(client, ChatSession(), "", handler)
        assert (await bot.handle_message(42, "")).startswith("Authenticate first")

    @pytest.mark.asyncio
    async def test_poll_once_replies_and_advances_offset(self, bot, transport) -> None:
        transport.updates.append(
            [
                _update(10, 42, AUTH_TOKEN),
                {"update_id": 11, "message": {"chat": {"id": 42}}},
                _update(12, 42, "/rate"),
            ]
        )

        assert await bot.poll_once() == 3
        assert transport.sent() == [
            {"chat_id": 42, "text": "Authenticated. You can send commands now."},
            {"chat_id": 42, "text": "handled"},
        ]

        await bot.poll_once()
        get_updates = [p for m, p in transport.calls if m == "getUpdates"]
        assert get_updates[-1]["offset"] == 13

    @pytest.mark.asyncio
    async def test_reply_failure_does_not_abort_batch(self, client, handler) -> None:
        session = ChatSession()
        session.authorize(42)
        bot = TelegramBot(client, session, AUTH_TOKEN, handler)
        client.get_updates = AsyncMock(
            return_value=[_update(1, 42, "/rate"), _update(2, 42, "/check")]
        )
        client.send_message = AsyncMock(side_effect=NotificationError("down"))

        assert await bot.poll_once() == 2
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_run_survives_handler_error(self, client, transport, monkeypatch) -> None:
        monkeypatch.setattr("lendbot.notify.telegram.RETRY_DELAY", 0)
        session = ChatSession()
        session.authorize(42)
        transport.updates.extend([[_update(1, 42, "/lending")], [_update(2, 42, "/rate")]])

        async def handle(text: str) -> str:
            if text == "/lending":
                raise IndexError("list index out of range")
            bot.stop()
            return "handled"

        bot = TelegramBot(client, session, AUTH_TOKEN, handle, poll_timeout=1)
        await bot.run()

        assert transport.sent() == [{"chat_id": 42, "text": "handled"}]
        offsets = [p["offset"] for m, p in transport.calls if m == "getUpdates"]
        assert offsets == [0, 2]
