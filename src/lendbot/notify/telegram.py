"""Telegram Bot API transport: notifications and chat control.

One chat is authorized per process through a two-step handshake: the
user sends ``/auth``, then the configured auth token. The authorized chat
id lives on a ChatSession shared by the notifier and the poller.
"""

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from lendbot.exceptions import NotificationError
from lendbot.logging import get_logger
from lendbot.notify.notifier import Notifier

logger = get_logger(__name__)

_API_BASE = "https://api.telegram.org"

#: Seconds to wait before polling again after a failed getUpdates.
RETRY_DELAY = 5.0

AUTH_COMMAND = "/auth"

CommandHandler = Callable[[str], Awaitable[str]]


class ChatSession:
    """The one authorized chat. ``chat_id`` is None until authorized."""

    def __init__(self) -> None:
        self.chat_id: int | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.chat_id is not None

    def is_authorized(self, chat_id: int) -> bool:
        return self.chat_id == chat_id

    def authorize(self, chat_id: int) -> None:
        self.chat_id = chat_id
        logger.info("telegram_chat_authorized", chat_id=chat_id)


class TelegramClient:
    """Minimal async Bot API client over httpx.

    Args:
        bot_token: Bot token from BotFather.
        http: Injected client (tests pass one built on httpx.MockTransport).
        timeout: Request timeout; must exceed the long-poll timeout.
    """

    def __init__(
        self,
        bot_token: str,
        http: httpx.AsyncClient | None = None,
        timeout: float = 75.0,
    ) -> None:
        self._base_url = f"{_API_BASE}/bot{bot_token}"
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if not self._http.is_closed:
            await self._http.aclose()

    async def _call(self, method: str, payload: dict) -> object:
        try:
            resp = await self._http.post(f"{self._base_url}/{method}", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise NotificationError(f"telegram {method} failed: {exc}") from exc

        if not data.get("ok"):
            raise NotificationError(
                f"telegram {method} rejected: {data.get('description', 'unknown error')}"
            )
        return data.get("result")

    async def send_message(self, chat_id: int, text: str) -> None:
        await self._call("sendMessage", {"chat_id": chat_id, "text": text})

    async def get_updates(self, offset: int, timeout: int) -> list[dict]:
        result = await self._call(
            "getUpdates",
            {"offset": offset, "timeout": timeout, "allowed_updates": ["message"]},
        )
        return list(result or [])


class TelegramNotifier(Notifier):
    """Sends notifications to the authorized chat."""

    def __init__(self, client: TelegramClient, session: ChatSession) -> None:
        self._client = client
        self._session = session

    async def send(self, text: str) -> None:
        if self._session.chat_id is None:
            raise NotificationError("no authorized telegram chat")
        await self._client.send_message(self._session.chat_id, text)


class TelegramBot:
    """Long-polls getUpdates and routes authorized chat text to a handler.

    Args:
        client: Bot API client.
        session: Shared authorization state.
        auth_token: Secret the user must send after ``/auth``.
        handler: Coroutine mapping command text to a reply.
        poll_timeout: Long-poll seconds per getUpdates call.
    """

    def __init__(
        self,
        client: TelegramClient,
        session: ChatSession,
        auth_token: str,
        handler: CommandHandler,
        poll_timeout: int = 60,
    ) -> None:
        self._client = client
        self._session = session
        self._auth_token = auth_token
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._offset = 0
        self._running = False

    async def handle_message(self, chat_id: int, text: str) -> str:
        """Produce the reply for one incoming message.

        Unauthorized chats only get the authentication dialogue.
        """
        text = text.strip()
        if not self._session.is_authorized(chat_id):
            if text == AUTH_COMMAND:
                return "Please send the auth token:"
            if self._auth_token and text == self._auth_token:
                self._session.authorize(chat_id)
                return "Authenticated. You can send commands now."
            return "Authenticate first: send /auth to start."

        return await self._handler(text)

    async def poll_once(self) -> int:
        """Fetch one batch of updates, reply to each; returns the batch size."""
        updates = await self._client.get_updates(self._offset, self._poll_timeout)
        for update in updates:
            self._offset = max(self._offset, int(update["update_id"]) + 1)
            message = update.get("message") or {}
            text = message.get("text")
            if not text:
                continue

            chat_id = int(message["chat"]["id"])
            reply = await self.handle_message(chat_id, text)
            try:
                await self._client.send_message(chat_id, reply)
            except NotificationError as e:
                logger.warning("telegram_reply_failed", chat_id=chat_id, error=str(e))
        return len(updates)

    async def run(self) -> None:
        """Poll until stop() is called or the task is cancelled."""
        self._running = True
        logger.info("telegram_bot_started")
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except NotificationError as e:
                logger.warning("telegram_poll_failed", error=str(e))
                await asyncio.sleep(RETRY_DELAY)
            except Exception as e:
                logger.error("telegram_update_failed", error=str(e), exc_info=True)
                await asyncio.sleep(RETRY_DELAY)
        logger.info("telegram_bot_stopped")

    def stop(self) -> None:
        self._running = False
