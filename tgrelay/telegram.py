"""Telegram Bot API over httpx: long polling, send and edit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from tgrelay.errors import TelegramError

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}"
MAX_MSG_LEN = 4096  # Telegram's per-message character limit
POLL_TIMEOUT = 30


@dataclass(frozen=True)
class IncomingMessage:
    sender_id: int
    chat_id: int
    text: str | None


def parse_update(update: dict) -> IncomingMessage | None:
    """Extract the message from a getUpdates entry. None if it has none."""
    msg = update.get("message")
    if not isinstance(msg, dict):
        return None
    sender = msg.get("from")
    chat = msg.get("chat")
    if not isinstance(sender, dict) or not isinstance(chat, dict):
        return None
    sender_id = sender.get("id")
    chat_id = chat.get("id")
    if not isinstance(sender_id, int) or not isinstance(chat_id, int):
        return None
    text = msg.get("text")
    return IncomingMessage(
        sender_id=sender_id,
        chat_id=chat_id,
        text=text if isinstance(text, str) else None,
    )


class TelegramAPI:
    """Thin async wrapper over the Bot API methods the relay uses."""

    def __init__(self, token: str, client: httpx.AsyncClient | None = None):
        self._base = TELEGRAM_API.format(token=token)
        self._client = client or httpx.AsyncClient(timeout=POLL_TIMEOUT + 10)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, *, http_timeout: float | None = None, **params: Any) -> dict:
        """Call a Bot API method and return the decoded response envelope."""
        kwargs: dict[str, Any] = {"json": params}
        if http_timeout is not None:
            kwargs["timeout"] = http_timeout
        resp = await self._client.post(f"{self._base}/{method}", **kwargs)
        return resp.json()

    async def _call(self, method: str, *, http_timeout: float | None = None, **params: Any) -> Any:
        """Like request(), but raise TelegramError unless the call succeeded."""
        data = await self.request(method, http_timeout=http_timeout, **params)
        if not data.get("ok"):
            raise TelegramError(data.get("description", "unknown error"), data.get("error_code"))
        return data.get("result")

    async def get_me(self) -> dict:
        return await self._call("getMe")

    async def get_updates(self, offset: int | None = None, timeout: int = POLL_TIMEOUT) -> list[dict]:
        """Long-poll for new messages."""
        params: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            params["offset"] = offset
        return await self._call("getUpdates", http_timeout=timeout + 10, **params) or []

    async def send_text(self, chat_id: int, text: str) -> int | None:
        """Send plain text, chunking if needed. Returns the first chunk's message id.

        Returns None if any chunk could not be sent.
        """
        if not text.strip():
            logger.warning("Refusing to send an empty message to chat %d", chat_id)
            return None

        first_id: int | None = None
        for i in range(0, len(text), MAX_MSG_LEN):
            chunk = text[i : i + MAX_MSG_LEN]
            try:
                result = await self._call(
                    "sendMessage", chat_id=chat_id, text=chunk, disable_web_page_preview=True,
                )
            except (httpx.HTTPError, TelegramError, ValueError) as exc:
                logger.error("Error sending message to chat %d: %s", chat_id, exc)
                return None
            if first_id is None:
                first_id = result.get("message_id")
        return first_id

    async def edit_text(self, chat_id: int, message_id: int, text: str) -> bool:
        """Replace a sent message's text. Returns False if Telegram refused."""
        try:
            await self._call(
                "editMessageText",
                chat_id=chat_id,
                message_id=message_id,
                text=text,
                disable_web_page_preview=True,
            )
        except (httpx.HTTPError, TelegramError, ValueError) as exc:
            logger.error("Failed to edit message %d in chat %d: %s", message_id, chat_id, exc)
            return False
        return True
