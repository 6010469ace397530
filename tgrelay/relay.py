"""Per-message pipeline: dispatch, compose, call the AI, relay the answer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from tgrelay import llm
from tgrelay.commands import Ignored, Payload, dispatch, render_reply
from tgrelay.compose import compose
from tgrelay.config import Config
from tgrelay.errors import EmptyPayloadError
from tgrelay.state import Mode, SettingsStore
from tgrelay.telegram import IncomingMessage

logger = logging.getLogger(__name__)

NO_RESPONSE = "Sorry, an error occurred and no response was generated."


class Transport(Protocol):
    async def send_text(self, chat_id: int, text: str) -> int | None: ...

    async def edit_text(self, chat_id: int, message_id: int, text: str) -> bool: ...


@dataclass
class PendingExchange:
    """One payload in flight, with the settings it was dispatched under."""

    chat_id: int
    payload: str
    mode: Mode
    model_id: str
    ack_message_id: int | None = None


async def deliver(transport: Transport, chat_id: int, ack_message_id: int | None, text: str) -> None:
    """Put ``text`` in place of the acknowledgment, or send it fresh if that fails."""
    final = text if text and text.strip() else NO_RESPONSE
    if ack_message_id is not None:
        if await transport.edit_text(chat_id, ack_message_id, final):
            return
        logger.warning("Editing acknowledgment %d failed, sending a new message", ack_message_id)
    if await transport.send_text(chat_id, final) is None:
        logger.error("Could not deliver the response to chat %d", chat_id)


async def handle_payload(
    transport: Transport,
    exchange: PendingExchange,
    config: Config,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Compose, acknowledge, call the AI and relay its answer."""
    try:
        request = compose(exchange.payload, exchange.mode, exchange.model_id)
    except EmptyPayloadError as exc:
        logger.info("Ignoring empty input in chat %d", exchange.chat_id)
        await transport.send_text(exchange.chat_id, exc.message)
        return

    logger.info("Processing text in chat %d in %s mode with %s",
                exchange.chat_id, exchange.mode.value, exchange.model_id)
    exchange.ack_message_id = await transport.send_text(
        exchange.chat_id,
        f"Processing in {exchange.mode.value} mode with {exchange.model_id}...",
    )

    result = await llm.invoke(
        config.ai_api_endpoint,
        config.ai_api_key,
        exchange.model_id,
        request,
        client=client,
        timeout=config.ai_timeout,
    )
    await deliver(transport, exchange.chat_id, exchange.ack_message_id, result.text)


async def handle_message(
    transport: Transport,
    message: IncomingMessage,
    store: SettingsStore,
    config: Config,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Process one incoming message end to end."""
    result = dispatch(message, store, config.authorized_user_id)
    if isinstance(result, Ignored):
        return

    if isinstance(result, Payload):
        mode, model_id = store.snapshot()
        exchange = PendingExchange(
            chat_id=message.chat_id, payload=result.text, mode=mode, model_id=model_id,
        )
        await handle_payload(transport, exchange, config, client)
        return

    reply = render_reply(result)
    if reply:
        await transport.send_text(message.chat_id, reply)
