"""Tests for the message pipeline and response relay."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, call, patch

import pytest

from tgrelay.config import Config, ModelCatalog, ModelEntry
from tgrelay.llm import LLMResult
from tgrelay.relay import NO_RESPONSE, PendingExchange, deliver, handle_message, handle_payload
from tgrelay.state import Mode, SettingsStore
from tgrelay.telegram import IncomingMessage

OWNER = 1001
CHAT = 1001
MODEL = "deepseek/deepseek-chat"

CONFIG = Config(
    telegram_bot_token="123:abc",
    authorized_user_id=OWNER,
    ai_api_key="sk-test",
    ai_api_endpoint="https://ai.example/v1/chat/completions",
    default_model=MODEL,
)


def make_transport(ack_id: int | None = 77, edit_ok: bool = True) -> AsyncMock:
    transport = AsyncMock()
    transport.send_text.return_value = ack_id
    transport.edit_text.return_value = edit_ok
    return transport


def make_store() -> SettingsStore:
    catalog = ModelCatalog((ModelEntry(MODEL, "DeepSeek"), ModelEntry("google/gemini-2.5-flash", "Gemini")))
    return SettingsStore(catalog, MODEL)


class TestDeliver:
    def test_edits_acknowledgment(self):
        transport = make_transport()
        asyncio.run(deliver(transport, CHAT, 77, "answer"))
        transport.edit_text.assert_awaited_once_with(CHAT, 77, "answer")
        transport.send_text.assert_not_awaited()

    def test_failed_edit_falls_back_to_send(self):
        transport = make_transport(edit_ok=False)
        asyncio.run(deliver(transport, CHAT, 77, "answer"))
        transport.edit_text.assert_awaited_once()
        transport.send_text.assert_awaited_once_with(CHAT, "answer")

    def test_missing_ack_sends_directly(self):
        transport = make_transport()
        asyncio.run(deliver(transport, CHAT, None, "answer"))
        transport.edit_text.assert_not_awaited()
        transport.send_text.assert_awaited_once_with(CHAT, "answer")

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_text_is_replaced(self, text):
        transport = make_transport()
        asyncio.run(deliver(transport, CHAT, 77, text))
        transport.edit_text.assert_awaited_once_with(CHAT, 77, NO_RESPONSE)

    def test_final_send_failure_is_swallowed(self):
        transport = make_transport(ack_id=None, edit_ok=False)
        asyncio.run(deliver(transport, CHAT, 77, "answer"))
        assert transport.send_text.await_count == 1


class TestHandlePayload:
    @patch("tgrelay.relay.llm.invoke", new_callable=AsyncMock)
    def test_empty_payload_never_calls_ai(self, mock_invoke):
        transport = make_transport()
        exchange = PendingExchange(chat_id=CHAT, payload="   ", mode=Mode.PROMPT, model_id=MODEL)
        asyncio.run(handle_payload(transport, exchange, CONFIG))
        mock_invoke.assert_not_awaited()
        transport.send_text.assert_awaited_once_with(CHAT, "Input cannot be empty.")

    @patch("tgrelay.relay.llm.invoke", new_callable=AsyncMock)
    def test_error_result_is_relayed(self, mock_invoke):
        mock_invoke.return_value = LLMResult("Sorry, the request to the AI timed out.", ok=False)
        transport = make_transport()
        exchange = PendingExchange(chat_id=CHAT, payload="hi", mode=Mode.CHAT, model_id=MODEL)
        asyncio.run(handle_payload(transport, exchange, CONFIG))
        assert exchange.ack_message_id == 77
        transport.edit_text.assert_awaited_once_with(CHAT, 77, "Sorry, the request to the AI timed out.")

    @patch("tgrelay.relay.llm.invoke", new_callable=AsyncMock)
    def test_uses_snapshotted_model(self, mock_invoke):
        mock_invoke.return_value = LLMResult("ok", ok=True)
        transport = make_transport()
        exchange = PendingExchange(
            chat_id=CHAT, payload="hi", mode=Mode.PROMPT, model_id="google/gemini-2.5-flash",
        )
        asyncio.run(handle_payload(transport, exchange, CONFIG))
        args = mock_invoke.await_args
        assert args.args[2] == "google/gemini-2.5-flash"
        assert args.kwargs["timeout"] == CONFIG.ai_timeout


class TestHandleMessage:
    @patch("tgrelay.relay.llm.invoke", new_callable=AsyncMock)
    def test_unauthorized_text_is_silent(self, mock_invoke):
        transport = make_transport()
        store = make_store()
        asyncio.run(handle_message(transport, IncomingMessage(5, 5, "/commit_mode"), store, CONFIG))
        transport.send_text.assert_not_awaited()
        transport.edit_text.assert_not_awaited()
        mock_invoke.assert_not_awaited()
        assert store.mode is Mode.PROMPT

    def test_unauthorized_start_gets_one_denial(self):
        transport = make_transport()
        asyncio.run(handle_message(transport, IncomingMessage(5, 5, "/start"), make_store(), CONFIG))
        transport.send_text.assert_awaited_once()
        chat_id, text = transport.send_text.await_args.args
        assert chat_id == 5
        assert "5" in text and "not authorized" in text

    def test_non_text_is_dropped(self):
        transport = make_transport()
        asyncio.run(handle_message(transport, IncomingMessage(OWNER, CHAT, None), make_store(), CONFIG))
        transport.send_text.assert_not_awaited()

    @patch("tgrelay.relay.llm.invoke", new_callable=AsyncMock)
    def test_near_miss_command_is_sent_to_ai(self, mock_invoke):
        mock_invoke.return_value = LLMResult("translated", ok=True)
        transport = make_transport()
        asyncio.run(handle_message(transport, IncomingMessage(OWNER, CHAT, "/help me"), make_store(), CONFIG))
        mock_invoke.assert_awaited_once()
        request = mock_invoke.await_args.args[3]
        assert request.user_content.endswith("/help me")

    @patch("tgrelay.relay.llm.invoke", new_callable=AsyncMock)
    def test_commit_mode_end_to_end(self, mock_invoke):
        canned = 'git commit -m "fix: handle null pointer"'
        mock_invoke.return_value = LLMResult(canned, ok=True)
        transport = make_transport(ack_id=555)
        store = make_store()

        async def conversation():
            await handle_message(transport, IncomingMessage(OWNER, CHAT, "/commit_mode"), store, CONFIG)
            await handle_message(transport, IncomingMessage(OWNER, CHAT, "fix null pointer bug"), store, CONFIG)

        asyncio.run(conversation())

        sends = transport.send_text.await_args_list
        assert len(sends) == 2
        assert "commit" in sends[0].args[1]
        ack = sends[1].args[1]
        assert "commit" in ack and MODEL in ack
        transport.edit_text.assert_awaited_once_with(CHAT, 555, canned)

        request = mock_invoke.await_args.args[3]
        assert request.user_content == (
            "Translate the following commit message into English\n--- --- ---\nfix null pointer bug"
        )
        assert mock_invoke.await_args == call(
            CONFIG.ai_api_endpoint, CONFIG.ai_api_key, MODEL, request,
            client=None, timeout=CONFIG.ai_timeout,
        )
