"""Long-polling loop: one asyncio task per incoming update."""

from __future__ import annotations

import asyncio
import logging
import signal

import httpx

from tgrelay.config import Config, load_model_catalog
from tgrelay.errors import ConfigError, TelegramError
from tgrelay.relay import handle_message
from tgrelay.state import SettingsStore
from tgrelay.telegram import TelegramAPI, parse_update

logger = logging.getLogger(__name__)

POLL_ERROR_PAUSE = 2.0
SHUTDOWN_GRACE = 10.0


class RelayBot:
    def __init__(
        self,
        config: Config,
        store: SettingsStore,
        api: TelegramAPI,
        llm_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.store = store
        self.api = api
        self.llm_client = llm_client
        self.offset: int | None = None
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: Config) -> "RelayBot":
        catalog = load_model_catalog(config.models_file, config.default_model)
        store = SettingsStore(catalog, config.default_model)
        api = TelegramAPI(config.telegram_bot_token)
        return cls(config, store, api, httpx.AsyncClient(timeout=config.ai_timeout))

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error handling update: %s", exc, exc_info=exc)

    def dispatch_update(self, update: dict) -> asyncio.Task | None:
        """Advance the offset and start handling ``update`` in the background."""
        update_id = update.get("update_id")
        if update_id is None:
            return None
        self.offset = update_id + 1
        message = parse_update(update)
        if message is None:
            return None
        if message.text:
            logger.info("chat_id=%d: %s", message.chat_id, message.text[:80])
        task = asyncio.create_task(
            handle_message(self.api, message, self.store, self.config, self.llm_client)
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def poll(self) -> None:
        """Poll forever. Raises ConfigError if Telegram rejects the token."""
        while True:
            try:
                updates = await self.api.get_updates(self.offset)
            except httpx.TimeoutException:
                continue  # normal for long polling
            except TelegramError as exc:
                if exc.error_code == 401:
                    raise ConfigError(f"Telegram rejected the bot token: {exc.description}") from exc
                logger.error("Polling error: %s", exc)
                await asyncio.sleep(POLL_ERROR_PAUSE)
                continue
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Network-related polling error, continuing: %s", exc)
                await asyncio.sleep(POLL_ERROR_PAUSE)
                continue
            for update in updates:
                self.dispatch_update(update)

    async def drain(self, grace: float = SHUTDOWN_GRACE) -> None:
        """Wait for in-flight updates, cancelling whatever outlives ``grace``."""
        if not self._tasks:
            return
        logger.info("Waiting for %d in-flight message(s)", len(self._tasks))
        done, pending = await asyncio.wait(set(self._tasks), timeout=grace)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Abandoned %d in-flight message(s) at shutdown", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    async def run(self) -> None:
        """Verify the token, poll until SIGINT/SIGTERM, then shut down."""
        try:
            me = await self.api.get_me()
        except TelegramError as exc:
            raise ConfigError(f"Invalid Telegram token: {exc.description}") from exc
        logger.info("Bot started: @%s (authorized user: %d)",
                    me.get("username"), self.config.authorized_user_id)
        logger.info("Default mode: %s, model: %s", self.store.mode.value, self.store.model_id)

        poller = asyncio.create_task(self.poll())
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._stop, sig, poller)
            except NotImplementedError:
                pass

        try:
            await poller
        except asyncio.CancelledError:
            pass
        finally:
            await self.drain()
            await self.api.aclose()
            if self.llm_client is not None:
                await self.llm_client.aclose()
            logger.info("Bot stopped")

    @staticmethod
    def _stop(sig: signal.Signals, poller: asyncio.Task) -> None:
        logger.info("%s received. Shutting down bot...", sig.name)
        poller.cancel()
