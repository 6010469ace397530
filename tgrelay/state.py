"""Process-wide mutable settings: active mode and active model."""

from __future__ import annotations

import logging
import threading
from enum import Enum

from tgrelay.config import ModelCatalog

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    PROMPT = "prompt"
    COMMIT = "commit"
    CHAT = "chat"


MODE_LABELS = {
    Mode.PROMPT: "Prompt Translation",
    Mode.COMMIT: "Commit Translation",
    Mode.CHAT: "Chat",
}


class SettingsStore:
    """Owns the active mode and model for one bot process.

    Every read and write goes through a lock so the next command always sees
    the previous command's change. In-flight requests take a snapshot instead
    of holding the lock.
    """

    def __init__(self, catalog: ModelCatalog, default_model_id: str, mode: Mode = Mode.PROMPT):
        self.catalog = catalog
        self._lock = threading.Lock()
        self._mode = mode
        if default_model_id in catalog:
            self._model_id = default_model_id
        else:
            self._model_id = catalog.entries[0].id
            logger.warning(
                "Default model '%s' is not in the catalog, using '%s'",
                default_model_id, self._model_id,
            )

    @property
    def mode(self) -> Mode:
        with self._lock:
            return self._mode

    @property
    def model_id(self) -> str:
        with self._lock:
            return self._model_id

    def snapshot(self) -> tuple[Mode, str]:
        """Return (mode, model_id) read atomically."""
        with self._lock:
            return self._mode, self._model_id

    def set_mode(self, mode: Mode) -> None:
        with self._lock:
            self._mode = mode
        logger.info("Mode switched to: %s", mode.value)

    def set_model(self, model_id: str) -> bool:
        """Switch to ``model_id`` if it is in the catalog. Returns False otherwise."""
        if model_id not in self.catalog:
            return False
        with self._lock:
            self._model_id = model_id
        logger.info("Model switched to: %s", model_id)
        return True
