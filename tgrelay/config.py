"""Startup configuration: environment values and the YAML model catalog."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from tgrelay.errors import ConfigError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_MODELS_FILE = CONFIG_DIR / "models.yaml"
DEFAULT_AI_TIMEOUT = 60.0

REQUIRED_ENV = (
    "TELEGRAM_BOT_TOKEN",
    "AUTHORIZED_USER_ID",
    "AI_API_KEY",
    "AI_API_ENDPOINT",
    "AI_DEFAULT_MODEL",
)


@dataclass
class Config:
    """Values read from the environment (and ``.env``) at startup."""

    telegram_bot_token: str
    authorized_user_id: int
    ai_api_key: str
    ai_api_endpoint: str
    default_model: str
    models_file: Path = DEFAULT_MODELS_FILE
    ai_timeout: float = DEFAULT_AI_TIMEOUT

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Config":
        """Build a Config, raising ConfigError that lists every problem found."""
        env = os.environ if environ is None else environ
        values = {key: env.get(key, "").strip() for key in REQUIRED_ENV}
        problems = [f"{key} is not set" for key, value in values.items() if not value]

        authorized_user_id = 0
        if values["AUTHORIZED_USER_ID"]:
            try:
                authorized_user_id = int(values["AUTHORIZED_USER_ID"])
            except ValueError:
                problems.append(
                    f"AUTHORIZED_USER_ID must be an integer, got {values['AUTHORIZED_USER_ID']!r}"
                )

        ai_timeout = DEFAULT_AI_TIMEOUT
        raw_timeout = env.get("AI_TIMEOUT", "").strip()
        if raw_timeout:
            try:
                ai_timeout = float(raw_timeout)
            except ValueError:
                problems.append(f"AI_TIMEOUT must be a number of seconds, got {raw_timeout!r}")

        if problems:
            raise ConfigError("Invalid configuration: " + "; ".join(problems))

        models_file = env.get("MODELS_FILE", "").strip()
        return cls(
            telegram_bot_token=values["TELEGRAM_BOT_TOKEN"],
            authorized_user_id=authorized_user_id,
            ai_api_key=values["AI_API_KEY"],
            ai_api_endpoint=values["AI_API_ENDPOINT"],
            default_model=values["AI_DEFAULT_MODEL"],
            models_file=Path(models_file) if models_file else DEFAULT_MODELS_FILE,
            ai_timeout=ai_timeout,
        )


@dataclass(frozen=True)
class ModelEntry:
    id: str
    name: str
    notes: str = ""


@dataclass(frozen=True)
class ModelCatalog:
    """Ordered, immutable set of selectable models. Never empty."""

    entries: tuple[ModelEntry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.entries:
            raise ConfigError("Model catalog is empty")

    def __contains__(self, model_id: object) -> bool:
        return any(entry.id == model_id for entry in self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, model_id: str) -> ModelEntry | None:
        for entry in self.entries:
            if entry.id == model_id:
                return entry
        return None


def _fallback_catalog(default_model_id: str) -> ModelCatalog:
    return ModelCatalog((ModelEntry(id=default_model_id, name=default_model_id),))


def load_model_catalog(path: Path, default_model_id: str) -> ModelCatalog:
    """Load the model catalog from YAML.

    Accepts either a list of ``{id, name, notes}`` mappings or a mapping with
    a ``models`` list. A missing or unparseable file falls back to a single
    entry for ``default_model_id``; a valid file with no usable entries is a
    ConfigError.
    """
    if not path.exists():
        logger.warning("Model catalog %s not found, using default model only", path)
        return _fallback_catalog(default_model_id)

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load model catalog %s, using default model only: %s", path, exc)
        return _fallback_catalog(default_model_id)

    if isinstance(data, dict):
        data = data.get("models")
    if not isinstance(data, list):
        logger.warning("Model catalog %s has no model list, using default model only", path)
        return _fallback_catalog(default_model_id)

    entries: list[ModelEntry] = []
    seen: set[str] = set()
    for raw in data:
        if not isinstance(raw, dict) or not str(raw.get("id") or "").strip():
            logger.warning("Skipping catalog entry without an id: %r", raw)
            continue
        model_id = str(raw["id"]).strip()
        if model_id in seen:
            logger.warning("Skipping duplicate catalog entry: %s", model_id)
            continue
        seen.add(model_id)
        entries.append(ModelEntry(
            id=model_id,
            name=str(raw.get("name") or model_id).strip(),
            notes=str(raw.get("notes") or "").strip(),
        ))

    if not entries:
        raise ConfigError(f"Model catalog {path} contains no usable entries")

    logger.info("Loaded %d models from %s", len(entries), path)
    return ModelCatalog(tuple(entries))
