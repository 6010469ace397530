"""Build the system instruction and user content sent to the AI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tgrelay.errors import EmptyPayloadError, InvalidModeError
from tgrelay.state import Mode

logger = logging.getLogger(__name__)

SEPARATOR = "\n--- --- ---\n"

# Models whose ids start with this prefix take content as a list of typed blocks
BLOCK_CONTENT_PREFIX = "google/"

PROMPT_SYSTEM = (
    "You are an AI assistant specialized in refining text for AI prompts. "
    "Translate the user's input into clear, concise, and unambiguous English "
    "suitable for prompting another AI. Respond *only* with the translated text "
    "and absolutely nothing else. Do not add any introductory phrases, "
    "explanations, or conversational filler."
)

COMMIT_SYSTEM = (
    "You are an AI assistant specialized in formatting text into git commit messages. "
    "Translate the user's input into a clear and concise English git commit message "
    "following conventional standards (e.g., 'feat: add user authentication'). "
    "Respond *only* in the format `git commit -m \"COMMIT_CONTENT\"`. If you can "
    "think of 1 or 2 significantly better alternative phrasings for the commit "
    "message, provide them on new lines, each prefixed with 'Alternative:'. Do not "
    "add any other introductory text, explanations, or conversation."
)

CHAT_SYSTEM = (
    "You are a helpful AI assistant. Respond conversationally and helpfully to the "
    "user's message. Always respond in the user's language. If the user uses "
    "Chinese, respond in Traditional Chinese."
)

# mode -> (system instruction, payload prefix)
MODE_PROMPTS: dict[Mode, tuple[str, str]] = {
    Mode.PROMPT: (PROMPT_SYSTEM, "Translate the following prompt into English" + SEPARATOR),
    Mode.COMMIT: (COMMIT_SYSTEM, "Translate the following commit message into English" + SEPARATOR),
    Mode.CHAT: (CHAT_SYSTEM, ""),
}


class ContentVariant(str, Enum):
    TEXT = "text"
    BLOCKS = "blocks"


@dataclass(frozen=True)
class ComposedRequest:
    system_instruction: str
    user_content: str | list[dict[str, Any]]
    variant: ContentVariant


def content_variant(model_id: str) -> ContentVariant:
    if model_id.startswith(BLOCK_CONTENT_PREFIX):
        return ContentVariant.BLOCKS
    return ContentVariant.TEXT


def _shape(text: str, variant: ContentVariant) -> str | list[dict[str, Any]]:
    if variant is ContentVariant.BLOCKS:
        return [{"type": "text", "text": text}]
    return text


def compose(payload: str, mode: Mode, model_id: str) -> ComposedRequest:
    """Compose the request for ``payload`` in ``mode``.

    Raises EmptyPayloadError for blank input and InvalidModeError for a mode
    with no prompt template.
    """
    text = payload.strip()
    if not text:
        raise EmptyPayloadError()

    try:
        system_instruction, prefix = MODE_PROMPTS[mode]
    except (KeyError, TypeError):
        raise InvalidModeError(f"No prompt template for mode {mode!r}") from None

    variant = content_variant(model_id)
    logger.debug("Composed %s request for model %s (%s content)", mode, model_id, variant.value)
    return ComposedRequest(
        system_instruction=system_instruction,
        user_content=_shape(prefix + text, variant),
        variant=variant,
    )


def build_messages(request: ComposedRequest) -> list[dict[str, Any]]:
    """The chat-completions ``messages`` list: system then user."""
    return [
        {"role": "system", "content": _shape(request.system_instruction, request.variant)},
        {"role": "user", "content": request.user_content},
    ]
