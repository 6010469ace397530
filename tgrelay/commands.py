"""Command dispatch: decide what an incoming message means and apply its effect."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tgrelay.auth import is_authorized
from tgrelay.state import MODE_LABELS, Mode, SettingsStore
from tgrelay.telegram import IncomingMessage

logger = logging.getLogger(__name__)


# ── Dispatch results ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Ignored:
    """Nothing to do: non-text message, or an unauthorized sender."""


@dataclass(frozen=True)
class AuthDenied:
    user_id: int


@dataclass(frozen=True)
class Authorized:
    pass


@dataclass(frozen=True)
class ModeChanged:
    mode: Mode


@dataclass(frozen=True)
class ModelChanged:
    model_id: str


@dataclass(frozen=True)
class ModelNotFound:
    model_id: str


@dataclass(frozen=True)
class Help:
    text: str


@dataclass(frozen=True)
class ModelList:
    text: str


@dataclass(frozen=True)
class Payload:
    text: str


DispatchResult = (
    Ignored | AuthDenied | Authorized | ModeChanged | ModelChanged
    | ModelNotFound | Help | ModelList | Payload
)


# ── Command table ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Command:
    token: str
    takes_arg: bool = False
    prefix_match: bool = False


START = Command("/start", prefix_match=True)
HELP = Command("/help")
PROMPT_MODE = Command("/prompt_mode")
COMMIT_MODE = Command("/commit_mode")
CHAT_MODE = Command("/chat_mode")
LIST_MODELS = Command("/list_models")
MODEL = Command("/model", takes_arg=True)

# Checked in order; first match wins
COMMANDS = (START, HELP, PROMPT_MODE, COMMIT_MODE, CHAT_MODE, LIST_MODELS, MODEL)

MODE_COMMANDS = {
    PROMPT_MODE: Mode.PROMPT,
    COMMIT_MODE: Mode.COMMIT,
    CHAT_MODE: Mode.CHAT,
}


def match_command(text: str) -> tuple[Command, str] | None:
    """Match ``text`` against the command table. Returns (command, argument) or None.

    No-argument commands must be the whole text, except ``/start`` which only
    needs to lead it. Argument commands need the token, whitespace, and a
    non-empty remainder. Anything else, including near misses like
    ``/help me``, is not a command.
    """
    for command in COMMANDS:
        if not text.startswith(command.token):
            continue
        rest = text[len(command.token):]
        if command.prefix_match:
            return command, ""
        if command.takes_arg:
            if rest[:1].isspace() and rest.strip():
                return command, rest.strip()
            continue
        if not rest:
            return command, ""
    return None


def dispatch(message: IncomingMessage, store: SettingsStore, authorized_id: int | None) -> DispatchResult:
    """Classify ``message`` and apply any settings change it commands."""
    if message.text is None:
        return Ignored()

    text = message.text
    if not is_authorized(message.sender_id, authorized_id):
        if text.startswith(START.token):
            logger.info("Unauthorized access attempt via /start by user %d", message.sender_id)
            return AuthDenied(message.sender_id)
        logger.debug("Ignoring message from unauthorized user %d", message.sender_id)
        return Ignored()

    matched = match_command(text)
    if matched is None:
        return Payload(text)

    command, arg = matched
    if command is START:
        return Authorized()
    if command is HELP:
        return Help(render_help(store))
    if command in MODE_COMMANDS:
        mode = MODE_COMMANDS[command]
        store.set_mode(mode)
        return ModeChanged(mode)
    if command is LIST_MODELS:
        return ModelList(render_model_list(store))
    if command is MODEL:
        if store.set_model(arg):
            return ModelChanged(arg)
        logger.info("Model switch rejected, unknown model: %s", arg)
        return ModelNotFound(arg)
    raise AssertionError(f"Unhandled command: {command.token}")


# ── Reply rendering ───────────────────────────────────────────────────


def render_help(store: SettingsStore) -> str:
    mode, model_id = store.snapshot()
    return (
        "Available commands:\n"
        "/help - Show this help message.\n"
        "/prompt_mode - Translate input into English suitable for AI prompts.\n"
        "/commit_mode - Translate input into a git commit message, with alternatives.\n"
        "/chat_mode - Chat freely with the AI.\n"
        "/list_models - List the available AI models.\n"
        "/model <id> - Switch to another AI model.\n"
        "\n"
        f"Current mode: {mode.value} ({MODE_LABELS[mode]})\n"
        f"Current model: {model_id}\n"
        "\n"
        "Send any text message and it will be processed in the current mode.\n"
        "Only text messages and the exact commands above are recognized."
    )


def render_model_list(store: SettingsStore) -> str:
    active = store.model_id
    lines = ["Available models:"]
    for entry in store.catalog:
        marker = "*" if entry.id == active else "-"
        line = f"{marker} {entry.id}"
        if entry.name != entry.id:
            line += f" ({entry.name})"
        if entry.notes:
            line += f": {entry.notes}"
        if entry.id == active:
            line += " [current]"
        lines.append(line)
    lines.append("")
    lines.append("Use /model <id> to switch.")
    return "\n".join(lines)


def render_reply(result: DispatchResult) -> str | None:
    """Chat reply for a dispatch result. None for Ignored and Payload."""
    if isinstance(result, AuthDenied):
        return f"User ID {result.user_id} is not authorized to use this bot."
    if isinstance(result, Authorized):
        return "You are authorized."
    if isinstance(result, ModeChanged):
        return f"Switched to {MODE_LABELS[result.mode]} Mode ({result.mode.value})."
    if isinstance(result, ModelChanged):
        return f"Switched model to {result.model_id}."
    if isinstance(result, ModelNotFound):
        return f"Model '{result.model_id}' not found. Use /list_models to see available models."
    if isinstance(result, (Help, ModelList)):
        return result.text
    return None
