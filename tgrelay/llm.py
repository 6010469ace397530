"""OpenAI-compatible chat-completions client.

Every failure is mapped to a chat-ready message; nothing raises past
``invoke``. There are no retries.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import httpx

from tgrelay.compose import ComposedRequest, build_messages

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

EMPTY_CONTENT = "[Received empty response from AI]"
UNEXPECTED_RESPONSE = "Sorry, I received an unexpected or empty response from the AI."
TIMEOUT_ERROR = "Sorry, the request to the AI timed out."


@dataclass(frozen=True)
class LLMResult:
    text: str
    ok: bool


def _api_error(status: int, body: str) -> str:
    message = f"Sorry, I encountered an API error ({status})."
    try:
        detail = json.loads(body)["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return message
    if isinstance(detail, str) and detail:
        message += f" Details: {detail}"
    return message


def _extract_content(data: object) -> str | None:
    """Return ``choices[0].message.content`` if it is a string."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None


async def invoke(
    endpoint: str,
    api_key: str,
    model_id: str,
    request: ComposedRequest,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> LLMResult:
    """POST one chat completion and return the reply or a user-facing error."""
    body = {"model": model_id, "messages": build_messages(request)}
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    logger.info("Calling AI with model %s (%s content)", model_id, request.variant.value)
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                resp = await own_client.post(endpoint, json=body, headers=headers)
        else:
            resp = await client.post(endpoint, json=body, headers=headers, timeout=timeout)
    except httpx.TimeoutException as exc:
        logger.error("AI request timed out (%s): %s", type(exc).__name__, exc)
        return LLMResult(TIMEOUT_ERROR, ok=False)
    except httpx.HTTPError as exc:
        logger.error("AI request failed (%s): %s", type(exc).__name__, exc)
        return LLMResult(
            f"Sorry, I encountered a network error while contacting the AI ({type(exc).__name__}).",
            ok=False,
        )

    if not resp.is_success:
        logger.error("AI API error %d: %s", resp.status_code, resp.text)
        return LLMResult(_api_error(resp.status_code, resp.text), ok=False)

    try:
        data = resp.json()
    except ValueError:
        data = None
    content = _extract_content(data)
    if content is None:
        logger.error("AI API returned an invalid response structure: %s", resp.text)
        return LLMResult(UNEXPECTED_RESPONSE, ok=False)

    logger.info("AI response received (%d chars)", len(content))
    return LLMResult(content.strip() or EMPTY_CONTENT, ok=True)
