"""Pass-through proxy to the generative-text (Responses) API.

The quest designer still speaks the chat-completions dialect, so the body
is rewritten before forwarding:

    messages         -> input         (only when input is absent)
    response_format  -> text.format

Status code and body bytes come back untouched.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TIMEOUT = 300.0


class LLMError(RuntimeError):
    """Raised when the upstream cannot be reached or times out."""


def to_responses_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Rewrite a chat-style body into the responses-style body."""
    body = dict(payload)
    if "input" not in body and "messages" in body:
        body["input"] = body.pop("messages")
    if "response_format" in body:
        text = dict(body.get("text") or {})
        text["format"] = body.pop("response_format")
        body["text"] = text
    return body


async def proxy_generate(
    payload: dict[str, Any],
    *,
    api_key: str,
    url: str,
    timeout: float = TIMEOUT,
) -> tuple[int, bytes, str]:
    """Forward to the upstream; returns (status, body bytes, content type)."""
    body = to_responses_payload(payload)
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    logger.debug(f"Generate call url={url} model={body.get('model')}")

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, json=body, headers=headers)
    except httpx.ConnectError as e:
        raise LLMError(f"Cannot connect to generation backend at {url}") from e
    except httpx.TimeoutException as e:
        raise LLMError(f"Generation backend timed out after {timeout:.0f}s") from e

    logger.debug(f"Generate response status={resp.status_code} len={len(resp.content)}")
    return resp.status_code, resp.content, resp.headers.get("content-type", "application/json")
