from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from study_tracker.ai_config import AiConfig
from study_tracker.errors import AiProxyError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_ROLES = {"system", "user", "assistant"}
EMPTY_REPLY = "I couldn't generate a response. Please try again with more context."


def sanitize_messages(messages: Sequence[Mapping[str, Any]], max_length: int) -> list[dict[str, str]]:
    if not messages:
        raise ValidationError("messages must be a non-empty array.")
    cleaned: list[dict[str, str]] = []
    for message in messages:
        role = str(message.get("role", ""))
        if role not in ALLOWED_ROLES:
            raise ValidationError(f"Invalid role '{role}'.")
        content = str(message.get("content") or "").strip()
        if not content:
            raise ValidationError("Each message must have non-empty content.")
        cleaned.append({"role": role, "content": content[:max_length]})
    return cleaned


def _extract_text(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    first = choices[0]
    for key in ("message", "delta"):
        part = first.get(key)
        if not isinstance(part, dict):
            continue
        content = part.get("content")
        if isinstance(content, str) and content.strip():
            return content
        if isinstance(content, list):
            chunks = [str(item["text"]) for item in content if isinstance(item, dict) and isinstance(item.get("text"), str)]
            joined = "\n".join(chunks).strip()
            if joined:
                return joined
    return None


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or "Unknown error"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    if isinstance(body, str) and body:
        return body
    return "Unknown error"


def _raise_for_status(resp: httpx.Response) -> None:
    status = resp.status_code
    if status < 400:
        return
    if status == 401:
        raise AiProxyError("Unauthorized: Check your OpenRouter API key.", status_code=502)
    if status == 429:
        raise AiProxyError("Rate limit exceeded: Please wait and try again.", status_code=429)
    if status >= 500:
        raise AiProxyError("OpenRouter service is unavailable. Please try again later.", status_code=502)
    raise AiProxyError(f"OpenRouter request failed ({status}): {_error_detail(resp)}", status_code=502)


def chat(
    messages: Sequence[Mapping[str, Any]],
    api_key: str | None,
    config: AiConfig,
    model: str | None = None,
    max_tokens: int | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Forward a chat conversation to OpenRouter and return the reply text."""
    if not api_key:
        raise AiProxyError(
            "OpenRouter API key is not configured. Please set OPENROUTER_API_KEY.",
            status_code=503,
        )
    sanitized = sanitize_messages(messages, config.max_content_length)
    if max_tokens is not None and max_tokens <= 0:
        raise ValidationError("max_tokens must be positive")

    headers = {
        "Authorization": f"Bearer {api_key}",
        "HTTP-Referer": config.referer,
        "X-Title": config.title,
        "Content-Type": "application/json",
    }
    payload: dict[str, Any] = {
        "model": (model or "").strip() or config.default_model,
        "messages": sanitized,
        "max_tokens": max_tokens or config.max_tokens,
    }

    owns_client = client is None
    http = client or httpx.Client(timeout=config.timeout_seconds)
    try:
        resp = http.post(config.endpoint, headers=headers, json=payload)
        _raise_for_status(resp)
        data = resp.json()
    except AiProxyError:
        raise
    except httpx.TimeoutException as exc:
        logger.warning("ai request timed out model=%s", payload["model"])
        raise AiProxyError("The AI request timed out. Please try again.", status_code=504) from exc
    except Exception as exc:
        logger.exception("ai request failed model=%s", payload["model"])
        message = str(exc) or "Unknown error while contacting the AI."
        raise AiProxyError(message) from exc
    finally:
        if owns_client:
            http.close()

    return _extract_text(data) or EMPTY_REPLY
