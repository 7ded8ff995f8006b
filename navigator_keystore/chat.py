"""
Chat helper — posts messages to an LLM provider using the stored API key.

The key is read from the KeyStore immediately before each request and is
only ever placed in request headers.
"""
import logging
from typing import Any, Optional

import aiohttp

from .exceptions import ChatError, MissingKeyError
from .store import KeyStore

logger = logging.getLogger("navigator.keystore")

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-sonnet-20240229",
}


def build_request(
    api_key: str,
    messages: list[dict],
    model: Optional[str] = None,
    provider: str = "openai",
    endpoint: Optional[str] = None,
) -> tuple[str, dict, dict]:
    """Build (url, headers, body) for a chat completion request.

    For Anthropic a leading ``system`` message is lifted into the
    top-level ``system`` field.

    Raises:
        ValueError: If the provider is not supported.
    """
    if provider not in DEFAULT_MODELS:
        raise ValueError(f"Unsupported chat provider: {provider}")
    model = model or DEFAULT_MODELS[provider]
    if provider == "openai":
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        return endpoint or OPENAI_URL, headers, {"model": model, "messages": messages}

    body: dict[str, Any] = {"model": model, "max_tokens": 1024}
    if messages and messages[0].get("role") == "system":
        body["system"] = messages[0].get("content")
        messages = messages[1:]
    body["messages"] = messages
    headers = {
        "Content-Type": "application/json",
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
    }
    return endpoint or ANTHROPIC_URL, headers, body


async def send_chat(
    store: KeyStore,
    messages: list[dict],
    model: Optional[str] = None,
    provider: Optional[str] = None,
    endpoint: Optional[str] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> dict:
    """Send a chat request authorized with the store's current key.

    Args:
        store: KeyStore holding the API key.
        messages: Chat messages (``role``/``content`` dicts).
        model: Model name; the stored model, then the provider default.
        provider: ``openai`` or ``anthropic``; the stored provider, then
            ``openai``.
        endpoint: Override the provider URL.
        session: Reuse an existing aiohttp session.

    Returns:
        Decoded JSON response.

    Raises:
        MissingKeyError: No key set (or the key is still locked).
        ChatError: The provider answered with a non-2xx status.
    """
    state = store.get_state()
    api_key = state.api_key
    provider = provider or state.provider or "openai"
    model = model or state.model
    if not api_key:
        raise MissingKeyError(f"No {provider} API key set")
    url, headers, body = build_request(api_key, messages, model, provider, endpoint)

    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()
    try:
        async with session.post(url, json=body, headers=headers) as response:
            if response.status >= 400:
                text = await response.text()
                logger.warning(
                    "Chat request to %s failed with status %s", url, response.status,
                )
                raise ChatError(response.status, text)
            return await response.json()
    finally:
        if owns_session:
            await session.close()
