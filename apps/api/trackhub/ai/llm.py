# apps/api/trackhub/ai/llm.py
"""
xAI chat client - Track-Hub
Raw httpx calls to the OpenAI-compatible chat-completions endpoint.
Disabled (returns None) when XAI_API_KEY is not configured.
"""

import logging
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from trackhub.core.config import settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    pass


def llm_enabled() -> bool:
    return settings.XAI_API_KEY is not None and bool(settings.XAI_API_KEY.get_secret_value())


async def complete(
    system_prompt: str,
    user_prompt: str,
    model: Optional[str] = None,
    max_tokens: int = 512,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """One chat completion; None when the LLM is disabled."""
    if not llm_enabled():
        return None

    payload = {
        "model": model or settings.DEFAULT_XAI_MODEL,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "max_tokens": max_tokens,
        "temperature": 0.2,
    }

    async with httpx.AsyncClient(
        base_url=settings.XAI_API_URL.rstrip("/"),
        headers={"Authorization": f"Bearer {settings.XAI_API_KEY.get_secret_value()}"},
        timeout=httpx.Timeout(60.0, connect=5.0),
        transport=transport,
    ) as client:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(3),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.TransportError, LLMError)),
            reraise=True,
        ):
            with attempt:
                response = await client.post("/chat/completions", json=payload)
                if response.status_code == 429 or response.status_code >= 500:
                    raise LLMError(f"xAI returned {response.status_code}")
                response.raise_for_status()
                data = response.json()

    try:
        return data["choices"][0]["message"]["content"].strip()
    except (KeyError, IndexError, TypeError) as exc:
        raise LLMError("Malformed completion response") from exc
