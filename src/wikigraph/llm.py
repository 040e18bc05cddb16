"""AI capability used for link disambiguation and related-document hints.

The engine only sees :class:`AICapability`. :class:`ProviderAICapability`
implements it over Anthropic or OpenRouter; tests pass in fakes.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

from .config import LLMConfig, get_llm_config
from .errors import LLMProviderError
from .llm_providers import API_KEY_ENV, detect_provider, get_async_client, make_completion_async, provider_api_key

log = logging.getLogger(__name__)

def _bracketed(text: str, opening: str, closing: str, *, widest: bool = False) -> str | None:
    """Slice from the first *opening* to the next (or last, if *widest*) *closing*."""
    start = text.find(opening)
    if start < 0:
        return None
    end = text.rfind(closing) if widest else text.find(closing, start + 1)
    if end <= start:
        return None
    return text[start : end + 1]


@runtime_checkable
class AICapability(Protocol):
    """Single-turn completion service."""

    async def is_available(self) -> bool: ...

    async def query(self, prompt: str, *, system: str | None = None) -> str: ...


class ProviderAICapability:
    """AI capability backed by the configured LLM provider."""

    def __init__(self, config: LLMConfig | None = None) -> None:
        self.config = config or get_llm_config()
        self._client: Any = None
        self._provider: str | None = None

    async def is_available(self) -> bool:
        try:
            provider = detect_provider(self.config)
        except LLMProviderError as e:
            log.debug("AI capability unavailable: %s", e.message)
            return False
        if not provider_api_key(provider):
            log.debug("AI capability unavailable: %s is not set", API_KEY_ENV[provider])
            return False
        return True

    def _get_client(self) -> tuple[Any, str]:
        if self._client is None:
            self._client, self._provider = get_async_client(config=self.config)
        return self._client, self._provider or ""

    async def query(self, prompt: str, *, system: str | None = None) -> str:
        client, provider = self._get_client()
        return await make_completion_async(
            client,
            provider,
            self.config.model,
            [{"role": "user", "content": prompt}],
            system=system,
            max_tokens=self.config.max_tokens,
        )


def _id_from_value(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, list) and value:
        first = value[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict) and isinstance(first.get("id"), str):
            return first["id"]
    if isinstance(value, dict) and isinstance(value.get("id"), str):
        return value["id"]
    return None


def _try_parse_id(text: str) -> str | None:
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    picked = _id_from_value(value)
    if picked is None:
        return None
    return picked.strip() or None


def extract_id_from_reply(text: Any) -> str | None:
    """Pull a single document id out of a model reply.

    Tries the whole reply as JSON, then the first ``{...}``, then the first
    ``[...]``. Accepts a bare string, an array's first string (or first
    object's ``id``), or an object's ``id``. ``{"id": null}`` gives None.
    """
    if not text or not isinstance(text, str):
        return None
    raw = text.strip()
    if not raw:
        return None

    picked = _try_parse_id(raw)
    if picked:
        return picked

    for opening, closing in (("{", "}"), ("[", "]")):
        fragment = _bracketed(raw, opening, closing)
        if fragment:
            picked = _try_parse_id(fragment)
            if picked:
                return picked

    return None


def extract_ids_from_reply(text: Any) -> list[str]:
    """Pull an ordered list of ids out of a model reply.

    Raises:
        ValueError: If no JSON array can be parsed from the reply.
    """
    raw = str(text or "").strip()
    payload = _bracketed(raw, "[", "]", widest=True) or raw
    try:
        value = json.loads(payload)
    except (ValueError, RecursionError) as e:
        raise ValueError(f"Reply is not a JSON array: {e}") from e
    if not isinstance(value, list):
        raise ValueError("Reply is not a JSON array")

    ids: list[str] = []
    for item in value:
        if isinstance(item, str) and item:
            ids.append(item)
        elif isinstance(item, dict) and isinstance(item.get("id"), str) and item["id"]:
            ids.append(item["id"])
    return ids


async def capability_available(ai: AICapability | None) -> bool:
    """True when *ai* exists and reports itself usable; never raises."""
    if ai is None:
        return False
    try:
        return bool(await ai.is_available())
    except Exception as e:
        log.warning("AI availability check failed: %s", e)
        return False
