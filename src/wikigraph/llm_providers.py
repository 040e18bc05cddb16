"""LLM clients for link disambiguation.

Two providers are supported: Anthropic directly, or OpenRouter through its
OpenAI-compatible endpoint. An explicit ``llm.provider`` in .wgconfig wins;
otherwise whichever API key is set decides, and having both is ambiguous.
"""

from __future__ import annotations

import os
from typing import Any

from .config import LLMConfig, get_llm_config
from .errors import LLMProviderError

# Environment variable holding each provider's API key
API_KEY_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Short model names -> (Anthropic id, OpenRouter id)
MODEL_ALIASES: dict[str, tuple[str, str]] = {
    "claude-3.5-haiku": ("claude-3-5-haiku-20241022", "anthropic/claude-3-5-haiku"),
    "claude-haiku-4.5": ("claude-haiku-4-5-20250414", "anthropic/claude-haiku-4.5"),
    "claude-sonnet-4": ("claude-sonnet-4-20250514", "anthropic/claude-sonnet-4"),
}


def resolve_model(model: str, provider: str) -> str:
    """Translate *model* into the id *provider* expects.

    >>> resolve_model("claude-3.5-haiku", "anthropic")
    'claude-3-5-haiku-20241022'
    >>> resolve_model("claude-x", "openrouter")
    'anthropic/claude-x'
    """
    if model in MODEL_ALIASES:
        anthropic_id, openrouter_id = MODEL_ALIASES[model]
        return anthropic_id if provider == "anthropic" else openrouter_id
    if provider == "anthropic":
        return model.removeprefix("anthropic/")
    if model.startswith("claude-"):
        return f"anthropic/{model}"
    return model


def provider_api_key(provider: str) -> str | None:
    """The configured API key for *provider*, or None."""
    env_name = API_KEY_ENV.get(provider)
    if not env_name:
        return None
    return os.environ.get(env_name) or None


def detect_provider(config: LLMConfig | None = None) -> str:
    """Pick the provider to talk to.

    Raises:
        LLMProviderError: If the configured provider is unknown, or the
            choice cannot be made from the environment.
    """
    config = config or get_llm_config()

    if config.provider:
        provider = config.provider.lower()
        if provider not in API_KEY_ENV:
            raise LLMProviderError(
                f"Invalid llm.provider '{config.provider}' (expected one of: {', '.join(API_KEY_ENV)})"
            )
        return provider

    with_keys = [name for name in API_KEY_ENV if provider_api_key(name)]
    if len(with_keys) > 1:
        raise LLMProviderError(
            "Both ANTHROPIC_API_KEY and OPENROUTER_API_KEY are set; choose one with llm.provider in .wgconfig",
            details={"suggestion": "llm:\n  provider: anthropic"},
        )
    if not with_keys:
        raise LLMProviderError(
            "No LLM API key configured (ANTHROPIC_API_KEY or OPENROUTER_API_KEY)",
            details={"suggestion": "export ANTHROPIC_API_KEY=..."},
        )
    return with_keys[0]


def get_async_client(provider: str | None = None, config: LLMConfig | None = None) -> tuple[Any, str]:
    """Return ``(client, provider)`` for async completions.

    Raises:
        LLMProviderError: If no provider can be chosen or its key is missing.
    """
    provider = provider or detect_provider(config)
    api_key = provider_api_key(provider)
    if not api_key:
        raise LLMProviderError(f"{API_KEY_ENV.get(provider, provider)} is required for llm.provider '{provider}'")

    if provider == "anthropic":
        import anthropic

        return anthropic.AsyncAnthropic(api_key=api_key), provider

    from openai import AsyncOpenAI

    return AsyncOpenAI(base_url=OPENROUTER_BASE_URL, api_key=api_key), provider


async def make_completion_async(
    client: Any,
    provider: str,
    model: str,
    messages: list[dict[str, str]],
    system: str | None = None,
    max_tokens: int = 300,
    temperature: float = 0.0,
) -> str:
    """Run one completion and return its text."""
    resolved_model = resolve_model(model, provider)

    if provider == "anthropic":
        kwargs: dict[str, Any] = {"model": resolved_model, "max_tokens": max_tokens, "messages": messages}
        if system:
            kwargs["system"] = system
        response = await client.messages.create(**kwargs)
        return response.content[0].text

    chat_messages = [{"role": "system", "content": system}, *messages] if system else list(messages)
    response = await client.chat.completions.create(
        model=resolved_model,
        messages=chat_messages,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    return response.choices[0].message.content or ""
