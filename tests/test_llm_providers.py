"""Tests for LLM provider selection and the provider-backed AI capability."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wikigraph.ai_resolver import resolve_unmatched_links
from wikigraph.config import LLMConfig
from wikigraph.errors import LLMProviderError
from wikigraph.graph import LinkGraph
from wikigraph.llm import ProviderAICapability, capability_available
from wikigraph.llm_providers import detect_provider, get_async_client, make_completion_async, resolve_model
from wikigraph.models import Document, UnresolvedReference


class TestResolveModel:
    def test_alias_per_provider(self):
        assert resolve_model("claude-3.5-haiku", "anthropic") == "claude-3-5-haiku-20241022"
        assert resolve_model("claude-3.5-haiku", "openrouter") == "anthropic/claude-3-5-haiku"

    def test_prefix_handling(self):
        assert resolve_model("anthropic/claude-x", "anthropic") == "claude-x"
        assert resolve_model("claude-x", "openrouter") == "anthropic/claude-x"

    def test_unknown_model_passes_through(self):
        assert resolve_model("openai/gpt-4o-mini", "openrouter") == "openai/gpt-4o-mini"


class TestDetectProvider:
    def test_explicit_provider(self, no_llm_keys):
        assert detect_provider(LLMConfig(provider="OpenRouter")) == "openrouter"

    def test_invalid_provider(self, no_llm_keys):
        with pytest.raises(LLMProviderError, match="Invalid llm.provider"):
            detect_provider(LLMConfig(provider="bard"))

    def test_anthropic_key(self, no_llm_keys, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        assert detect_provider(LLMConfig()) == "anthropic"

    def test_openrouter_key(self, no_llm_keys, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-test")
        assert detect_provider(LLMConfig()) == "openrouter"

    def test_both_keys_is_ambiguous(self, no_llm_keys, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-test")
        with pytest.raises(LLMProviderError, match="Both"):
            detect_provider(LLMConfig())

    def test_no_keys(self, no_llm_keys):
        with pytest.raises(LLMProviderError, match="No LLM API key"):
            detect_provider(LLMConfig())

    def test_missing_key_for_explicit_provider(self, no_llm_keys):
        with pytest.raises(LLMProviderError, match="ANTHROPIC_API_KEY"):
            get_async_client(config=LLMConfig(provider="anthropic"))


class TestMakeCompletion:
    @pytest.mark.asyncio
    async def test_anthropic_request_shape(self):
        response = MagicMock()
        response.content = [MagicMock(text='{"id": "a.md"}')]
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=response)

        text = await make_completion_async(
            client, "anthropic", "claude-3.5-haiku", [{"role": "user", "content": "hi"}], system="sys"
        )

        assert text == '{"id": "a.md"}'
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-3-5-haiku-20241022"
        assert kwargs["system"] == "sys"

    @pytest.mark.asyncio
    async def test_openrouter_puts_system_first(self):
        response = MagicMock()
        response.choices = [MagicMock(message=MagicMock(content=None))]
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)

        text = await make_completion_async(
            client, "openrouter", "claude-3.5-haiku", [{"role": "user", "content": "hi"}], system="sys"
        )

        assert text == ""
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[1]["content"] == "hi"


class TestProviderAICapability:
    @pytest.mark.asyncio
    async def test_unavailable_without_keys(self, no_llm_keys):
        ai = ProviderAICapability(LLMConfig())
        assert await ai.is_available() is False
        assert await capability_available(ai) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ["anthropic", "openrouter"])
    async def test_explicit_provider_without_its_key(self, no_llm_keys, monkeypatch, provider):
        other = "OPENROUTER_API_KEY" if provider == "anthropic" else "ANTHROPIC_API_KEY"
        monkeypatch.setenv(other, "unrelated-key")
        ai = ProviderAICapability(LLMConfig(provider=provider))
        assert await ai.is_available() is False

    @pytest.mark.asyncio
    async def test_unavailable_capability_skips_resolution_quietly(self, no_llm_keys):
        docs = {"ml.md": Document(normalized_path="ml.md", path="ml.md", name="machine learning", title="ML")}
        ai = ProviderAICapability(LLMConfig(provider="anthropic"))
        with patch("wikigraph.llm.get_async_client") as factory:
            added = await resolve_unmatched_links(
                ai, docs, LinkGraph(), [UnresolvedReference(source="a.md", raw_name="machine")]
            )
        assert added == 0
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_available_with_key(self, no_llm_keys, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-test")
        assert await ProviderAICapability(LLMConfig()).is_available() is True

    @pytest.mark.asyncio
    async def test_query_uses_configured_model(self, no_llm_keys):
        response = MagicMock()
        response.choices = [MagicMock(message=MagicMock(content='{"id": null}'))]
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)

        ai = ProviderAICapability(LLMConfig(model="claude-sonnet-4", max_tokens=50))
        with patch("wikigraph.llm.get_async_client", return_value=(client, "openrouter")) as factory:
            assert await ai.query("which?", system="sys") == '{"id": null}'
            await ai.query("again?")

        factory.assert_called_once()
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-sonnet-4"
        assert kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_broken_availability_check(self):
        ai = MagicMock()
        ai.is_available = AsyncMock(side_effect=RuntimeError("boom"))
        assert await capability_available(ai) is False
