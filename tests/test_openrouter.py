"""Tests for the OpenRouter rewrite client."""

from unittest.mock import AsyncMock, patch

import pytest

from content_restorer.clients.openrouter import (
    DEFAULT_MODEL_TIERS,
    OpenRouterClient,
    clean_response,
    is_refusal,
)
from content_restorer.core.errors import RewriteError
from content_restorer.models.restoration import PromptStrictness


def completion(content):
    return {"choices": [{"message": {"content": content}}]}


class TestCleanResponse:
    def test_strips_preamble(self):
        answer = "Here is the restored text:\n\nThe harbour town woke slowly."
        assert clean_response(answer) == "The harbour town woke slowly."

    def test_strips_code_fence(self):
        answer = "```markdown\nThe harbour town.\n\nThe pier.\n```"
        assert clean_response(answer) == "The harbour town.\n\nThe pier."

    def test_leaves_plain_text_alone(self):
        text = "The harbour town woke slowly.\n\nNobody noticed."
        assert clean_response(text) == text

    def test_sentence_ending_in_colon_is_kept(self):
        text = "She wrote three words on the map:\n\nNorth, light, home."
        assert clean_response(text) == text


def test_refusal_detection():
    assert is_refusal("I'm unable to help with rewriting this article.")
    assert not is_refusal("The harbour town woke slowly under a pale sky.")


class TestOpenRouterClient:
    def test_resolves_model_tiers(self, settings):
        client = OpenRouterClient("key", settings)

        assert client.resolve_model("flagship") == DEFAULT_MODEL_TIERS["flagship"]
        assert client.resolve_model("anthropic/claude-3-haiku") == "anthropic/claude-3-haiku"
        with pytest.raises(RewriteError):
            client.resolve_model("unknown")

    def test_tier_overrides(self):
        client = OpenRouterClient("key", model_tiers={"lite": "mistralai/mistral-7b-instruct"})
        assert client.resolve_model("lite") == "mistralai/mistral-7b-instruct"
        assert client.min_request_interval == 3.2

    def test_prompts_differ_by_strictness(self):
        strict = OpenRouterClient.build_prompt(PromptStrictness.STRICT, "chunk")
        soft = OpenRouterClient.build_prompt(PromptStrictness.SOFT, "chunk")

        assert strict != soft
        assert strict.endswith("chunk")
        assert "summarize" in strict

    @pytest.mark.asyncio
    async def test_rewrite_returns_cleaned_text(self, settings):
        client = OpenRouterClient("key", settings)
        request = AsyncMock(return_value=completion("Sure, here you go:\nRestored chunk."))

        with patch.object(client, "_make_single_request", request):
            result = await client.rewrite(PromptStrictness.STRICT, "Broken chunk.", "fast")

        assert result == "Restored chunk."
        payload = request.call_args.args[0]
        assert payload["model"] == DEFAULT_MODEL_TIERS["fast"]
        assert payload["messages"][0]["content"].endswith("Broken chunk.")

    @pytest.mark.asyncio
    async def test_refusal_raises(self, settings):
        client = OpenRouterClient("key", settings)
        refusal = completion("I cannot help with that request.")

        with patch.object(client, "_make_single_request", AsyncMock(return_value=refusal)):
            with pytest.raises(RewriteError, match="refused"):
                await client.rewrite(PromptStrictness.SOFT, "chunk")

    @pytest.mark.asyncio
    async def test_empty_answer_raises(self, settings):
        client = OpenRouterClient("key", settings)

        with patch.object(client, "_make_single_request", AsyncMock(return_value=completion("  "))):
            with pytest.raises(RewriteError, match="empty response"):
                await client.rewrite(PromptStrictness.SOFT, "chunk")

    @pytest.mark.asyncio
    async def test_malformed_answer_raises(self, settings):
        client = OpenRouterClient("key", settings)

        with patch.object(client, "_make_single_request", AsyncMock(return_value={"choices": []})):
            with pytest.raises(RewriteError, match="Malformed"):
                await client.rewrite(PromptStrictness.SOFT, "chunk")

    @pytest.mark.asyncio
    async def test_missing_key_raises(self):
        with pytest.raises(RewriteError):
            await OpenRouterClient("").rewrite(PromptStrictness.SOFT, "chunk")

    @pytest.mark.asyncio
    async def test_connection_check(self, settings):
        client = OpenRouterClient("key", settings)

        with patch.object(client, "_make_single_request", AsyncMock(return_value=completion("Hello!"))):
            assert await client.test_connection() is True

        with patch.object(
            client, "_make_single_request", AsyncMock(side_effect=RewriteError("HTTP 500"))
        ):
            assert await client.test_connection() is False
