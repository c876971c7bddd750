"""Tests for the LiteLLM provider with litellm calls mocked out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from persanna.errors import ModelCallError
from persanna.providers.litellm_provider import LiteLLMProvider


def _completion(content=None, tool_calls=None, usage=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)], usage=usage)


def _tool_call(name, arguments):
    return SimpleNamespace(id="call_9", function=SimpleNamespace(name=name, arguments=arguments))


class TestLiteLLMProvider:

    @pytest.mark.asyncio
    async def test_chat_passes_auth_and_parses_usage(self):
        provider = LiteLLMProvider(api_key="sk-test", api_base="https://proxy.example/v1", default_model="gpt-4o")
        usage = SimpleNamespace(prompt_tokens=11, completion_tokens=4, total_tokens=15)
        mock = AsyncMock(return_value=_completion(content="hello", usage=usage))

        with patch("persanna.providers.litellm_provider.acompletion", mock):
            response = await provider.chat([{"role": "user", "content": "hi"}])

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["api_base"] == "https://proxy.example/v1"
        assert "tools" not in kwargs
        assert response.content == "hello"
        assert response.usage == {"prompt_tokens": 11, "completion_tokens": 4, "total_tokens": 15}

    @pytest.mark.asyncio
    async def test_missing_usage_is_empty(self):
        provider = LiteLLMProvider(api_key="sk-test")
        with patch("persanna.providers.litellm_provider.acompletion", AsyncMock(return_value=_completion("x"))):
            response = await provider.chat([{"role": "user", "content": "hi"}])
        assert response.usage == {}

    @pytest.mark.asyncio
    async def test_tool_call_arguments(self):
        provider = LiteLLMProvider(api_key="sk-test")
        calls = [_tool_call("calculator", '{"input": "2+2"}'), _tool_call("date-time", "not json")]
        completion = _completion(tool_calls=calls, finish_reason="tool_calls")

        with patch("persanna.providers.litellm_provider.acompletion", AsyncMock(return_value=completion)):
            response = await provider.chat([], tools=[{"type": "function"}])

        assert response.has_tool_calls
        assert response.tool_calls[0].arguments == {"input": "2+2"}
        assert response.tool_calls[1].arguments == {"input": "not json"}

    @pytest.mark.asyncio
    async def test_failure_raises_model_call_error(self):
        provider = LiteLLMProvider(api_key="bad")
        failing = AsyncMock(side_effect=RuntimeError("AuthenticationError"))

        with patch("persanna.providers.litellm_provider.acompletion", failing):
            with pytest.raises(ModelCallError, match="AuthenticationError"):
                await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_embed_restores_order(self):
        provider = LiteLLMProvider(api_key="sk-test", embedding_model="text-embedding-3-small")
        data = [{"index": 1, "embedding": [0.0, 1.0]}, {"index": 0, "embedding": [1.0, 0.0]}]
        mock = AsyncMock(return_value=SimpleNamespace(data=data))

        with patch("persanna.providers.litellm_provider.aembedding", mock):
            vectors = await provider.embed(["a", "b"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        assert mock.call_args.kwargs["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_embed_empty_input(self):
        assert await LiteLLMProvider(api_key="sk-test").embed([]) == []
