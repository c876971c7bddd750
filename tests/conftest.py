"""Shared fixtures: a scripted provider that replays queued responses."""

import asyncio
import json
from datetime import datetime
from typing import Any

import pytest

from persanna.providers.base import LLMProvider, LLMResponse, ToolCallRequest


def action(name: str, action_input: str, fenced: bool = True) -> str:
    """Render a JSON action blob the way a chat model would answer."""
    blob = json.dumps({"action": name, "action_input": action_input})
    return f"```json\n{blob}\n```" if fenced else blob


def final(text: str) -> str:
    return action("Final Answer", text)


class ScriptedProvider(LLMProvider):
    """LLMProvider that returns queued responses and records every request."""

    def __init__(self, responses: list[Any] | None = None, delay: float = 0.0, usage: dict[str, int] | None = None):
        super().__init__(api_key="test")
        self.responses = list(responses or [])
        self.delay = delay
        self.usage = usage
        self.calls: list[dict[str, Any]] = []
        self.embed_calls: list[list[str]] = []
        self.vectors: dict[str, list[float]] = {}

    def push(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def chat(self, messages, tools=None, model=None, max_tokens=2048, temperature=0.7) -> LLMResponse:
        self.calls.append({"messages": messages, "tools": tools, "model": model})
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.responses:
            raise AssertionError("ScriptedProvider ran out of responses")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, LLMResponse):
            return item
        return LLMResponse(content=item, usage=dict(self.usage or {}))

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        self.embed_calls.append(list(texts))
        return [self.vectors.get(t, [0.0, 1.0]) for t in texts]

    def get_default_model(self) -> str:
        return "scripted-model"


def tool_call_response(name: str, arguments: dict[str, Any], content: str | None = None) -> LLMResponse:
    return LLMResponse(
        content=content,
        tool_calls=[ToolCallRequest(id="call_1", name=name, arguments=arguments)],
        finish_reason="tool_calls",
    )


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def fixed_now():
    return lambda: datetime(2024, 3, 9, 13, 5, 9)
