"""Tests for the turn controller: host state updates, error text and persistence callback."""

import asyncio

import pytest

from persanna.agent.memory import MemoryWindow
from persanna.agent.turn import ERROR_PREFIX, TurnController
from persanna.bus.events import HostMessage, UsageEvent
from persanna.config.schema import Config
from persanna.session.state import ConversationState

from conftest import ScriptedProvider, action, final


def _state(**kwargs) -> ConversationState:
    return ConversationState(model="scripted-model", **kwargs)


class TestTurnController:

    @pytest.mark.asyncio
    async def test_successful_turn_appends_both_messages(self, fixed_now):
        provider = ScriptedProvider([action("calculator", "2+2"), final("The answer is 4.")])
        state = _state()
        completed = []
        controller = TurnController(state, provider, config=Config(), on_complete=completed.append, now=fixed_now)

        result = await controller.run_turn("  2+2?  ")

        assert result.ok
        assert result.text == "The answer is 4."
        assert result.elapsed is not None and result.elapsed >= 0
        assert [(m.type, m.content) for m in state.messages] == [("human", "2+2?"), ("ai", "The answer is 4.")]
        assert state.messages[0].time == "1:05:09 PM"
        assert len(completed) == 1
        assert completed[0] == state.messages

    @pytest.mark.asyncio
    async def test_budget_error_is_returned_as_text(self):
        provider = ScriptedProvider([action("calculator", "1+1")] * 3)
        state = _state(max_iterations=1)
        completed = []
        controller = TurnController(state, provider, config=Config(), on_complete=completed.append)

        result = await controller.run_turn("count forever")

        assert not result.ok
        assert result.text.startswith(ERROR_PREFIX)
        assert "iteration limit" in result.text
        assert result.elapsed is None
        assert [m.type for m in state.messages] == ["human"]
        assert completed == []

    @pytest.mark.asyncio
    async def test_model_error_message_is_preserved(self):
        provider = ScriptedProvider([RuntimeError("rate limited")])
        controller = TurnController(_state(), provider, config=Config())

        result = await controller.run_turn("hi")

        assert result.error is not None
        assert "rate limited" in result.text

    @pytest.mark.asyncio
    async def test_window_is_built_from_prior_history(self):
        provider = ScriptedProvider([final("again?")])
        history = [
            HostMessage(content="first", type="human", time=""),
            HostMessage(content="reply", type="ai", time=""),
        ]
        controller = TurnController(_state(messages=list(history)), provider, config=Config())

        await controller.run_turn("second")

        sent = [m["content"] for m in provider.calls[0]["messages"][1:]]
        assert sent == ["first", "reply", "second"]

    @pytest.mark.asyncio
    async def test_previous_human_message_heads_next_window(self):
        provider = ScriptedProvider([final("ok")])
        state = _state()
        await TurnController(state, provider, config=Config()).run_turn("hello\r\n\r\n\r\nthere  ")

        window = MemoryWindow.from_messages(state.messages[:1])
        assert window.turns[0].speaker == "human"
        assert window.turns[0].text == "hello\n\nthere"

    @pytest.mark.asyncio
    async def test_usage_accumulates_across_turns(self):
        provider = ScriptedProvider(
            [final("a"), action("calculator", "1+1"), final("b")],
            usage={"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10},
        )
        state = _state()
        events = []
        state.subscribe(lambda event, _: events.append(event))
        controller = TurnController(state, provider, config=Config())

        first = await controller.run_turn("one")
        second = await controller.run_turn("two")

        assert first.usage.total_tokens == 10
        assert second.usage.total_tokens == 20
        assert state.usage.total_tokens == 30
        assert state.usage.prompt_tokens == 21
        assert sum(isinstance(e, UsageEvent) for e in events) == 3

    @pytest.mark.asyncio
    async def test_active_tab_reaches_tools(self):
        provider = ScriptedProvider([action("acitve-tab-url-website-page", ""), final("You are on example.com")])
        state = _state(active_tab="https://example.com")
        await TurnController(state, provider, config=Config()).run_turn("where am I?")

        observation = provider.calls[1]["messages"][-1]["content"]
        assert "Current URL/Tab/Website/page:https://example.com" in observation

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialized(self):
        provider = ScriptedProvider([final("one"), final("two")], delay=0.01)
        state = _state()
        controller = TurnController(state, provider, config=Config())

        await asyncio.gather(controller.run_turn("first"), controller.run_turn("second"))

        assert [m.type for m in state.messages] == ["human", "ai", "human", "ai"]

    @pytest.mark.asyncio
    async def test_failing_persistence_callback_does_not_break_the_turn(self):
        def explode(messages):
            raise OSError("disk full")

        provider = ScriptedProvider([final("fine")])
        result = await TurnController(_state(), provider, config=Config(), on_complete=explode).run_turn("hi")

        assert result.ok
        assert result.text == "fine"
