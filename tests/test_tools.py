"""Tests for the tool registry, the built-in tools and the per-turn builder."""

import pytest

from persanna.agent.tools import ToolContext, build_tools
from persanna.agent.tools.base import Tool
from persanna.agent.tools.calculator import CalculatorTool, evaluate
from persanna.agent.tools.context import ActiveTabTool, DateTimeTool, PersonaTool
from persanna.agent.tools.registry import ToolFailure, ToolRegistry, ToolSuccess
from persanna.config.schema import PersonaConfig
from persanna.errors import ToolError, UnknownToolError

from conftest import ScriptedProvider


class EchoTool(Tool):
    name = "echo"
    description = "Echo the input back"

    def __init__(self):
        self.calls = 0

    async def run(self, argument: str) -> str:
        self.calls += 1
        return argument


class BrokenTool(Tool):
    name = "broken"
    description = "Always fails"

    async def run(self, argument: str) -> str:
        raise RuntimeError("boom")


class TestToolRegistry:

    @pytest.mark.asyncio
    async def test_execute_success(self):
        registry = ToolRegistry([EchoTool()])
        outcome = await registry.execute("echo", "hello")

        assert outcome == ToolSuccess(tool_name="echo", output="hello")

    @pytest.mark.asyncio
    async def test_unknown_tool_is_a_failure_not_an_exception(self):
        registry = ToolRegistry([EchoTool()])
        outcome = await registry.execute("nope", "x")

        assert isinstance(outcome, ToolFailure)
        assert isinstance(outcome.error, UnknownToolError)
        assert outcome.tool_name == "nope"
        assert "'nope' is not a valid tool" in str(outcome.error)
        assert outcome.error.available == ["echo"]

    @pytest.mark.asyncio
    async def test_tool_exception_is_wrapped_with_name_and_cause(self):
        registry = ToolRegistry([BrokenTool()])
        outcome = await registry.execute("broken", "x")

        assert isinstance(outcome, ToolFailure)
        assert isinstance(outcome.error, ToolError)
        assert outcome.error.tool_name == "broken"
        assert isinstance(outcome.error.cause, RuntimeError)
        assert str(outcome.error) == "broken failed: boom"

    @pytest.mark.asyncio
    async def test_failed_tool_is_not_retried(self):
        calls = []

        class CountingBroken(BrokenTool):
            async def run(self, argument: str) -> str:
                calls.append(argument)
                return await super().run(argument)

        registry = ToolRegistry([CountingBroken()])
        await registry.execute("broken", "x")
        assert calls == ["x"]

    def test_later_registration_replaces_earlier(self):
        first, second = EchoTool(), EchoTool()
        registry = ToolRegistry([first, second])

        assert len(registry) == 1
        assert registry.get("echo") is second

    def test_describe_and_definitions(self):
        registry = ToolRegistry([EchoTool(), CalculatorTool()])

        assert registry.describe().splitlines() == [
            "> echo: Echo the input back",
            f"> calculator: {CalculatorTool.description}",
        ]
        definitions = registry.get_definitions()
        assert definitions[0]["function"]["name"] == "echo"
        assert definitions[0]["function"]["parameters"]["required"] == ["input"]

    def test_empty_registry(self):
        registry = ToolRegistry()
        assert registry.describe() == ""
        assert registry.tool_names == []
        assert "echo" not in registry


class TestCalculator:

    @pytest.mark.parametrize("expression, expected", [
        ("2+2", 4),
        ("(3 + 4) * 2", 14),
        ("2^10", 1024),
        ("7 / 2", 3.5),
        ("-3 + 5", 2),
        ("sqrt(16)", 4.0),
        ("10 % 4", 2),
    ])
    def test_evaluate(self, expression, expected):
        assert evaluate(expression) == expected

    @pytest.mark.parametrize("expression", ["", "__import__('os')", "a + 1", "2 +", "9 ** 99999"])
    def test_rejects_invalid_input(self, expression):
        with pytest.raises(ValueError):
            evaluate(expression)

    @pytest.mark.parametrize("expression", ["(10**10000)**10000", "(9**9999)*(9**9999)*(9**9999)*(9**9999)"])
    def test_rejects_huge_results_before_computing(self, expression):
        with pytest.raises(ValueError, match="Result too large"):
            evaluate(expression)

    def test_large_but_bounded_power(self):
        assert evaluate("2**1000") == 2 ** 1000

    @pytest.mark.asyncio
    async def test_tool_formats_whole_numbers(self):
        assert await CalculatorTool().execute("2+2") == "4"
        assert await CalculatorTool().execute("sqrt(16)") == "4"

    @pytest.mark.asyncio
    async def test_division_by_zero_becomes_tool_error(self):
        with pytest.raises(ToolError) as exc_info:
            await CalculatorTool().execute("1/0")
        assert exc_info.value.tool_name == "calculator"


class TestContextTools:

    @pytest.mark.asyncio
    async def test_active_tab(self):
        tool = ActiveTabTool("https://example.com/page")
        assert await tool.execute("") == "Current URL/Tab/Website/page:https://example.com/page"

    @pytest.mark.asyncio
    async def test_date_time(self, fixed_now):
        assert await DateTimeTool(fixed_now).execute("") == " Date: 03/09/2024;  Time: 1:05:09 PM;"

    @pytest.mark.asyncio
    async def test_persona(self):
        persona = PersonaConfig(name="Testa", likes=["Tea"])
        text = await PersonaTool(persona).execute("who are you?")
        assert "My Name Testa" in text
        assert "I like Tea." in text

    @pytest.mark.parametrize("likes, expected", [
        (["Tea", "Cats"], "I like Tea, and Cats. "),
        (["Tea", "Cats", "Rain"], "I like Tea, Cats, and Rain. "),
    ])
    def test_persona_likes(self, likes, expected):
        assert expected in PersonaConfig(likes=likes).describe()

    def test_persona_without_likes(self):
        text = PersonaConfig(likes=[]).describe()
        assert "I like" not in text
        assert "I am Powered by OpenAI API and LiteLLM. I'm normally Happy" in text


class TestBuildTools:

    def test_builds_all_builtin_tools(self):
        registry = build_tools(ToolContext(provider=ScriptedProvider()))

        assert registry.tool_names == [
            "web-browser",
            "calculator",
            "acitve-tab-url-website-page",
            "date-time",
            "persona",
        ]

    @pytest.mark.asyncio
    async def test_each_build_captures_its_own_turn_state(self):
        provider = ScriptedProvider()
        first = build_tools(ToolContext(provider=provider, active_tab="https://a.example"))
        second = build_tools(ToolContext(provider=provider, active_tab="https://b.example"))

        first_tab = await first.execute("acitve-tab-url-website-page", "")
        second_tab = await second.execute("acitve-tab-url-website-page", "")

        assert first_tab.output.endswith("https://a.example")
        assert second_tab.output.endswith("https://b.example")
