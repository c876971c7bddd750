"""
回合控制器模块 —— 每条用户消息的入口。

TurnController.run_turn(user_text) 的处理顺序：
1. 格式化输入（format_response）
2. 用"本条消息之前"的宿主消息记录构建记忆窗口
3. 派发 NewMessageEvent(human)
4. 用显式的 ToolContext 构建本轮工具注册表
5. 运行推理循环
6. 成功：派发 NewMessageEvent(ai)，调用 on_complete(全部消息)，返回回答与耗时
   失败：返回 "An error occurred while fetching the response from the API:  <原因>"，
        不追加助手消息，也不抛异常

并发说明：
    同一个 ConversationState 上同时运行两个回合是不安全的。
    TurnController 用 asyncio.Lock 把对同一个控制器的并发调用串行化；
    多个控制器共享同一个状态时，仍需要宿主自行加锁。
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from loguru import logger

from persanna.agent.context import ContextBuilder
from persanna.agent.loop import AgentExecutor
from persanna.agent.memory import MemoryWindow
from persanna.agent.tools import ToolContext, build_tools
from persanna.agent.tools.registry import ToolRegistry
from persanna.agent.usage import UsageAccountant
from persanna.bus.events import HostMessage, NewMessageEvent, UsageCounters
from persanna.config.schema import Config
from persanna.providers.base import LLMProvider
from persanna.session.state import ConversationState
from persanna.utils.helpers import current_time, format_response

ERROR_PREFIX = "An error occurred while fetching the response from the API:  "


@dataclass
class TurnResult:
    """
    一轮对话的结果。

    属性:
        text: 回答文本，或可直接展示的错误文本
        elapsed: 成功时的耗时（秒）
        error: 失败时的错误信息
        usage: 本轮消耗的 token
    """

    text: str
    elapsed: float | None = None
    error: str | None = None
    usage: UsageCounters = field(default_factory=UsageCounters)

    @property
    def ok(self) -> bool:
        return self.error is None


class TurnController:
    """
    回合控制器。

    属性:
        state: 宿主的会话状态
        provider: LLM 提供者
        config: 根配置（agent 参数、人设、工具参数）
        on_complete: 每个成功回合结束后调用一次，参数为全部消息
    """

    def __init__(
        self,
        state: ConversationState,
        provider: LLMProvider,
        config: Config | None = None,
        on_complete: Callable[[list[HostMessage]], Any] | None = None,
        now: Callable[[], datetime] = datetime.now,
        tool_builder: Callable[[ToolContext], ToolRegistry] = build_tools,
    ):
        self.state = state
        self.provider = provider
        self.config = config or Config()
        self.on_complete = on_complete
        self.now = now
        self.tool_builder = tool_builder
        self._lock = asyncio.Lock()

    async def run_turn(self, user_text: str, cancel_event: asyncio.Event | None = None) -> TurnResult:
        """运行一轮对话，永远返回 TurnResult 而不是抛异常。"""
        async with self._lock:
            return await self._run(user_text, cancel_event)

    async def _run(self, user_text: str, cancel_event: asyncio.Event | None) -> TurnResult:
        defaults = self.config.agents.defaults
        started = time.monotonic()
        accountant = UsageAccountant(dispatch=self.state.dispatch)

        text = format_response(user_text)
        window = MemoryWindow.from_messages(
            self.state.messages, k=defaults.memory_window, raw_limit=defaults.history_limit
        )
        self.state.dispatch(NewMessageEvent(HostMessage(content=text, type="human", time=current_time(self.now))))

        preview = text[:80] + "..." if len(text) > 80 else text
        logger.info(f"Processing turn ({len(window)} turn(s) in window): {preview}")

        try:
            tools = self.tool_builder(ToolContext(
                provider=self.provider,
                model=self.state.model,
                embedding_model=defaults.embedding_model,
                active_tab=self.state.active_tab,
                persona=self.config.persona,
                now=self.now,
                web=self.config.tools.web,
                on_usage=accountant.record,
            ))
            executor = AgentExecutor(
                provider=self.provider,
                tools=tools,
                context=ContextBuilder(self.config.persona),
                model=self.state.model or defaults.model,
                max_iterations=self.state.max_iterations or defaults.max_iterations,
                timeout=self.state.timeout or defaults.timeout,
                max_tokens=defaults.max_tokens,
                temperature=defaults.temperature,
                parse_retries=defaults.parse_retries,
                accountant=accountant,
                native_tools=defaults.native_tools,
            )
            answer = await executor.run(text, window=window, cancel_event=cancel_event)
        except Exception as e:
            logger.error(f"Turn failed: {type(e).__name__}: {e}")
            return TurnResult(text=f"{ERROR_PREFIX}{e}", error=str(e), usage=accountant.totals)

        answer = format_response(answer)
        self.state.dispatch(NewMessageEvent(HostMessage(content=answer, type="ai", time=current_time(self.now))))
        elapsed = time.monotonic() - started
        logger.info(f"Turn completed in {elapsed:.2f}s ({accountant.totals.total_tokens} tokens)")

        if self.on_complete:
            try:
                self.on_complete(list(self.state.messages))
            except Exception as e:
                logger.error(f"on_complete callback failed: {e}")

        return TurnResult(text=answer, elapsed=elapsed, usage=accountant.totals)
