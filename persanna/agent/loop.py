"""
推理循环模块 —— persanna 的核心处理引擎。

AgentExecutor 采用经典的 ReAct（Reasoning + Acting）范式驱动单轮对话：
  构建上下文 → LLM 推理 → 解析 AgentStep → 执行工具 → 追加观察 → 再次推理 …

状态机（LoopState）：
  DECIDING        等待模型输出
  EXECUTING_TOOL  工具调用已派发
  DONE            得到最终回答
  FAILED          致命错误或预算耗尽

终止条件：
  - 最终回答 → DONE
  - 迭代次数达到 max_iterations 仍无回答 → BudgetExceededError("iterations")
  - 自本轮开始的墙钟时间超过 timeout → BudgetExceededError("timeout")，
    正在进行的模型/工具调用被放弃（迟到的结果直接丢弃）
  - 模型调用失败 → ModelCallError，立即终止，不重试
  - 连续无法解析的输出超过 parse_retries 次 → ParseError
  - 宿主设置了 cancel_event → CancelledTurnError

工具失败（含未知工具）不会终止循环，而是作为观察结果交给模型自我纠正。
所有步骤严格串行：每次决策都依赖上一次观察已经写入对话记录。

【Java 开发者类比】
- AgentExecutor 类似一个有状态的 Service，run() 是一次完整的业务处理
- _bounded() 类似 CompletableFuture.orTimeout() + 取消令牌
"""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from persanna.agent.context import ContextBuilder
from persanna.agent.memory import MemoryWindow
from persanna.agent.parser import FinalAnswerStep, ToolCallStep, parse_step
from persanna.agent.tools.registry import ToolFailure, ToolRegistry
from persanna.agent.usage import UsageAccountant
from persanna.config.schema import DEFAULT_MAX_ITERATIONS, DEFAULT_TIMEOUT_S
from persanna.errors import (
    AgentError,
    BudgetExceededError,
    CancelledTurnError,
    ModelCallError,
    ParseError,
)
from persanna.providers.base import LLMProvider, LLMResponse

T = TypeVar("T")


class LoopState(str, Enum):
    """推理循环的状态。"""

    DECIDING = "deciding"
    EXECUTING_TOOL = "executing_tool"
    DONE = "done"
    FAILED = "failed"


class AgentExecutor:
    """
    单轮推理循环。

    核心属性：
    - provider: LLM 提供者
    - tools: 本轮的工具注册表
    - context: 上下文构建器
    - accountant: token 用量记账器
    - state: 当前 LoopState（供宿主/测试观察）
    - iterations: 本次 run() 已经执行的决策次数

    注意：一个 AgentExecutor 实例同一时间只能运行一个 run()。
    """

    def __init__(
        self,
        provider: LLMProvider,
        tools: ToolRegistry,
        context: ContextBuilder | None = None,
        model: str | None = None,
        max_iterations: int | None = None,
        timeout: float | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        parse_retries: int = 1,
        accountant: UsageAccountant | None = None,
        native_tools: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        参数：
            max_iterations: 决策次数上限，None 或 <= 0 时使用默认值 15
            timeout: 墙钟超时（秒），None 或 <= 0 时使用默认值 30
            parse_retries: 输出无法解析时允许的纠正重试次数
            native_tools: 是否把工具定义以 function calling 形式传给模型
            clock: 单调时钟（测试时可替换）
        """
        self.provider = provider
        self.tools = tools
        self.context = context or ContextBuilder()
        self.model = model or provider.get_default_model()
        self.max_iterations = max_iterations if max_iterations and max_iterations > 0 else DEFAULT_MAX_ITERATIONS
        self.timeout = timeout if timeout and timeout > 0 else DEFAULT_TIMEOUT_S
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.parse_retries = max(parse_retries, 0)
        self.accountant = accountant or UsageAccountant()
        self.native_tools = native_tools
        self._clock = clock

        self.state = LoopState.DECIDING
        self.iterations = 0

    async def run(
        self,
        user_input: str,
        window: MemoryWindow | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """
        运行推理循环直到得到最终回答。

        参数：
            user_input: 本轮（已格式化的）用户输入
            window: 记忆窗口
            cancel_event: 可选的取消令牌

        返回：
            最终回答文本

        异常：
            BudgetExceededError / ModelCallError / ParseError / CancelledTurnError
        """
        self.state = LoopState.DECIDING
        self.iterations = 0
        deadline = self._clock() + self.timeout
        transcript: list[dict[str, Any]] = []
        parse_failures = 0

        try:
            while True:
                if self.iterations >= self.max_iterations:
                    raise BudgetExceededError(
                        "iterations",
                        f"Agent stopped due to iteration limit ({self.max_iterations}) without a final answer.",
                    )
                self.iterations += 1
                self.state = LoopState.DECIDING

                messages = self.context.build_messages(self.tools, user_input, window, transcript)
                response = await self._bounded(self._decide(messages), deadline, cancel_event)
                self.accountant.record(response.usage)

                try:
                    step = parse_step(response)
                except ParseError:
                    if parse_failures >= self.parse_retries:
                        raise
                    parse_failures += 1
                    logger.warning(f"Unparseable model output (retry {parse_failures}/{self.parse_retries})")
                    self.context.add_parse_correction(transcript, response.content)
                    continue

                match step:
                    case FinalAnswerStep(text=text):
                        self.state = LoopState.DONE
                        logger.info(f"Final answer after {self.iterations} iteration(s)")
                        return text
                    case ToolCallStep(tool_name=name, tool_input=argument, log=log):
                        self.state = LoopState.EXECUTING_TOOL
                        logger.info(f"Tool call: {name}({argument[:200]})")
                        outcome = await self._bounded(self.tools.execute(name, argument), deadline, cancel_event)
                        if isinstance(outcome, ToolFailure):
                            logger.debug(f"Reporting tool failure to the model: {outcome.error}")
                        self.context.add_tool_step(transcript, log, outcome)
        except AgentError:
            self.state = LoopState.FAILED
            raise

    async def _decide(self, messages: list[dict[str, Any]]) -> LLMResponse:
        """调用一次模型；任何提供者异常都视为 ModelCallError。"""
        try:
            return await self.provider.chat(
                messages=messages,
                tools=self.tools.get_definitions() if self.native_tools and len(self.tools) else None,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except ModelCallError:
            raise
        except Exception as e:
            raise ModelCallError(f"Error calling LLM: {e}") from e

    async def _bounded(
        self,
        awaitable: Awaitable[T],
        deadline: float,
        cancel_event: asyncio.Event | None,
    ) -> T:
        """
        在剩余时间内等待一次 I/O；超时或被取消时放弃该调用。
        """
        task = asyncio.ensure_future(awaitable)
        remaining = deadline - self._clock()
        if remaining <= 0 or (cancel_event is not None and cancel_event.is_set()):
            await self._abandon(task)
            raise self._interrupt(cancel_event)

        waiters: set[asyncio.Future[Any]] = {task}
        canceller = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        if canceller is not None:
            waiters.add(canceller)

        try:
            done, _ = await asyncio.wait(waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if canceller is not None:
                canceller.cancel()

        if task in done:
            return task.result()
        await self._abandon(task)
        raise self._interrupt(cancel_event)

    def _interrupt(self, cancel_event: asyncio.Event | None) -> AgentError:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Turn cancelled by host")
            return CancelledTurnError("Turn cancelled by host.")
        logger.warning(f"Turn timed out after {self.timeout:g}s")
        return BudgetExceededError("timeout", f"Agent stopped due to timeout ({self.timeout:g}s) without a final answer.")

    @staticmethod
    async def _abandon(task: asyncio.Future[Any]) -> None:
        """取消一个进行中的调用，并丢弃它的结果。"""
        task.cancel()
        results = await asyncio.gather(task, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.debug(f"Abandoned call finished with {type(result).__name__}: {result}")

