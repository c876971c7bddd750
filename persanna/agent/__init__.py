"""
Agent 核心模块 —— persanna 的"大脑"。

本包包含单轮推理所需的全部核心组件：
- TurnController: 回合控制器，每条用户消息的入口（格式化 → 推理 → 回报结果）
- AgentExecutor: 推理循环（ReAct 状态机），负责调用 LLM、执行工具、追加观察
- ContextBuilder: 上下文构建器，拼装系统提示词、记忆窗口与本轮对话记录
- MemoryWindow: 有界记忆窗口
- UsageAccountant: token 用量记账器
"""

from persanna.agent.context import ContextBuilder
from persanna.agent.loop import AgentExecutor, LoopState
from persanna.agent.memory import ConversationTurn, MemoryWindow
from persanna.agent.parser import AgentStep, FinalAnswerStep, ToolCallStep, parse_step
from persanna.agent.turn import TurnController, TurnResult
from persanna.agent.usage import UsageAccountant

__all__ = [
    "AgentExecutor",
    "AgentStep",
    "ContextBuilder",
    "ConversationTurn",
    "FinalAnswerStep",
    "LoopState",
    "MemoryWindow",
    "ToolCallStep",
    "TurnController",
    "TurnResult",
    "UsageAccountant",
    "parse_step",
]
