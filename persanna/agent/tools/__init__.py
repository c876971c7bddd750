"""
Agent 工具子包 (agent/tools)

模块职责：
    定义 Agent 可调用的"工具"（Tool）以及每轮构建工具注册表的纯函数 build_tools()。
    工具系统采用经典的"注册表模式"：
      - Tool（基类）：统一接口（名称、描述、单字符串输入、执行方法）
      - ToolRegistry（注册表）：按名称查找并执行，返回 ToolOutcome

每轮重建：
    工具实例会闭包本轮的宿主上下文（活动标签页、人设、时钟），
    所以 TurnController 每一轮都用显式的 ToolContext 调用 build_tools() 重新构建，
    不跨轮保留任何状态。

内置工具清单：
    - web-browser：抓取并总结网页
    - calculator：计算数学表达式
    - acitve-tab-url-website-page：当前活动标签页
    - date-time：当前日期时间
    - persona：助手自我介绍
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from persanna.agent.tools.base import Tool
from persanna.agent.tools.calculator import CalculatorTool
from persanna.agent.tools.context import ActiveTabTool, DateTimeTool, PersonaTool
from persanna.agent.tools.registry import ToolFailure, ToolOutcome, ToolRegistry, ToolSuccess
from persanna.agent.tools.web import WebBrowserTool
from persanna.config.schema import PersonaConfig, WebBrowserConfig
from persanna.providers.base import LLMProvider


@dataclass
class ToolContext:
    """
    构建本轮工具所需的全部上下文。

    属性:
        provider: 需要再次调用模型的工具（web-browser）使用的提供者
        model: 工具内部调用模型时使用的模型名称
        embedding_model: 内容排序使用的向量模型
        active_tab: 当前活动标签页 URL
        persona: 助手人设
        now: 时钟函数（测试时可替换）
        web: 网页浏览参数
        on_usage: 工具内部模型调用的用量回调
    """

    provider: LLMProvider
    model: str | None = None
    embedding_model: str | None = None
    active_tab: str = ""
    persona: PersonaConfig = field(default_factory=PersonaConfig)
    now: Callable[[], datetime] = datetime.now
    web: WebBrowserConfig = field(default_factory=WebBrowserConfig)
    on_usage: Callable[[dict[str, int]], object] | None = None


def build_tools(context: ToolContext) -> ToolRegistry:
    """根据本轮上下文构建一个全新的工具注册表（无副作用）。"""
    return ToolRegistry([
        WebBrowserTool(
            provider=context.provider,
            model=context.model,
            embedding_model=context.embedding_model,
            config=context.web,
            on_usage=context.on_usage,
        ),
        CalculatorTool(),
        ActiveTabTool(context.active_tab),
        DateTimeTool(context.now),
        PersonaTool(context.persona),
    ])


__all__ = [
    "Tool",
    "ToolRegistry",
    "ToolOutcome",
    "ToolSuccess",
    "ToolFailure",
    "ToolContext",
    "build_tools",
]
