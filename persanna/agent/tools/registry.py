"""
工具注册表模块 (agent/tools/registry.py)

模块职责：
    管理一轮对话中可用工具的注册表，提供注册、查找、描述和执行能力。
    是推理循环与具体工具实现之间的中间层。

执行结果采用带标签的联合类型 ToolOutcome，而不是抛异常：
    - ToolSuccess(tool_name, output)
    - ToolFailure(error)    # error 为 ToolError 或 UnknownToolError
    推理循环对 ToolOutcome 做穷尽匹配，把失败转换为给模型看的观察结果。
    注册表本身从不重试失败的工具调用。

设计模式对比（Java 视角）：
    类似于 Spring 中的 BeanFactory / ServiceLocator 模式：
    - register() 相当于注册一个 Bean
    - get() 相当于 getBean()
    - ToolOutcome 类似于 Vavr 的 Try<String>
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from persanna.agent.tools.base import Tool
from persanna.errors import ToolError, UnknownToolError


@dataclass(frozen=True)
class ToolSuccess:
    """工具执行成功。"""

    tool_name: str
    output: str


@dataclass(frozen=True)
class ToolFailure:
    """工具执行失败（含未知工具）。"""

    error: ToolError

    @property
    def tool_name(self) -> str:
        return self.error.tool_name


ToolOutcome = ToolSuccess | ToolFailure


class ToolRegistry:
    """
    Agent 工具注册表。

    内部使用 dict[str, Tool] 存储，以工具名称为键，保持注册顺序。
    """

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """
        注册一个工具。同名工具已存在时会被覆盖（后注册的优先），保证名称唯一。
        """
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        """按名称获取工具实例，未找到返回 None。"""
        return self._tools.get(name)

    def describe(self) -> str:
        """
        渲染工具清单文本（每行 "> name: description"），写入系统提示词。
        """
        return "\n".join(f"> {tool.name}: {tool.description}" for tool in self._tools.values())

    def get_definitions(self) -> list[dict[str, Any]]:
        """获取所有工具的 OpenAI Function Calling 格式定义。"""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, argument: str) -> ToolOutcome:
        """
        按名称执行工具。

        参数:
            name: 工具名称（模型给出）
            argument: 工具输入（模型给出）

        返回:
            ToolSuccess 或 ToolFailure；不会因为工具错误而抛异常
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {name}")
            return ToolFailure(UnknownToolError(name, self.tool_names))

        try:
            output = await tool.execute(argument)
        except ToolError as e:
            logger.warning(f"Tool {name} failed: {e}")
            return ToolFailure(e)
        return ToolSuccess(tool_name=name, output=output)

    @property
    def tool_names(self) -> list[str]:
        """获取所有已注册工具的名称列表。"""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
