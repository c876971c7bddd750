"""
工具基类模块 (agent/tools/base.py)

模块职责：
    定义所有 Agent 工具的抽象基类 Tool。
    每个工具只接受"一个字符串参数"，返回一个字符串结果：
      - name: 工具名称（在注册表内唯一）
      - description: 自然语言描述，模型据此判断何时使用该工具
      - run(argument): 实际执行逻辑（异步，可能发起网络请求或再次调用模型）

    基类还提供 to_schema()，把工具转换为 OpenAI Function Calling 格式，
    以便支持原生工具调用的模型直接使用。

在架构中的位置：
    Tool 是工具系统的最底层抽象；ToolRegistry 持有 Tool 实例集合，
    推理循环通过 registry 间接调用 Tool。

设计模式对比（Java 视角）：
    相当于 Java 中的 interface + 模板方法模式：
    - name/description 相当于抽象的 getter
    - run() 相当于核心业务方法
    - execute() 是模板方法，统一把异常包装成 ToolError
"""

from abc import ABC, abstractmethod
from typing import Any

from persanna.errors import ToolError


class Tool(ABC):
    """
    Agent 工具的抽象基类。

    子类可以用类属性直接定义 name/description（值固定时），
    也可以用 @property 动态生成。
    """

    # 单一字符串参数的 JSON Schema
    parameters: dict[str, Any] = {
        "type": "object",
        "properties": {
            "input": {"type": "string", "description": "The input to the tool"},
        },
        "required": ["input"],
    }

    @property
    @abstractmethod
    def name(self) -> str:
        """工具名称，模型在调用时使用此名称。"""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """工具功能描述，模型据此判断何时调用该工具。"""
        pass

    @abstractmethod
    async def run(self, argument: str) -> str:
        """
        执行工具的核心逻辑。

        参数:
            argument: 模型给出的单一字符串输入

        返回:
            str: 工具结果，会作为"观察结果"回传给模型

        异常:
            ToolError 或任意异常；由 execute() 统一包装
        """
        pass

    async def execute(self, argument: str) -> str:
        """
        运行工具，并把任何异常统一包装为携带工具名与原因的 ToolError。
        """
        try:
            return await self.run(argument)
        except ToolError:
            raise
        except Exception as e:
            raise ToolError(self.name, str(e) or type(e).__name__, cause=e) from e

    def to_schema(self) -> dict[str, Any]:
        """
        将工具转换为 OpenAI Function Calling 格式。

        返回值示例:
            {"type": "function", "function": {"name": "calculator", "description": "...", "parameters": {...}}}
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            }
        }
