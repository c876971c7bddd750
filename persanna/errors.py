"""
persanna 异常体系 (errors.py)

异常分为两类：
- 可恢复（工具级）：ToolError / UnknownToolError
  在推理循环内部被转换为"观察结果"追加到对话记录中，模型可以据此自我纠正。
- 致命（循环级）：ModelCallError / BudgetExceededError / ParseError / CancelledTurnError
  立即终止本轮推理，向上传播到 TurnController，由其转换为用户可见的错误文本。

类比 Java：类似于 checked exception（可恢复）与 RuntimeException（致命）的划分，
只是这里通过 ToolOutcome 返回值而非 throws 声明来表达"可恢复"。
"""


class AgentError(Exception):
    """persanna 所有异常的基类。"""


class ToolError(AgentError):
    """
    工具执行失败（网络错误、解析错误或工具内部逻辑错误）。

    属性:
        tool_name: 失败的工具名称
        cause: 底层异常（可能为 None）
    """

    def __init__(self, tool_name: str, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.tool_name = tool_name
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.tool_name} failed: {self.args[0]}"


class UnknownToolError(ToolError):
    """模型请求了注册表中不存在的工具。"""

    def __init__(self, tool_name: str, available: list[str] | None = None):
        names = ", ".join(available or []) or "none"
        super().__init__(tool_name, f"'{tool_name}' is not a valid tool, try one of [{names}].")
        self.available = list(available or [])

    def __str__(self) -> str:
        return self.args[0]


class ModelCallError(AgentError):
    """语言模型请求本身失败（鉴权、网络、限流）。对本轮致命，不做重试。"""


class BudgetExceededError(AgentError):
    """
    在给出最终回答之前耗尽了预算。

    属性:
        reason: "iterations" 或 "timeout"
    """

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


class ParseError(AgentError):
    """模型输出无法解析为合法的 AgentStep。"""

    def __init__(self, text: str):
        super().__init__(f"Could not parse LLM output: {text}")
        self.text = text


class CancelledTurnError(AgentError):
    """宿主在本轮进行中请求取消。"""
