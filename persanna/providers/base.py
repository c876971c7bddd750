"""
LLM 提供者基类定义模块。

本模块定义了与大语言模型交互的核心抽象接口，类似于 Java 中的 Interface + DTO 模式：
- ToolCallRequest : LLM 返回的原生工具调用请求（function calling）
- LLMResponse     : LLM 的统一响应格式（文本内容、工具调用、token 用量）
- LLMProvider     : 抽象基类，定义了所有 LLM 提供者必须实现的接口

架构角色：
  TurnController → AgentExecutor → LLMProvider.chat() → LLM API → LLMResponse → 解析为 AgentStep
  网页浏览工具 → LLMProvider.embed() → 向量 → 相关段落排序

与调用方的约定：chat()/embed() 失败时抛出 ModelCallError，而不是把错误塞进 content。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCallRequest:
    """
    LLM 返回的原生工具调用请求。

    属性：
        id: 工具调用的唯一标识符（由 LLM API 生成）
        name: 要调用的工具名称
        arguments: 工具调用的参数字典
    """
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LLMResponse:
    """
    LLM 的统一响应数据结构。

    属性：
        content: LLM 返回的文本内容（只返回工具调用时可能为 None）
        tool_calls: 原生工具调用列表
        finish_reason: 结束原因（"stop" / "tool_calls" / "length"）
        usage: token 用量（prompt_tokens, completion_tokens, total_tokens），可能为空
    """
    content: str | None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        """检查响应中是否包含原生工具调用。"""
        return len(self.tool_calls) > 0


class LLMProvider(ABC):
    """
    LLM 提供者抽象基类（类似 Java 的 interface）。

    实现类必须提供：
    - chat()             : 发送对话请求并获取响应
    - embed()            : 将文本转换为向量
    - get_default_model(): 返回默认模型名称

    属性：
        api_key: API 密钥
        api_base: API 基础 URL（用于自定义端点或代理）
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        发送对话补全请求。

        参数：
            messages: 消息列表，每条消息是 {"role": "user/assistant/system", "content": "..."} 格式
            tools: 可选的工具定义列表（OpenAI 函数调用格式）
            model: 模型标识符，为空时使用默认模型
            max_tokens: 响应的最大 token 数
            temperature: 采样温度

        异常：
            ModelCallError: 请求失败（鉴权、网络、限流等）
        """
        pass

    @abstractmethod
    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """
        批量计算文本向量，返回顺序与 texts 一致。

        异常：
            ModelCallError: 请求失败
        """
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        """获取该提供者的默认模型名称。"""
        pass
