"""
LLM 提供者抽象层模块（providers 包）。

模块组成：
- base.py             : LLMProvider 抽象基类和 LLMResponse 数据结构（类似 Java 的接口 + DTO）
- litellm_provider.py : 基于 LiteLLM 的实现，对接各家 LLM 服务商的对话与向量接口
"""

from persanna.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from persanna.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest", "LiteLLMProvider"]
