"""
LiteLLM 提供者实现模块 —— 多 LLM 服务商的统一调用层。

本模块是 LLMProvider 抽象基类的唯一实现，通过 LiteLLM 开源库
"一套代码对接所有主流 LLM 服务商"。

LiteLLM 是什么？
  LiteLLM 将 100+ 家 LLM 服务商（OpenAI、Anthropic、OpenRouter 等）的 API 统一为
  OpenAI 兼容格式。类比 Java 世界：LiteLLM 类似于 JDBC —— 一套接口，多种驱动。

数据流：
  AgentExecutor → LiteLLMProvider.chat() → litellm.acompletion() → LLM API
                                                      ↓
  AgentExecutor ← _parse_response() ← LLMResponse ←──┘

错误处理：
  与调用方约定失败即抛出 ModelCallError（保留原始异常作为 __cause__），
  由推理循环决定如何终止本轮，而不是返回伪装成回答的错误文本。
"""

import json
from typing import Any

import litellm
from litellm import acompletion, aembedding
from loguru import logger

from persanna.errors import ModelCallError
from persanna.providers.base import LLMProvider, LLMResponse, ToolCallRequest


class LiteLLMProvider(LLMProvider):
    """
    基于 LiteLLM 的 LLM 提供者实现类。

    构造参数：
        api_key: API 密钥
        api_base: 自定义 API 基础 URL（用于代理/网关/本地部署）
        default_model: 默认对话模型名称
        embedding_model: 默认向量模型名称
        extra_headers: 额外的 HTTP 请求头
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "gpt-3.5-turbo",
        embedding_model: str = "text-embedding-ada-002",
        extra_headers: dict[str, str] | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.embedding_model = embedding_model
        self.extra_headers = extra_headers or {}

        # 禁用 LiteLLM 的调试日志输出（默认很啰嗦）
        litellm.suppress_debug_info = True
        # 自动丢弃服务商不支持的参数
        litellm.drop_params = True

    def _auth_kwargs(self) -> dict[str, Any]:
        """认证与端点参数（直接传 api_key 比仅依赖环境变量更可靠）。"""
        kwargs: dict[str, Any] = {}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        return kwargs

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        发送对话补全请求（核心方法）。

        推理循环的每一次"思考"都会调用此方法。

        参数：
            messages: 对话消息列表
            tools: 可选的工具定义列表（OpenAI 函数调用格式）
            model: 模型标识符，为空则使用默认模型
            max_tokens: 响应的最大 token 数
            temperature: 采样温度

        返回：
            LLMResponse：统一的响应格式

        异常：
            ModelCallError: LiteLLM 调用失败
        """
        kwargs: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            **self._auth_kwargs(),
        }

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            logger.error(f"LLM call failed ({kwargs['model']}): {e}")
            raise ModelCallError(f"Error calling LLM: {e}") from e
        return self._parse_response(response)

    async def embed(self, texts: list[str], model: str | None = None) -> list[list[float]]:
        """
        批量计算文本向量。

        参数：
            texts: 待向量化的文本列表
            model: 向量模型，为空时使用 embedding_model

        返回：
            与 texts 顺序一致的向量列表
        """
        if not texts:
            return []
        try:
            response = await aembedding(
                model=model or self.embedding_model,
                input=texts,
                **self._auth_kwargs(),
            )
        except Exception as e:
            logger.error(f"Embedding call failed: {e}")
            raise ModelCallError(f"Error calling embeddings: {e}") from e

        # OpenAI 格式：data 数组中每项带 index，按 index 还原顺序
        items = sorted(response.data, key=lambda d: d["index"] if isinstance(d, dict) else d.index)
        return [list(d["embedding"] if isinstance(d, dict) else d.embedding) for d in items]

    def _parse_response(self, response: Any) -> LLMResponse:
        """
        将 LiteLLM 的原始响应解析为统一的 LLMResponse 格式。

        response.choices[0].message 中包含：
          - content: 文本回复
          - tool_calls: 原生工具调用列表
        response.usage 可能缺失（部分网关不返回），此时 usage 为空字典。
        """
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        if getattr(message, "tool_calls", None):
            for tc in message.tool_calls:
                args = tc.function.arguments
                if isinstance(args, str):
                    try:
                        args = json.loads(args)
                    except json.JSONDecodeError:
                        args = {"input": args}  # 非 JSON 参数整体作为单一字符串输入
                tool_calls.append(ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=args if isinstance(args, dict) else {"input": args},
                ))

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """获取默认模型名称。"""
        return self.default_model
