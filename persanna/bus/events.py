"""
状态事件类型定义模块 - 定义推理核心写回宿主状态时使用的事件。

推理核心从不直接修改宿主的对话状态，而是通过 ConversationState.dispatch()
派发以下两种事件（类似 React 的 useReducer + dispatch）：
- NewMessageEvent：追加一条新的对话消息（用户输入或助手回答）
- UsageEvent：一次模型调用消耗的 token 增量

同时定义了宿主侧的消息记录 HostMessage 与 token 计数 UsageCounters。

【Java 开发者类比】
- @dataclass(frozen=True) 等价于 Java 的 record 类（不可变）
- 事件派发 + reducer 类似于 Redux / Axon 中的 Event Sourcing 思路
"""

from dataclasses import dataclass
from typing import Any, Literal

MessageType = Literal["human", "ai"]


@dataclass(frozen=True)
class HostMessage:
    """
    宿主的持久化消息记录。

    属性:
        content: 消息文本
        type: "human"（用户）或 "ai"（助手）
        time: 宿主记录的时间文本（如 "1:05:09 PM"）
    """

    content: str
    type: MessageType
    time: str

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "type": self.type, "time": self.time}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HostMessage":
        # 非 "ai" 类型一律视为用户消息
        msg_type: MessageType = "ai" if data.get("type") == "ai" else "human"
        return cls(content=str(data.get("content", "")), type=msg_type, time=str(data.get("time", "")))


@dataclass(frozen=True)
class UsageCounters:
    """
    token 计数器。支持 + 运算，用于增量累加。

    属性:
        prompt_tokens: 输入 token 数
        completion_tokens: 输出 token 数
        total_tokens: 总 token 数
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "UsageCounters") -> "UsageCounters":
        return UsageCounters(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @property
    def is_zero(self) -> bool:
        return not (self.prompt_tokens or self.completion_tokens or self.total_tokens)

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class NewMessageEvent:
    """追加一条对话消息。"""

    message: HostMessage


@dataclass(frozen=True)
class UsageEvent:
    """累加一次模型调用的 token 增量（永远是增量，不会覆盖）。"""

    delta: UsageCounters


StateEvent = NewMessageEvent | UsageEvent
