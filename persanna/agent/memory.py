"""
记忆窗口模块 - 为推理循环提供有界的近期对话上下文。

MemoryWindow 把宿主的消息记录（{content, type, time}）转换为推理循环使用的
ConversationTurn 序列，并保证：
- 只保留最近的 k 轮（FIFO，最旧的先被淘汰）
- 构建前先截取最近 raw_limit 条原始消息
- 保持时间顺序与说话人归属不变

【架构定位】
记忆窗口由 TurnController 在每一轮开始时构建，本轮结束即丢弃；
宿主的持久消息记录才是下一轮记忆窗口的唯一数据源。

【Java 开发者类比】
类似一个容量固定的 ArrayDeque，offer 时自动 poll 掉最旧的元素。
"""

from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Literal

from persanna.bus.events import HostMessage

Speaker = Literal["human", "assistant"]

DEFAULT_WINDOW_SIZE = 512
DEFAULT_HISTORY_LIMIT = 42


@dataclass(frozen=True)
class ConversationTurn:
    """
    一条对话轮次（创建后不可变）。

    属性:
        speaker: "human" 或 "assistant"
        text: 文本内容
        timestamp: 宿主记录的时间
    """

    speaker: Speaker
    text: str
    timestamp: str = ""

    @classmethod
    def from_host(cls, message: HostMessage) -> "ConversationTurn":
        """宿主消息 → 对话轮次："ai" 映射为 assistant，其余为 human。"""
        speaker: Speaker = "assistant" if message.type == "ai" else "human"
        return cls(speaker=speaker, text=message.content, timestamp=message.time)

    def to_message(self) -> dict[str, Any]:
        """转换为 LLM API 的消息格式。"""
        role = "assistant" if self.speaker == "assistant" else "user"
        return {"role": role, "content": self.text}


class MemoryWindow:
    """
    有界记忆窗口。

    属性:
        k: 窗口容量（最多保留的轮数）
    """

    def __init__(self, k: int = DEFAULT_WINDOW_SIZE, turns: Iterable[ConversationTurn] = ()):
        if k < 0:
            raise ValueError(f"Window size must be >= 0, got {k}")
        self.k = k
        self._turns: deque[ConversationTurn] = deque(maxlen=k)
        for turn in turns:
            self.append(turn)

    @classmethod
    def from_messages(
        cls,
        messages: Iterable[HostMessage | dict[str, Any]],
        k: int = DEFAULT_WINDOW_SIZE,
        raw_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> "MemoryWindow":
        """
        从宿主消息记录构建记忆窗口（纯函数，无副作用）。

        参数:
            messages: 宿主消息（HostMessage 或 {content, type, time} 字典）
            k: 窗口容量
            raw_limit: 先截取的最近原始消息条数

        返回:
            最多包含 min(k, raw_limit, len(messages)) 轮的记忆窗口
        """
        records = [m if isinstance(m, HostMessage) else HostMessage.from_dict(m) for m in messages]
        recent = records[-raw_limit:] if raw_limit > 0 else []
        return cls(k=k, turns=(ConversationTurn.from_host(m) for m in recent))

    def append(self, turn: ConversationTurn) -> None:
        """追加一轮；窗口已满时淘汰最旧的一轮。"""
        if self.k == 0:
            return
        self._turns.append(turn)

    @property
    def turns(self) -> list[ConversationTurn]:
        """按时间顺序返回窗口内的所有轮次（副本）。"""
        return list(self._turns)

    def to_messages(self) -> list[dict[str, Any]]:
        """转换为 LLM API 的消息列表。"""
        return [turn.to_message() for turn in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(list(self._turns))
