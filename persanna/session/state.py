"""
对话状态模块 - 宿主持有的共享会话上下文。

ConversationState 以显式对象的形式承载原本散落在全局的对话状态：
- 读：messages、model、active_tab、max_iterations、timeout、usage
- 写：只能通过 dispatch(StateEvent) 完成，reducer 负责把事件应用到状态上，
  然后按注册顺序通知订阅者（如 CLI 的实时显示、持久化）

并发说明：
  ConversationState 不是并发安全的。两个回合同时针对同一个状态运行，
  会在记忆窗口快照和 token 累加上产生竞争，宿主必须串行化回合
  （TurnController 内部用 asyncio.Lock 做了兜底）。
"""

from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from persanna.bus.events import (
    HostMessage,
    NewMessageEvent,
    StateEvent,
    UsageCounters,
    UsageEvent,
)

Listener = Callable[[StateEvent, "ConversationState"], None]


@dataclass
class ConversationState:
    """
    单个会话的共享状态。

    属性:
        model: 当前选择的模型名称
        messages: 宿主的持久消息记录（下一轮记忆窗口的唯一数据源）
        active_tab: 当前活动标签页 URL
        max_iterations: 推理循环迭代上限（None 表示使用默认值）
        timeout: 单轮超时秒数（None 或 0 表示使用默认值）
        usage: 会话级 token 累计
    """

    model: str
    messages: list[HostMessage] = field(default_factory=list)
    active_tab: str = ""
    max_iterations: int | None = None
    timeout: float | None = None
    usage: UsageCounters = field(default_factory=UsageCounters)
    _listeners: list[Listener] = field(default_factory=list, repr=False)

    def subscribe(self, listener: Listener) -> None:
        """注册一个事件订阅者，事件应用到状态之后被调用。"""
        self._listeners.append(listener)

    def dispatch(self, event: StateEvent) -> None:
        """
        派发一个状态事件（fire-and-forget，无返回值）。

        reducer 规则：
        - NewMessageEvent: 追加消息
        - UsageEvent: 与现有计数器相加（从不覆盖）
        """
        match event:
            case NewMessageEvent(message=message):
                self.messages.append(message)
            case UsageEvent(delta=delta):
                self.usage = self.usage + delta
            case _:
                raise TypeError(f"Unknown state event: {event!r}")

        for listener in self._listeners:
            try:
                listener(event, self)
            except Exception as e:
                # 订阅者异常不影响状态本身和其他订阅者
                logger.error(f"State listener failed on {type(event).__name__}: {e}")
