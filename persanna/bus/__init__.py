"""
事件模块 - 推理核心与宿主状态之间的写通道。

消息流向：
  TurnController / UsageAccountant → StateEvent → ConversationState.dispatch() → 订阅者
"""

from persanna.bus.events import (
    HostMessage,
    NewMessageEvent,
    StateEvent,
    UsageCounters,
    UsageEvent,
)

__all__ = ["HostMessage", "UsageCounters", "NewMessageEvent", "UsageEvent", "StateEvent"]
