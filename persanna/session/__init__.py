"""
会话模块 - 宿主侧的对话状态与持久化。

- ConversationState：单个会话的共享状态，只能通过 dispatch(事件) 修改
- SessionManager / Session：会话的 JSONL 持久化（CLI 宿主的 on_complete 回调）
"""

from persanna.session.manager import Session, SessionManager
from persanna.session.state import ConversationState

__all__ = ["ConversationState", "SessionManager", "Session"]
