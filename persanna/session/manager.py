"""
会话管理器实现模块 - 对话历史的存储、检索和管理。

本模块包含两个核心类：
- Session：单个对话会话，维护宿主消息列表、token 累计和元数据
- SessionManager：会话管理器，负责会话的 CRUD 操作和磁盘持久化

【存储格式 - JSONL】
每个会话存储为一个 .jsonl 文件（JSON Lines 格式）：
- 第一行：元数据行（_type="metadata"），包含创建/更新时间、token 累计、元数据
- 后续行：每行一条消息 {"content", "type", "time"}

【存储路径】
会话文件存储在 ~/.persanna/sessions/ 目录下，文件名由 session_key 转换而来。

【Java 开发者类比】
- SessionManager 类似于一个带有文件持久化的 ConcurrentHashMap
- _cache 是一个简单的内存缓存层（类似 Guava Cache）
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from persanna.bus.events import HostMessage, UsageCounters
from persanna.utils.helpers import ensure_dir, safe_filename


@dataclass
class Session:
    """
    单个对话会话。

    属性:
        key: 会话唯一标识（如 "cli:direct"）
        messages: 宿主消息记录
        usage: 会话级 token 累计
        created_at: 会话创建时间
        updated_at: 会话最后更新时间
        metadata: 附加元数据（如最近一次使用的活动标签页）
    """

    key: str
    messages: list[HostMessage] = field(default_factory=list)
    usage: UsageCounters = field(default_factory=UsageCounters)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def clear(self) -> None:
        """清空对话历史（保留 key、token 累计和元数据）。"""
        self.messages = []
        self.updated_at = datetime.now()


class SessionManager:
    """
    会话管理器 - "内存缓存 + 磁盘持久化"的双层架构。

    属性:
        sessions_dir: 会话文件存储目录
        _cache: 内存会话缓存字典 {session_key: Session}
    """

    def __init__(self, sessions_dir: Path):
        self.sessions_dir = ensure_dir(sessions_dir)
        self._cache: dict[str, Session] = {}

    def _get_session_path(self, key: str) -> Path:
        """将 "channel:id" 形式的会话键映射为磁盘文件路径。"""
        safe_key = safe_filename(key.replace(":", "_"))
        return self.sessions_dir / f"{safe_key}.jsonl"

    def get_or_create(self, key: str) -> Session:
        """
        获取已有会话或创建新会话。

        查找顺序：内存缓存 → 磁盘文件 → 新建空会话。
        """
        if key in self._cache:
            return self._cache[key]

        session = self._load(key)
        if session is None:
            session = Session(key=key)

        self._cache[key] = session
        return session

    def _load(self, key: str) -> Session | None:
        """从磁盘加载会话，文件不存在或损坏时返回 None。"""
        path = self._get_session_path(key)

        if not path.exists():
            return None

        try:
            messages = []
            metadata = {}
            usage = UsageCounters()
            created_at = None

            with open(path) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue

                    data = json.loads(line)

                    if data.get("_type") == "metadata":
                        metadata = data.get("metadata", {})
                        usage = UsageCounters(**data.get("usage", {}))
                        created_at = datetime.fromisoformat(data["created_at"]) if data.get("created_at") else None
                    else:
                        messages.append(HostMessage.from_dict(data))

            return Session(
                key=key,
                messages=messages,
                usage=usage,
                created_at=created_at or datetime.now(),
                metadata=metadata,
            )
        except Exception as e:
            # 文件损坏时优雅降级，记录警告但不中断程序
            logger.warning(f"Failed to load session {key}: {e}")
            return None

    def save(self, session: Session) -> None:
        """
        将会话全量写入磁盘（元数据行 → 所有消息行），并刷新缓存。
        """
        path = self._get_session_path(session.key)
        session.updated_at = datetime.now()

        with open(path, "w") as f:
            metadata_line = {
                "_type": "metadata",
                "created_at": session.created_at.isoformat(),
                "updated_at": session.updated_at.isoformat(),
                "usage": session.usage.to_dict(),
                "metadata": session.metadata,
            }
            f.write(json.dumps(metadata_line) + "\n")

            for msg in session.messages:
                f.write(json.dumps(msg.to_dict(), ensure_ascii=False) + "\n")

        self._cache[session.key] = session

    def delete(self, key: str) -> bool:
        """删除指定会话（缓存和磁盘文件），返回是否存在过。"""
        self._cache.pop(key, None)

        path = self._get_session_path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_sessions(self) -> list[dict[str, Any]]:
        """
        列出所有已存储的会话信息，按最后更新时间倒序排列。

        只读取每个文件的第一行（元数据行），避免加载整个会话。
        """
        sessions = []

        for path in self.sessions_dir.glob("*.jsonl"):
            try:
                with open(path) as f:
                    first_line = f.readline().strip()
                    if first_line:
                        data = json.loads(first_line)
                        if data.get("_type") == "metadata":
                            sessions.append({
                                "key": path.stem.replace("_", ":", 1),
                                "created_at": data.get("created_at"),
                                "updated_at": data.get("updated_at"),
                                "total_tokens": data.get("usage", {}).get("total_tokens", 0),
                                "path": str(path),
                            })
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable session file {path}: {e}")

        return sorted(sessions, key=lambda x: x.get("updated_at", ""), reverse=True)
