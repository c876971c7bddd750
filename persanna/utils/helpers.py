"""
工具函数集合 - persanna 项目全局通用的辅助函数。

函数分类：
- 路径管理：ensure_dir, get_data_path, get_sessions_path
- 字符串工具：safe_filename, format_response
- 时间工具：current_date, current_time
"""

from datetime import datetime
from pathlib import Path
from typing import Callable


def ensure_dir(path: Path) -> Path:
    """
    确保目录存在，不存在则递归创建。

    参数:
        path: 目标目录路径

    返回:
        创建后的目录路径（原样返回）
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """获取 persanna 数据目录（~/.persanna）。自动创建不存在的目录。"""
    return ensure_dir(Path.home() / ".persanna")


def get_sessions_path() -> Path:
    """获取会话存储目录（~/.persanna/sessions）。自动创建不存在的目录。"""
    return ensure_dir(get_data_path() / "sessions")


def current_date(now: Callable[[], datetime] = datetime.now) -> str:
    """当前日期，格式如 "10/19/2026"（月/日/年）。"""
    return now().strftime("%m/%d/%Y")


def current_time(now: Callable[[], datetime] = datetime.now) -> str:
    """当前时间，格式如 "1:05:09 PM"（12 小时制，小时不补零）。"""
    t = now()
    hour = t.hour % 12 or 12
    return f"{hour}:{t.minute:02d}:{t.second:02d} {'PM' if t.hour >= 12 else 'AM'}"


def format_response(text: str) -> str:
    """
    规范化一段消息文本，用于写入对话记录。

    处理规则：
    - 统一换行符为 \\n
    - 去除每行行尾空白
    - 连续 3 个以上空行压缩为 1 个空行
    - 去除首尾空白

    该函数是幂等的：format_response(format_response(x)) == format_response(x)。
    """
    lines = [line.rstrip() for line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n")]
    out: list[str] = []
    blank = 0
    for line in lines:
        if line:
            blank = 0
            out.append(line)
            continue
        blank += 1
        if blank <= 1:
            out.append(line)
    return "\n".join(out).strip()


def safe_filename(name: str) -> str:
    """
    将字符串转换为安全的文件名（替换不安全字符为下划线）。

    替换的不安全字符包括：< > : " / \\ | ? *
    """
    unsafe = '<>:"/\\|?*'
    for char in unsafe:
        name = name.replace(char, "_")
    return name.strip()
