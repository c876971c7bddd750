"""工具函数子包：路径、字符串与时间相关的通用辅助函数。"""

from persanna.utils.helpers import (
    current_date,
    current_time,
    ensure_dir,
    format_response,
    get_data_path,
)

__all__ = ["ensure_dir", "get_data_path", "format_response", "current_date", "current_time"]
