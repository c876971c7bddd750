"""
回合上下文工具 (agent/tools/context.py)

这几个工具不访问网络，只把"本轮的宿主上下文"提供给模型：
- ActiveTabTool : 当前活动标签页的 URL
- DateTimeTool  : 当前日期与时间
- PersonaTool   : 助手人设的自我介绍

所有上下文都通过构造参数显式传入（由 build_tools 从 ToolContext 取出），
工具实例每轮重建，不会持有上一轮的过期状态。
"""

from datetime import datetime
from typing import Callable

from persanna.agent.tools.base import Tool
from persanna.config.schema import PersonaConfig
from persanna.utils.helpers import current_date, current_time


class ActiveTabTool(Tool):
    """返回当前活动标签页 URL。"""

    name = "acitve-tab-url-website-page"
    description = "The value can be used to open a new tab, to summarize or to get the current URL/Tab/Website."

    def __init__(self, active_tab: str):
        self.active_tab = active_tab

    async def run(self, argument: str) -> str:
        return f"Current URL/Tab/Website/page:{self.active_tab}"


class DateTimeTool(Tool):
    """返回当前日期与时间。"""

    name = "date-time"
    description = "call this to get the value to get the date and tme"

    def __init__(self, now: Callable[[], datetime] = datetime.now):
        self.now = now

    async def run(self, argument: str) -> str:
        return f" Date: {current_date(self.now)};  Time: {current_time(self.now)};"


class PersonaTool(Tool):
    """返回助手人设的自我介绍。"""

    name = "persona"
    description = (
        "useful for when you need to find something on or summarize info about the AI, or to get the AI "
        "to talk about itself or why it likes or does something. user should ask about the AI, or ask the "
        "AI to talk about itself."
    )

    def __init__(self, persona: PersonaConfig):
        self.persona = persona

    async def run(self, argument: str) -> str:
        return self.persona.describe()
