"""
Token 用量记账模块。

UsageAccountant 观察每一次模型响应，提取 token 用量，
以"增量事件"的形式派发到宿主状态中累加。

规则：
- usage 为空或缺少字段时按 0 处理，不报错
- 未上报 total_tokens 时由 prompt + completion 推导
- 记账器自身维护一份累计值，作为本会话 token 总数的权威来源
"""

from typing import Callable

from loguru import logger

from persanna.bus.events import StateEvent, UsageCounters, UsageEvent


def _as_int(value: object) -> int:
    """把可能缺失/为 None/为非法值的计数转换为非负整数。"""
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


class UsageAccountant:
    """
    Token 用量记账器。

    属性:
        totals: 本记账器生命周期内的累计用量
    """

    def __init__(self, dispatch: Callable[[StateEvent], None] | None = None):
        self._dispatch = dispatch
        self.totals = UsageCounters()

    def record(self, usage: dict[str, int] | None) -> UsageCounters:
        """
        记录一次模型响应的用量并派发增量事件。

        参数:
            usage: LLMResponse.usage（可能为 None 或缺字段）

        返回:
            本次的增量
        """
        usage = usage or {}
        prompt = _as_int(usage.get("prompt_tokens"))
        completion = _as_int(usage.get("completion_tokens"))
        total = _as_int(usage.get("total_tokens")) or prompt + completion

        delta = UsageCounters(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)
        if delta.is_zero:
            logger.debug("LLM response carried no usage data")
            return delta

        self.totals = self.totals + delta
        if self._dispatch:
            self._dispatch(UsageEvent(delta=delta))
        return delta
