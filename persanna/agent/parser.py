"""
模型输出解析模块 (agent/parser.py)

把一次 LLMResponse 解析为一个 AgentStep（带标签的联合类型）：
- ToolCallStep(tool_name, tool_input, log)  —— 模型要求调用工具
- FinalAnswerStep(text)                     —— 模型给出最终回答

支持两种输出形式：
1. 原生工具调用（OpenAI function calling）：取第一个调用，
   参数优先取 "input"，否则取第一个字符串值
2. JSON 动作块（可放在 ```json 代码块中）：
       {"action": "calculator", "action_input": "2+2"}
       {"action": "Final Answer", "action_input": "4"}

其他任何输出都抛出 ParseError，由推理循环决定是否纠正重试。
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from persanna.errors import ParseError
from persanna.providers.base import LLMResponse

FINAL_ANSWER_ACTION = "Final Answer"

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


@dataclass(frozen=True)
class ToolCallStep:
    """
    工具调用决策。

    属性:
        tool_name: 工具名称
        tool_input: 工具的单字符串输入
        log: 模型的原始决策文本，回放到对话记录中
    """

    tool_name: str
    tool_input: str
    log: str = ""


@dataclass(frozen=True)
class FinalAnswerStep:
    """最终回答。"""

    text: str


AgentStep = ToolCallStep | FinalAnswerStep


def parse_step(response: LLMResponse) -> AgentStep:
    """
    解析一次模型响应。

    异常:
        ParseError: 输出既不是原生工具调用，也不是合法的 JSON 动作块
    """
    if response.has_tool_calls:
        call = response.tool_calls[0]
        argument = _tool_argument(call.arguments)
        log = response.content or json.dumps({"action": call.name, "action_input": argument}, ensure_ascii=False)
        return ToolCallStep(tool_name=call.name, tool_input=argument, log=log)

    text = (response.content or "").strip()
    blob = _extract_json(text)
    if not isinstance(blob, dict) or not isinstance(blob.get("action"), str):
        raise ParseError(text)

    action = blob["action"].strip()
    action_input = blob.get("action_input", "")
    if not isinstance(action_input, str):
        action_input = json.dumps(action_input, ensure_ascii=False)

    if action == FINAL_ANSWER_ACTION:
        return FinalAnswerStep(text=action_input)
    return ToolCallStep(tool_name=action, tool_input=action_input, log=text)


def _tool_argument(arguments: dict[str, Any]) -> str:
    """从原生工具调用的参数字典中取出单字符串输入。"""
    value = arguments.get("input")
    if isinstance(value, str):
        return value
    for value in arguments.values():
        if isinstance(value, str):
            return value
    return json.dumps(arguments, ensure_ascii=False) if arguments else ""


def _extract_json(text: str) -> Any:
    """依次尝试：```json 代码块、整段文本、第一个 { 到最后一个 } 之间的内容。"""
    candidates = [m.strip() for m in _FENCE_RE.findall(text)]
    candidates.append(text)
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None
