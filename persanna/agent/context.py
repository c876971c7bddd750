"""
上下文构建器模块 —— 负责组装推理循环每次调用 LLM 时的提示词和消息列表。

消息列表的结构：
1. [系统提示词] — 人设 system_message + 工具清单 + 输出格式说明
2. [记忆窗口]   — 之前的对话轮次
3. [当前用户输入]
4. [本轮对话记录] — 模型的工具调用决策与工具结果（观察），按发生顺序交替追加

核心概念（对 Java 开发者的说明）：
- LLM 的输入是一个消息列表（List<Message>），每条消息有 role 和 content
- 本轮对话记录（transcript）只在一轮内存在，类似一个请求级的 StringBuilder
"""

from typing import Any

from persanna.agent.memory import MemoryWindow
from persanna.agent.tools.registry import ToolFailure, ToolOutcome, ToolRegistry, ToolSuccess
from persanna.config.schema import PersonaConfig

TOOLS_SECTION = """TOOLS
------
Assistant can ask the user to use tools to look up information that may be helpful in answering the users original question. The tools the human can use are:

{tools}"""

FORMAT_INSTRUCTIONS = """RESPONSE FORMAT INSTRUCTIONS
----------------------------

When responding to me, please output a response in one of two formats:

**Option 1:**
Use this if you want the human to use a tool.
Markdown code snippet formatted in the following schema:

```json
{{
    "action": string, \\\\ The action to take. Must be one of {tool_names}
    "action_input": string \\\\ The input to the action
}}
```

**Option #2:**
Use this if you want to respond directly to the human. Markdown code snippet formatted in the following schema:

```json
{{
    "action": "Final Answer",
    "action_input": string \\\\ You should put what you want to return to use here
}}
```"""

TOOL_RESPONSE_TEMPLATE = """TOOL RESPONSE:
---------------------
{observation}

USER'S INPUT
--------------------

Okay, so what is the response to my last comment? If using information obtained from the tools you must mention it explicitly without mentioning the tool names - I have forgotten all TOOL RESPONSES! Remember to respond with a markdown code snippet of a json blob with a single action, and NOTHING else."""

PARSE_CORRECTION = (
    "Your last reply could not be parsed. Remember to respond with a markdown code snippet of a json blob "
    "with a single action, and NOTHING else."
)


class ContextBuilder:
    """
    上下文构建器 —— 将人设、工具清单、记忆窗口与本轮对话记录组装成 LLM 消息格式。

    【Java 类比】类似于一个 PromptTemplateService，
    负责将模板 + 变量渲染成最终的提示词字符串。

    属性：
        persona: 助手人设（提供 system_message）
    """

    def __init__(self, persona: PersonaConfig | None = None):
        self.persona = persona or PersonaConfig()

    def build_system_prompt(self, tools: ToolRegistry) -> str:
        """
        构建系统提示词：人设 + 工具清单 + 输出格式说明。

        工具为空时仍然给出格式说明，只是可选动作只剩 "Final Answer"。
        """
        tool_list = tools.describe() or "(no tools available)"
        tool_names = ", ".join(tools.tool_names) or "none"
        parts = [
            self.persona.system_message,
            TOOLS_SECTION.format(tools=tool_list),
            FORMAT_INSTRUCTIONS.format(tool_names=tool_names),
        ]
        return "\n\n".join(parts)

    def build_messages(
        self,
        tools: ToolRegistry,
        current_message: str,
        window: MemoryWindow | None = None,
        transcript: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        """
        构建完整的 LLM 消息列表。

        参数：
            tools: 本轮工具注册表
            current_message: 当前用户输入
            window: 记忆窗口（可选）
            transcript: 本轮已经发生的决策与观察（可选）

        返回：
            可直接传给 provider.chat() 的消息列表
        """
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.build_system_prompt(tools)}]
        if window is not None:
            messages.extend(window.to_messages())
        messages.append({"role": "user", "content": current_message})
        messages.extend(transcript or [])
        return messages

    def add_tool_step(
        self,
        transcript: list[dict[str, Any]],
        decision: str,
        outcome: ToolOutcome,
    ) -> list[dict[str, Any]]:
        """
        把一次工具调用追加到本轮对话记录：先是模型的决策，再是观察结果。
        """
        transcript.append({"role": "assistant", "content": decision})
        transcript.append({"role": "user", "content": TOOL_RESPONSE_TEMPLATE.format(observation=observe(outcome))})
        return transcript

    def add_parse_correction(self, transcript: list[dict[str, Any]], raw_output: str | None) -> list[dict[str, Any]]:
        """模型输出无法解析时，追加原始输出和一条格式提醒。"""
        transcript.append({"role": "assistant", "content": raw_output or ""})
        transcript.append({"role": "user", "content": PARSE_CORRECTION})
        return transcript


def observe(outcome: ToolOutcome) -> str:
    """把工具执行结果转换为给模型看的观察文本。"""
    match outcome:
        case ToolSuccess(output=output):
            return output
        case ToolFailure(error=error):
            return f"Error: {error}"
