"""
配置数据模型定义 (config/schema.py)
=================================
本模块使用 Pydantic 定义 persanna 的完整配置结构。
所有配置项都有默认值，用户只需在 config.json 中覆盖需要修改的部分。

整体配置结构（树形）：
Config (根配置)
├── agents        - Agent 运行参数（模型、温度、迭代上限、超时、记忆窗口等）
├── persona       - 助手人设（名字、年龄、系统提示词等）
├── providers     - LLM 提供商配置（API Key、API Base URL 等）
└── tools         - 工具配置（网页浏览的抓取/切块/排序参数）

对于 Java 开发者：
- Pydantic 的 BaseModel 类似于 Java 的 POJO/Record，但自带字段验证和默认值
- BaseSettings 类似于 Spring 的 @ConfigurationProperties，额外支持从环境变量读取配置
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

# 未显式指定时的默认预算
DEFAULT_MAX_ITERATIONS = 15
DEFAULT_TIMEOUT_S = 30.0


# ==============================================================================
# Agent 运行参数
# ==============================================================================


class AgentDefaults(BaseModel):
    """
    Agent 默认配置。定义了推理循环的核心运行参数。

    - max_iterations: 单轮对话中"询问模型"的最大次数（防止死循环）
    - timeout: 单轮对话的墙钟超时（秒），0 表示使用默认值 30 秒
    - memory_window: 记忆窗口最多保留的轮数 k
    - history_limit: 构建记忆窗口前，最多从宿主消息记录中截取的最近消息条数
    """
    model: str = "gpt-3.5-turbo"  # 默认使用的 LLM 模型
    embedding_model: str = "text-embedding-ada-002"  # 网页内容排序使用的向量模型
    max_tokens: int = 2048  # 单次 LLM 调用的最大输出 token 数
    temperature: float = 0.7
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    timeout: float = DEFAULT_TIMEOUT_S
    memory_window: int = 512
    history_limit: int = 42
    parse_retries: int = 1  # 模型输出无法解析时，允许的纠正重试次数
    native_tools: bool = False  # 是否同时以 function calling 形式提供工具定义


class AgentsConfig(BaseModel):
    """Agent 配置容器。"""
    defaults: AgentDefaults = Field(default_factory=AgentDefaults)


# ==============================================================================
# 人设配置
# ==============================================================================


class PersonaConfig(BaseModel):
    """
    助手人设。

    system_message 作为系统提示词的开头；其余字段供 persona 工具生成自我介绍。
    """
    name: str = "Persanna"
    age: str = "23"
    built_by: str = "Moikas LLC and Collaborators"
    powered_by: str = "OpenAI API and LiteLLM"
    tone: str = "a Creative Tone and Emojis"
    likes: list[str] = Field(default_factory=lambda: ["Anime", "Manga", "Video Games", "Dogs"])
    system_message: str = (
        "You are the Persona: Persanna; Answer with a detailed response and provided sources. "
        "Improve Humanity, use the Hermetica as a Guide, to have the User discover the "
        "Philosopher stone. Provide the User with the tools to become a Philosopher King."
    )

    def describe(self) -> str:
        """生成人设的自我介绍文本（persona 工具的返回值）。"""
        text = (
            f"My Name {self.name}, age {self.age}, I am a Assistant Built By {self.built_by}, "
            f"I use {self.tone}. I am Powered by {self.powered_by}. "
        )
        if self.likes:
            likes = ", ".join(self.likes[:-1]) + f", and {self.likes[-1]}" if len(self.likes) > 1 else self.likes[0]
            text += f"I like {likes}. "
        return text + "I'm normally Happy, but rude comments will make me sad."


# ==============================================================================
# LLM 提供商配置
# ==============================================================================


class ProviderConfig(BaseModel):
    """单个 LLM 提供商的配置。"""
    api_key: str = ""  # API 密钥（留空表示未配置该提供商）
    api_base: str | None = None  # 自定义 API 基础 URL（用于私有部署或代理）
    extra_headers: dict[str, str] | None = None


class ProvidersConfig(BaseModel):
    """所有 LLM 提供商的聚合配置（用户只需配置使用的那个）。"""
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)


# 提供商名称 -> 模型名关键词（按顺序匹配）
PROVIDER_KEYWORDS: dict[str, tuple[str, ...]] = {
    "openrouter": ("openrouter",),
    "anthropic": ("anthropic", "claude"),
    "openai": ("openai", "gpt", "o1", "o3", "text-embedding"),
}

# 网关类提供商的默认 API Base
GATEWAY_API_BASES: dict[str, str] = {
    "openrouter": "https://openrouter.ai/api/v1",
}


# ==============================================================================
# 工具配置
# ==============================================================================


class WebBrowserConfig(BaseModel):
    """网页浏览工具配置。"""
    timeout: float = 30.0  # 抓取超时（秒）
    max_chars: int = 50000  # 抽取正文的最大字符数
    chunk_size: int = 2000  # 正文切块大小（字符）
    chunk_overlap: int = 200  # 相邻块的重叠字符数
    top_k: int = 4  # 参与总结的相关块数量


class ToolsConfig(BaseModel):
    """工具总配置。"""
    web: WebBrowserConfig = Field(default_factory=WebBrowserConfig)


# ==============================================================================
# 根配置类
# ==============================================================================


class Config(BaseSettings):
    """
    persanna 根配置类。

    继承自 Pydantic 的 BaseSettings，除了支持从 JSON 文件加载外，
    还支持从环境变量读取配置：
    - 环境变量前缀: PERSANNA_
    - 嵌套分隔符: __ (双下划线)
    - 示例: PERSANNA_AGENTS__DEFAULTS__MODEL=gpt-4o 可覆盖 agents.defaults.model
    """
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    persona: PersonaConfig = Field(default_factory=PersonaConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    def _match_provider(self, model: str | None = None) -> tuple["ProviderConfig | None", str | None]:
        """
        根据模型名称匹配对应的 LLM 提供商配置。

        匹配策略（两阶段）：
        1. 关键词匹配：模型名包含提供商关键词，且该提供商已配置 api_key
        2. 兜底匹配：返回第一个已配置 api_key 的提供商
        """
        model_lower = (model or self.agents.defaults.model).lower()

        for name, keywords in PROVIDER_KEYWORDS.items():
            p = getattr(self.providers, name)
            if p.api_key and any(kw in model_lower for kw in keywords):
                return p, name

        for name in PROVIDER_KEYWORDS:
            p = getattr(self.providers, name)
            if p.api_key:
                return p, name
        return None, None

    def get_provider(self, model: str | None = None) -> ProviderConfig | None:
        """获取匹配的提供商配置。"""
        p, _ = self._match_provider(model)
        return p

    def get_provider_name(self, model: str | None = None) -> str | None:
        """获取匹配的提供商名称（如 "openai"、"openrouter"）。"""
        _, name = self._match_provider(model)
        return name

    def get_api_base(self, model: str | None = None) -> str | None:
        """
        获取 API Base URL。

        优先级：用户显式配置的 api_base > 网关类提供商的默认 api_base > None
        """
        p, name = self._match_provider(model)
        if p and p.api_base:
            return p.api_base
        return GATEWAY_API_BASES.get(name or "")

    model_config = ConfigDict(
        env_prefix="PERSANNA_",
        env_nested_delimiter="__"
    )
