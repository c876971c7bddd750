"""
persanna - 带工具调用能力的单轮对话助手编排库

模块概述：
    本文件是 persanna 包的入口文件（__init__.py），定义了包的元信息。
    persanna 负责驱动"一轮"对话：接收用户输入，结合有界的历史记忆，
    在调用若干辅助工具（网页浏览、计算器、人设查询、日期时间、当前标签页）之后，
    由大语言模型给出最终回答。

    核心功能包括：
    - ReAct 推理循环（迭代次数上限 + 超时控制）
    - 每轮重建的工具注册表
    - 有界的对话记忆窗口
    - Token 用量累计统计
"""

# 版本号，遵循语义化版本规范（主版本.次版本.修订号）
__version__ = "0.1.0"

# 项目 logo 表情符号，用于 CLI 输出等场景的品牌标识
__logo__ = "🔮"
