"""
CLI 命令模块 - persanna 的所有命令行命令定义。

本模块使用 Typer 框架定义 persanna 的 CLI 命令：
- onboard：初始化配置文件
- agent：与助手对话（单条消息或交互式对话）
- status：查看配置与提供商状态

技术栈：
- Typer：CLI 框架（基于 Click，支持类型注解自动生成帮助文档）
- Rich：终端美化输出（Markdown 渲染、状态动画）
- prompt_toolkit：交互式输入（历史记录、多行粘贴）

回合串行：
    交互模式下每条消息都等上一轮 run_turn() 完成后才读取下一条输入，
    同一个会话状态上永远只有一个回合在运行。
"""

import asyncio
import os
import select
import signal
import sys
from pathlib import Path

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markdown import Markdown
from rich.text import Text

from persanna import __logo__, __version__

# 创建 Typer 应用实例（CLI 根命令）
app = typer.Typer(
    name="persanna",
    help=f"{__logo__} persanna - tool-using conversational assistant",
    no_args_is_help=True,
)

console = Console()
EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}

# ---------------------------------------------------------------------------
# CLI 输入：使用 prompt_toolkit 实现编辑、粘贴、历史记录和显示
# ---------------------------------------------------------------------------

_PROMPT_SESSION: PromptSession | None = None
_SAVED_TERM_ATTRS = None  # 退出时用于恢复终端


def _flush_pending_tty_input() -> None:
    """
    清除终端中未读的按键输入（助手思考期间用户多按的键）。

    优先使用 termios.tcflush（POSIX），回退到 select+read 轮询。
    """
    try:
        fd = sys.stdin.fileno()
        if not os.isatty(fd):
            return
    except (OSError, ValueError):
        return

    try:
        import termios
        termios.tcflush(fd, termios.TCIFLUSH)
        return
    except (ImportError, OSError):
        pass

    try:
        while True:
            ready, _, _ = select.select([fd], [], [], 0)
            if not ready or not os.read(fd, 4096):
                break
    except OSError:
        return


def _restore_terminal() -> None:
    """恢复终端到原始状态（回显、行缓冲等）。"""
    if _SAVED_TERM_ATTRS is None:
        return
    try:
        import termios
        termios.tcsetattr(sys.stdin.fileno(), termios.TCSADRAIN, _SAVED_TERM_ATTRS)
    except (ImportError, OSError):
        pass


def _init_prompt_session() -> None:
    """
    创建 prompt_toolkit 会话，启用持久化文件历史记录。

    历史文件保存在 ~/.persanna/history/cli_history。
    """
    global _PROMPT_SESSION, _SAVED_TERM_ATTRS

    try:
        import termios
        _SAVED_TERM_ATTRS = termios.tcgetattr(sys.stdin.fileno())
    except (ImportError, OSError, ValueError):
        pass

    history_file = Path.home() / ".persanna" / "history" / "cli_history"
    history_file.parent.mkdir(parents=True, exist_ok=True)

    _PROMPT_SESSION = PromptSession(
        history=FileHistory(str(history_file)),
        enable_open_in_editor=False,
        multiline=False,
    )


def _print_agent_response(response: str, render_markdown: bool, footer: str | None = None) -> None:
    """以一致的终端样式渲染助手回复。支持 Markdown 或纯文本两种模式。"""
    content = response or ""
    body = Markdown(content) if render_markdown else Text(content)
    console.print()
    console.print(f"[magenta]{__logo__} persanna[/magenta]")
    console.print(body)
    if footer:
        console.print(f"[dim]{footer}[/dim]")
    console.print()


def _is_exit_command(command: str) -> bool:
    return command.lower() in EXIT_COMMANDS


async def _read_interactive_input_async() -> str:
    """使用 prompt_toolkit 异步读取用户输入。"""
    if _PROMPT_SESSION is None:
        raise RuntimeError("Call _init_prompt_session() first")
    try:
        with patch_stdout():
            return await _PROMPT_SESSION.prompt_async(
                HTML("<b fg='ansiblue'>You:</b> "),
            )
    except EOFError as exc:
        raise KeyboardInterrupt from exc


def version_callback(value: bool):
    """当用户传入 --version/-v 参数时，打印版本号并退出。"""
    if value:
        console.print(f"{__logo__} persanna v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """persanna CLI 根命令回调。"""
    pass


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard():
    """
    初始化 persanna 配置：在 ~/.persanna/ 下创建默认 config.json。
    """
    from persanna.config.loader import get_config_path, save_config
    from persanna.config.schema import Config
    from persanna.utils.helpers import get_sessions_path

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config())
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"[green]✓[/green] Sessions will be stored in {get_sessions_path()}")

    console.print(f"\n{__logo__} persanna is ready!")
    console.print("\nNext steps:")
    console.print("  1. Add your API key to [cyan]~/.persanna/config.json[/cyan] under providers")
    console.print("  2. Chat: [cyan]persanna agent -m \"Hello!\"[/cyan]")


def _make_provider(config):
    """
    根据配置创建 LiteLLM 提供者实例；未配置任何 API Key 时打印错误并退出。
    """
    from persanna.providers.litellm_provider import LiteLLMProvider

    p = config.get_provider()
    if not (p and p.api_key):
        console.print("[red]Error: No API key configured.[/red]")
        console.print("Set one in ~/.persanna/config.json under providers section")
        raise typer.Exit(1)
    defaults = config.agents.defaults
    return LiteLLMProvider(
        api_key=p.api_key,
        api_base=config.get_api_base(),
        default_model=defaults.model,
        embedding_model=defaults.embedding_model,
        extra_headers=p.extra_headers,
    )


# ============================================================================
# Agent
# ============================================================================


@app.command()
def agent(
    message: str = typer.Option(None, "--message", "-m", help="Message to send to the assistant"),
    session_id: str = typer.Option("cli:direct", "--session", "-s", help="Session ID"),
    tab: str = typer.Option("", "--tab", "-t", help="URL of the active browser tab"),
    markdown: bool = typer.Option(True, "--markdown/--no-markdown", help="Render assistant output as Markdown"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show persanna runtime logs during chat"),
):
    """
    与助手对话。

    1. 单条消息模式：persanna agent -m "2+2?" → 直接返回回复
    2. 交互模式：persanna agent → 进入交互式对话循环（/new 清空会话，exit 退出）
    """
    from loguru import logger

    from persanna.agent.turn import TurnController
    from persanna.config.loader import load_config
    from persanna.session import ConversationState, SessionManager
    from persanna.utils.helpers import get_sessions_path

    config = load_config()
    provider = _make_provider(config)

    if logs:
        logger.enable("persanna")
    else:
        logger.disable("persanna")

    sessions = SessionManager(get_sessions_path())
    session = sessions.get_or_create(session_id)
    defaults = config.agents.defaults

    state = ConversationState(
        model=defaults.model,
        messages=list(session.messages),
        active_tab=tab or session.metadata.get("active_tab", ""),
        max_iterations=defaults.max_iterations,
        timeout=defaults.timeout,
        usage=session.usage,
    )

    def _persist(messages) -> None:
        session.messages = list(messages)
        session.usage = state.usage
        session.metadata["active_tab"] = state.active_tab
        sessions.save(session)

    controller = TurnController(state, provider, config=config, on_complete=_persist)

    def _thinking_ctx():
        if logs:
            from contextlib import nullcontext
            return nullcontext()
        return console.status("[dim]persanna is thinking...[/dim]", spinner="dots")

    async def _turn(text: str) -> None:
        with _thinking_ctx():
            result = await controller.run_turn(text)
        footer = None
        if result.ok:
            footer = f"{result.elapsed:.1f}s · {result.usage.total_tokens} tokens · session total {state.usage.total_tokens}"
        else:
            # on_complete 只在成功时触发；失败回合的用户消息和已消耗的 token 也要落盘
            _persist(state.messages)
        _print_agent_response(result.text, render_markdown=markdown and result.ok, footer=footer)

    if message:
        asyncio.run(_turn(message))
        return

    _init_prompt_session()
    console.print(f"{__logo__} Interactive mode (type [bold]exit[/bold] or [bold]Ctrl+C[/bold] to quit)\n")

    def _exit_on_sigint(signum, frame):
        _restore_terminal()
        console.print("\nGoodbye!")
        os._exit(0)

    signal.signal(signal.SIGINT, _exit_on_sigint)

    async def run_interactive():
        while True:
            try:
                _flush_pending_tty_input()
                user_input = await _read_interactive_input_async()
                command = user_input.strip()
                if not command:
                    continue

                if _is_exit_command(command):
                    _restore_terminal()
                    console.print("\nGoodbye!")
                    break

                if command.lower() == "/new":
                    state.messages.clear()
                    session.clear()
                    sessions.save(session)
                    console.print(f"{__logo__} New conversation started.\n")
                    continue

                await _turn(user_input)
            except KeyboardInterrupt:
                _restore_terminal()
                console.print("\nGoodbye!")
                break

    asyncio.run(run_interactive())


# ============================================================================
# Status
# ============================================================================


@app.command()
def status():
    """显示配置文件、模型、人设与各提供商 API Key 的配置状态。"""
    from persanna.config.loader import get_config_path, load_config
    from persanna.config.schema import PROVIDER_KEYWORDS
    from persanna.utils.helpers import get_sessions_path

    config_path = get_config_path()
    config = load_config()
    sessions_path = get_sessions_path()

    console.print(f"{__logo__} persanna Status\n")

    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"Sessions: {sessions_path} {'[green]✓[/green]' if sessions_path.exists() else '[red]✗[/red]'}")

    defaults = config.agents.defaults
    console.print(f"Model: {defaults.model}")
    console.print(f"Persona: {config.persona.name}")
    console.print(f"Budget: {defaults.max_iterations} iterations / {defaults.timeout:g}s")

    for name in PROVIDER_KEYWORDS:
        p = getattr(config.providers, name)
        console.print(f"{name}: {'[green]✓[/green]' if p.api_key else '[dim]not set[/dim]'}")


if __name__ == "__main__":
    app()
