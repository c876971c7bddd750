"""Smoke tests for the Typer CLI."""

from typer.testing import CliRunner

from persanna.cli.commands import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "persanna v" in result.stdout


def test_status_without_config(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "Model: gpt-3.5-turbo" in result.stdout
    assert "openai: not set" in result.stdout


def test_agent_requires_api_key(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    result = runner.invoke(app, ["agent", "-m", "hi"])

    assert result.exit_code == 1
    assert "No API key configured" in result.stdout


def test_onboard_writes_config(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    result = runner.invoke(app, ["onboard"])

    assert result.exit_code == 0
    assert (tmp_path / ".persanna" / "config.json").exists()


def test_failed_turn_is_still_saved(tmp_path, monkeypatch):
    from persanna.cli import commands
    from persanna.session import SessionManager

    from conftest import ScriptedProvider

    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(commands, "_make_provider", lambda config: ScriptedProvider([RuntimeError("502 bad gateway")]))

    result = runner.invoke(app, ["agent", "-m", "hello there", "--no-markdown"])

    assert result.exit_code == 0
    assert "An error occurred while fetching the response from the API:" in result.stdout
    session = SessionManager(tmp_path / ".persanna" / "sessions").get_or_create("cli:direct")
    assert [(m.type, m.content) for m in session.messages] == [("human", "hello there")]
