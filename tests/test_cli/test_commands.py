import io
from pathlib import Path

import pytest
from rich.console import Console

from meow_cli.agent import AgentContext, AgentLoop
from meow_cli.autopilot import AutopilotController
from meow_cli.cli import TerminalUI
from meow_cli.commands import (
    CommandAction,
    CommandHandler,
    apply_aliases,
    parse_kv,
    render_template,
)
from meow_cli.config import Config
from meow_cli.confirmation import ConfirmationGate
from meow_cli.llm import OpenAIChatProvider
from meow_cli.session import SessionStore
from meow_cli.tools import build_tool_registry


def _handler(tmp_path: Path, answer: str = "n") -> tuple[CommandHandler, io.StringIO]:
    async def decide(request, cancel):
        return answer

    buffer = io.StringIO()
    ui = TerminalUI(Console(file=buffer, width=120, color_system=None))
    config = Config()
    gate = ConfirmationGate(decide)
    context = AgentContext(
        config=config,
        store=SessionStore(),
        provider=OpenAIChatProvider(api_key="old"),
        tools=build_tool_registry(config, gate, base_path=tmp_path),
        gate=gate,
    )
    loop = AgentLoop(context)
    handler = CommandHandler(
        ui,
        context,
        loop,
        AutopilotController(loop, config.autopilot),
        config_path=tmp_path / "config.yaml",
    )
    return handler, buffer


def test_apply_aliases_expands_only_whole_words():
    aliases = {"/ls": "/list", "/q": "/exit"}

    assert apply_aliases("/ls src", aliases) == "/list src"
    assert apply_aliases("/q", aliases) == "/exit"
    assert apply_aliases("/lsx", aliases) == "/lsx"
    assert apply_aliases("hello /ls", aliases) == "hello /ls"


def test_parse_kv_skips_malformed_pairs():
    assert parse_kv("file:main.py code: :x broken lang:py") == {"file": "main.py", "lang": "py"}


def test_render_template_fills_placeholders():
    templates = {"refactor": "Refactor {file} for {goal}."}

    assert render_template(templates, "refactor", {"file": "a.py", "goal": "speed"}) == "Refactor a.py for speed."
    assert render_template(templates, "missing", {}) is None


@pytest.mark.asyncio
async def test_plain_text_becomes_unforced_prompt(tmp_path: Path):
    handler, _ = _handler(tmp_path)

    result = await handler.handle("  explain this repo  ")

    assert result.action is CommandAction.PROMPT
    assert result.prompt == "explain this repo"
    assert result.force is False


@pytest.mark.asyncio
async def test_auto_forces_autopilot(tmp_path: Path):
    handler, _ = _handler(tmp_path)

    result = await handler.handle("/auto write the tests")

    assert result.action is CommandAction.PROMPT
    assert result.prompt == "write the tests"
    assert result.force is True


@pytest.mark.asyncio
async def test_exit_and_alias(tmp_path: Path):
    handler, _ = _handler(tmp_path)

    assert (await handler.handle("/exit")).action is CommandAction.EXIT
    assert (await handler.handle("/q")).action is CommandAction.EXIT


@pytest.mark.asyncio
async def test_unknown_command_is_reported(tmp_path: Path):
    handler, buffer = _handler(tmp_path)

    result = await handler.handle("/frobnicate")

    assert result.action is CommandAction.HANDLED
    assert "Unknown command: /frobnicate" in buffer.getvalue()


@pytest.mark.asyncio
async def test_template_renders_prompt(tmp_path: Path):
    handler, _ = _handler(tmp_path)

    result = await handler.handle("/template refactor file:app.py")

    assert result.action is CommandAction.PROMPT
    assert result.prompt.startswith("Refactor this file: app.py.")


@pytest.mark.asyncio
async def test_session_commands_operate_on_store(tmp_path: Path):
    handler, buffer = _handler(tmp_path)
    store = handler.store

    await handler.handle("/new work")
    assert store.current == "work"

    await handler.handle("/rename work job")
    assert store.current == "job"

    await handler.handle("/switch default")
    await handler.handle("/delete default")
    assert store.current == "job"

    await handler.handle("/switch nowhere")
    assert "Session not found: nowhere" in buffer.getvalue()

    await handler.handle("/sessions")
    assert "* job" in buffer.getvalue()


@pytest.mark.asyncio
async def test_export_and_import_commands(tmp_path: Path):
    handler, _ = _handler(tmp_path)
    handler.store.commit("default", [{"role": "user", "content": "keep"}])
    target = tmp_path / "export.json"

    await handler.handle(f"/export {target}")
    handler.store.clear()
    await handler.handle(f"/import {target}")

    assert handler.store.current_session.messages == [{"role": "user", "content": "keep"}]


@pytest.mark.asyncio
async def test_autopilot_settings_commands(tmp_path: Path):
    handler, buffer = _handler(tmp_path)

    await handler.handle("/autopilot on")
    await handler.handle("/autopilot steps 7")
    assert handler.autopilot.enabled is True
    assert handler.config.autopilot.enabled is True
    assert handler.config.autopilot.steps == 7

    await handler.handle("/autopilot off")
    await handler.handle("/autopilot status")
    assert handler.autopilot.enabled is False
    assert "Autopilot: OFF, steps: 7" in buffer.getvalue()

    await handler.handle("/autopilot steps many")
    assert "Usage: /autopilot" in buffer.getvalue()


@pytest.mark.asyncio
async def test_model_and_key_update_provider_and_save_config(tmp_path: Path):
    handler, _ = _handler(tmp_path)

    await handler.handle("/m gpt-local")
    await handler.handle("/key sk-new")
    await handler.handle("/url http://localhost:9000/v1")

    provider = handler.context.provider
    assert provider.model == "gpt-local"
    assert provider.api_key == "sk-new"
    assert provider.base_url == "http://localhost:9000/v1"
    saved = Config.load(tmp_path / "config.yaml")
    assert saved.model.api_key == "sk-new"
    assert saved.model.api_base == "http://localhost:9000/v1"


@pytest.mark.asyncio
async def test_profile_and_temperature(tmp_path: Path):
    handler, buffer = _handler(tmp_path)

    await handler.handle("/p creative")
    await handler.handle("/temp 1.1")
    await handler.handle("/temp 5")
    await handler.handle("/profile ghost")

    assert handler.config.profile == "creative"
    assert handler.config.active_profile().temperature == 1.1
    output = buffer.getvalue()
    assert "Temperature must be between 0.0 and 2.0" in output
    assert "Profile 'ghost' not found." in output


@pytest.mark.asyncio
async def test_shell_command_goes_through_confirmation(tmp_path: Path):
    handler, buffer = _handler(tmp_path, answer="n")

    await handler.handle("/run echo hi")

    assert "Shell command cancelled by user." in buffer.getvalue()
    assert handler.context.gate.history[-1].action == "Run shell command"


@pytest.mark.asyncio
async def test_list_and_read_commands(tmp_path: Path):
    (tmp_path / "notes.txt").write_text("meow", encoding="utf-8")
    handler, buffer = _handler(tmp_path)

    await handler.handle("/ls")
    await handler.handle("/cat notes.txt")

    output = buffer.getvalue()
    assert "notes.txt" in output
    assert "meow" in output


@pytest.mark.asyncio
async def test_clear_and_stats(tmp_path: Path):
    handler, buffer = _handler(tmp_path)
    handler.store.commit("default", [{"role": "user", "content": "x"}])

    await handler.handle("/clear")
    await handler.handle("/stats")

    assert handler.store.current_session.messages == []
    assert "Messages" in buffer.getvalue()
