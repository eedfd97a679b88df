from pathlib import Path

import pytest

from meow_cli.config import Config
from meow_cli.confirmation import ConfirmationGate
from meow_cli.llm import ToolCall
from meow_cli.tools import ToolName, ToolOutcome, ToolRegistry, ToolResult, build_tool_registry
from meow_cli.tools.list_dir import ListDirTool
from meow_cli.tools.registry import Tool


async def _deny(request, cancel):
    return "n"


class _CrashingTool(Tool):
    name = ToolName.LIST_DIR
    parameters = {"type": "object", "properties": {}, "required": []}

    async def execute(self, **kwargs):
        raise RuntimeError("boom")


def test_build_registry_binds_every_tool_name(tmp_path: Path):
    registry = build_tool_registry(Config(), ConfirmationGate(_deny), base_path=tmp_path)

    assert registry.list_tools() == [name.value for name in ToolName]
    names = [definition.name for definition in registry.get_definitions()]
    assert names == [name.value for name in ToolName]
    assert all(d.to_dict()["type"] == "function" for d in registry.get_definitions())


@pytest.mark.asyncio
async def test_unknown_tool_yields_unknown_tool_result(tmp_path: Path):
    registry = ToolRegistry(base_path=tmp_path)
    registry.register(ListDirTool())

    result = await registry.execute("rm_rf", {"path": "/"})

    assert result.outcome is ToolOutcome.UNKNOWN_TOOL
    assert result.success is False
    assert result.to_text() == "Error: Unknown tool: rm_rf"


@pytest.mark.asyncio
async def test_malformed_arguments_reach_tool_as_empty_mapping(tmp_path: Path):
    registry = ToolRegistry(base_path=tmp_path)
    registry.register(ListDirTool())
    call = ToolCall.from_dict(
        {"id": "c1", "type": "function", "function": {"name": "list_dir", "arguments": "{"}}
    )

    assert call.arguments == {}
    result = await registry.execute(call.name, call.arguments)

    assert result.outcome is ToolOutcome.ERROR
    assert "Missing required argument: path" in (result.error or "")


@pytest.mark.asyncio
async def test_handler_crash_becomes_error_result(tmp_path: Path):
    registry = ToolRegistry(base_path=tmp_path)
    registry.register(_CrashingTool())

    result = await registry.execute("list_dir", {})

    assert result.outcome is ToolOutcome.ERROR
    assert result.error == "boom"


@pytest.mark.asyncio
async def test_extra_arguments_are_ignored_by_tolerant_tools(tmp_path: Path):
    registry = ToolRegistry(base_path=tmp_path)
    registry.register(ListDirTool())

    result = await registry.execute("list_dir", {"path": ".", "recursive": True, "depth": 3})

    assert result.success is True


@pytest.mark.asyncio
async def test_registry_strips_private_arguments(tmp_path: Path):
    (tmp_path / "inside").mkdir()
    registry = ToolRegistry(base_path=tmp_path)
    registry.register(ListDirTool())

    result = await registry.execute("list_dir", {"path": ".", "_base_path": "/"})

    assert result.success is True
    assert result.content == "inside/"


def test_tool_result_failure_always_has_error_text():
    result = ToolResult(outcome=ToolOutcome.ERROR)

    assert result.error == "Tool execution failed"
    assert ToolResult.cancelled("Nope.").to_text() == "Nope."
    assert ToolResult(content="ok").to_text() == "ok"
