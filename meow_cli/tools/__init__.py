"""Tools package for Meow CLI."""

from pathlib import Path

from meow_cli.config import Config
from meow_cli.confirmation import ConfirmationGate
from meow_cli.tools.registry import (
    Tool,
    ToolName,
    ToolOutcome,
    ToolRegistry,
    ToolResult,
)
from meow_cli.tools.list_dir import ListDirTool
from meow_cli.tools.read_file import ReadFileTool
from meow_cli.tools.write_file import WriteFileTool
from meow_cli.tools.shell import RunShellTool
from meow_cli.tools.http_request import HttpRequestTool
from meow_cli.tools.web_search import WebSearchTool
from meow_cli.tools.tool_chain import ToolChainTool


def build_tool_registry(
    config: Config,
    gate: ConfirmationGate,
    base_path: Path | str | None = None,
) -> ToolRegistry:
    """Build the registry with every ToolName bound to its handler."""
    registry = ToolRegistry(base_path=base_path)
    registry.register(ListDirTool())
    registry.register(ReadFileTool(max_chars=config.tools.read.max_chars))
    registry.register(WriteFileTool(gate))
    registry.register(RunShellTool(gate, config.tools.shell))
    registry.register(HttpRequestTool(gate, config.tools.http))
    registry.register(WebSearchTool(gate, config.tools.web_search))
    registry.register(ToolChainTool(registry))

    missing = [name.value for name in ToolName if not registry.has_tool(name.value)]
    if missing:
        raise RuntimeError(f"Tool registry incomplete: {', '.join(missing)}")
    return registry


__all__ = [
    "Tool",
    "ToolName",
    "ToolOutcome",
    "ToolRegistry",
    "ToolResult",
    "build_tool_registry",
    "ListDirTool",
    "ReadFileTool",
    "WriteFileTool",
    "RunShellTool",
    "HttpRequestTool",
    "WebSearchTool",
    "ToolChainTool",
]
