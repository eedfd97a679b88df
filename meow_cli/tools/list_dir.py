"""Directory listing tool."""

from typing import Any

from meow_cli.logging import get_logger
from meow_cli.tools.registry import Tool, ToolName, ToolResult, resolve_path

log = get_logger(__name__)


class ListDirTool(Tool):
    """List directory entries."""

    name = ToolName.LIST_DIR
    description = "List the files in a directory. Directories are suffixed with '/'."
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory to list",
            },
        },
        "required": ["path"],
    }

    async def execute(self, path: str, **kwargs: Any) -> ToolResult:
        directory = resolve_path(path, kwargs.get("_base_path"))
        if not directory.is_dir():
            return ToolResult.failure(f"Directory not found: {directory}")

        try:
            entries = []
            for child in directory.iterdir():
                try:
                    entries.append(child.name + "/" if child.is_dir() else child.name)
                except OSError:
                    entries.append(child.name)
        except OSError as e:
            log.error("List failed", path=str(directory), error=str(e))
            return ToolResult.failure(str(e))

        return ToolResult(content="\n".join(sorted(entries)))
