"""Read tool for reading file contents."""

from typing import Any

from meow_cli.logging import get_logger
from meow_cli.tools.registry import Tool, ToolName, ToolResult, resolve_path

log = get_logger(__name__)


class ReadFileTool(Tool):
    """Read file contents."""

    name = ToolName.READ_FILE
    description = "Read the contents of a text file."
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to read",
            },
        },
        "required": ["path"],
    }

    def __init__(self, max_chars: int = 50000):
        self.max_chars = max_chars

    async def execute(self, path: str, **kwargs: Any) -> ToolResult:
        """Read a file.

        Args:
            path: Path to file

        Returns:
            ToolResult with file contents, truncated past ``max_chars``
        """
        file_path = resolve_path(path, kwargs.get("_base_path"))
        if not file_path.is_file():
            return ToolResult.failure(f"File not found: {file_path}")

        try:
            content = file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log.error("Read failed", path=str(file_path), error=str(e))
            return ToolResult.failure(f"Read error: {e}")

        if len(content) > self.max_chars:
            content = content[: self.max_chars] + f"\n...[TRUNCATED: {len(content)} chars total]..."
        return ToolResult(content=content)
