"""Write tool for creating or overwriting files behind a diff confirmation."""

import difflib
from pathlib import Path
from typing import Any

from meow_cli.confirmation import ConfirmationGate
from meow_cli.logging import get_logger
from meow_cli.tools.registry import Tool, ToolName, ToolResult, resolve_path

log = get_logger(__name__)

# Diffs at or below this many characters are applied without asking.
WRITE_DIFF_PROMPT_THRESHOLD = 100
DIFF_PREVIEW_MAX_CHARS = 3000


def compute_diff(file_path: Path, old: str, new: str) -> str:
    """Unified line diff between the current and the proposed content."""
    diff = difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=f"{file_path} (old)",
        tofile=f"{file_path} (new)",
    )
    return "".join(diff)


class WriteFileTool(Tool):
    """Write content to files."""

    name = ToolName.WRITE_FILE
    description = "Create or overwrite a file with the given content."
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to write",
            },
            "content": {
                "type": "string",
                "description": "Full new content of the file",
            },
        },
        "required": ["path", "content"],
    }

    def __init__(self, gate: ConfirmationGate):
        self.gate = gate

    async def execute(self, path: str, content: str, **kwargs: Any) -> ToolResult:
        """Write content to a file.

        Creating a file always asks first. Overwriting asks only when the
        diff is larger than ``WRITE_DIFF_PROMPT_THRESHOLD`` characters.
        """
        file_path = resolve_path(path, kwargs.get("_base_path"))
        content = "" if content is None else str(content)

        try:
            exists = file_path.exists()
            if exists and not file_path.is_file():
                return ToolResult.failure(f"Not a file: {file_path}")
            old = file_path.read_text(encoding="utf-8") if exists else ""
        except (OSError, UnicodeDecodeError) as e:
            log.error("Write failed reading existing file", path=str(file_path), error=str(e))
            return ToolResult.failure(f"Write error: {e}")

        diff = compute_diff(file_path, old, content)
        if not exists:
            preview = f"{file_path}\n\n{diff[:DIFF_PREVIEW_MAX_CHARS]}" if diff else str(file_path)
            if not await self.gate.request("Create new file", preview):
                return ToolResult.cancelled("File creation cancelled by user.")
        elif len(diff) > WRITE_DIFF_PROMPT_THRESHOLD:
            if not await self.gate.request("Write file", diff[:DIFF_PREVIEW_MAX_CHARS]):
                return ToolResult.cancelled("File write cancelled by user.")

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        except OSError as e:
            log.error("Write failed", path=str(file_path), error=str(e))
            return ToolResult.failure(f"Write error: {e}")

        return ToolResult(content=f"File written: {file_path} ({len(content)} chars)")
