"""Shell tool for executing commands after confirmation."""

import asyncio
import os
from typing import Any

from meow_cli.confirmation import ConfirmationGate
from meow_cli.config import ShellToolConfig
from meow_cli.logging import get_logger
from meow_cli.tools.registry import Tool, ToolName, ToolResult

log = get_logger(__name__)


class RunShellTool(Tool):
    """Execute shell commands."""

    name = ToolName.RUN_SHELL
    description = "Run a command in the terminal (bash) and return its output."
    parameters = {
        "type": "object",
        "properties": {
            "cmd": {
                "type": "string",
                "description": "The shell command to execute",
            },
        },
        "required": ["cmd"],
    }

    def __init__(self, gate: ConfirmationGate, settings: ShellToolConfig | None = None):
        self.gate = gate
        self.settings = settings or ShellToolConfig()

    @staticmethod
    def _format_output(stdout: str, stderr: str, returncode: int | None) -> str:
        output: list[str] = []
        if stdout:
            output.append(f"STDOUT:\n{stdout}")
        if stderr:
            output.append(f"STDERR:\n{stderr}")
        if returncode:
            output.append(f"EXIT CODE: {returncode}")
        return "\n\n".join(output) or "Command finished (no output)."

    async def execute(self, cmd: str, **kwargs: Any) -> ToolResult:
        """Execute a shell command.

        Args:
            cmd: Shell command to execute

        Returns:
            ToolResult with STDOUT/STDERR/EXIT CODE sections
        """
        command = str(cmd or "").strip()
        if not command:
            return ToolResult.failure("Command is empty")

        if not await self.gate.request("Run shell command", command):
            return ToolResult.cancelled("Shell command cancelled by user.")

        base_path = kwargs.get("_base_path")
        timeout = max(1, int(self.settings.timeout))

        try:
            log.info("Executing shell command", command=command, timeout=timeout)
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(base_path) if base_path else None,
                env=os.environ.copy(),
            )
            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                return ToolResult.failure(f"Command timed out after {timeout}s")
            except asyncio.CancelledError:
                process.kill()
                await process.wait()
                raise
        except OSError as e:
            log.error("Shell command failed", command=command, error=str(e))
            return ToolResult.failure(str(e))

        stdout_text = stdout.decode("utf-8", errors="replace").strip()
        stderr_text = stderr.decode("utf-8", errors="replace").strip()
        output = self._format_output(stdout_text, stderr_text, process.returncode)

        max_length = self.settings.max_output
        if len(output) > max_length:
            output = output[:max_length] + f"\n... [truncated, {len(output)} total chars]"

        # Non-zero exits are reported in-band via EXIT CODE.
        return ToolResult(content=output)
