"""Closed tool registry, base tool class and executor."""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, model_validator

from meow_cli.exceptions import ToolExecutionError
from meow_cli.llm import ToolDefinition
from meow_cli.logging import get_logger

log = get_logger(__name__)


class ToolName(str, Enum):
    """Every tool the agent can advertise. The set is fixed at build time."""

    LIST_DIR = "list_dir"
    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    RUN_SHELL = "run_shell"
    HTTP_REQUEST = "http_request"
    WEB_SEARCH = "web_search"
    TOOL_CHAIN = "tool_chain"


class ToolOutcome(str, Enum):
    """How a tool call ended."""

    OK = "ok"
    ERROR = "error"
    CANCELLED = "cancelled"
    UNKNOWN_TOOL = "unknown_tool"


class ToolResult(BaseModel):
    """Result from tool execution."""

    outcome: ToolOutcome = ToolOutcome.OK
    content: str = ""
    error: str | None = None

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "ToolResult":
        """Ensure non-ok results always provide an error message."""
        if self.outcome is not ToolOutcome.OK and not (self.error or "").strip():
            fallback = (self.content or "").strip()
            self.error = fallback or "Tool execution failed"
        return self

    @property
    def success(self) -> bool:
        return self.outcome is ToolOutcome.OK

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(outcome=ToolOutcome.ERROR, error=error)

    @classmethod
    def cancelled(cls, message: str) -> "ToolResult":
        return cls(outcome=ToolOutcome.CANCELLED, error=message)

    @classmethod
    def unknown_tool(cls, name: str) -> "ToolResult":
        return cls(outcome=ToolOutcome.UNKNOWN_TOOL, error=f"Unknown tool: {name}")

    def to_text(self) -> str:
        """Text handed back to the model as tool message content."""
        if self.outcome is ToolOutcome.OK:
            return self.content
        if self.outcome is ToolOutcome.CANCELLED:
            return str(self.error)
        return f"Error: {self.error}"


class Tool(ABC):
    """Base class for all tools."""

    name: ToolName
    description: str = ""
    parameters: dict[str, Any] = {}

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific arguments plus runtime values prefixed
                with an underscore (``_base_path``)

        Returns:
            ToolResult with outcome and content
        """
        pass

    def get_definition(self) -> ToolDefinition:
        """Get the tool definition for the LLM."""
        return ToolDefinition(
            name=self.name.value,
            description=self.description,
            parameters=self.parameters,
        )

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Validate required arguments against the schema.

        Raises:
            ToolExecutionError if a required argument is missing
        """
        required = self.parameters.get("required", [])
        for field in required:
            if field not in arguments:
                raise ToolExecutionError(
                    self.name.value,
                    f"Missing required argument: {field}",
                )


def resolve_path(raw: Any, base_path: Path | None) -> Path:
    """Resolve a tool path argument against the runtime base path."""
    requested = Path(str(raw or ".")).expanduser()
    if not requested.is_absolute() and base_path is not None:
        requested = base_path / requested
    return requested.resolve()


class ToolRegistry:
    """Registry of tool handlers keyed by ToolName; also the executor."""

    def __init__(self, base_path: Path | str | None = None):
        self._tools: dict[ToolName, Tool] = {}
        self._runtime_base_path = Path(base_path or Path.cwd()).expanduser().resolve()

    @property
    def runtime_base_path(self) -> Path:
        """Directory relative tool paths are resolved against."""
        return self._runtime_base_path

    def register(self, tool: Tool) -> None:
        """Register a tool under its fixed name."""
        name = ToolName(tool.name)
        log.debug("Registering tool", tool=name.value)
        self._tools[name] = tool

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        try:
            return ToolName(name) in self._tools
        except ValueError:
            return False

    def list_tools(self) -> list[str]:
        """List registered tool names in declaration order."""
        return [name.value for name in ToolName if name in self._tools]

    def get_definitions(self) -> tuple[ToolDefinition, ...]:
        """Tool specs advertised to the model."""
        return tuple(self._tools[name].get_definition() for name in ToolName if name in self._tools)

    def _lookup(self, name: str) -> Tool | None:
        try:
            key = ToolName(name)
        except ValueError:
            return None
        return self._tools.get(key)

    async def close(self) -> None:
        """Close tools that hold network clients."""
        for tool in self._tools.values():
            closer = getattr(tool, "close", None)
            if callable(closer):
                await closer()

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name.

        Never raises for tool-level problems: unknown names, missing
        arguments and handler crashes all come back as results.

        Args:
            name: Tool name
            arguments: Decoded tool arguments

        Returns:
            ToolResult from execution
        """
        tool = self._lookup(name)
        if tool is None:
            log.warning("Unknown tool requested", tool=name)
            return ToolResult.unknown_tool(name)

        arguments = {k: v for k, v in (arguments or {}).items() if not str(k).startswith("_")}
        try:
            tool.validate_arguments(arguments)
            log.info("Executing tool", tool=name, args=arguments)
            result = await tool.execute(**arguments, _base_path=self.runtime_base_path)
            if not isinstance(result, ToolResult):
                raise ToolExecutionError(name, "Tool returned invalid result payload")
            log.info("Tool executed", tool=name, outcome=result.outcome.value)
            return result
        except ToolExecutionError as e:
            log.warning("Tool rejected call", tool=name, error=str(e))
            return ToolResult.failure(str(e))
        except TypeError as e:
            log.warning("Tool called with unexpected arguments", tool=name, error=str(e))
            return ToolResult.failure(f"Invalid arguments for {name}: {e}")
        except Exception as e:
            log.error("Tool execution failed", tool=name, error=str(e))
            return ToolResult.failure(str(e))
