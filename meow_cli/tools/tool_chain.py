"""Sequential tool chain: run several tool calls in one request."""

import json
from dataclasses import asdict, dataclass
from typing import Any

from meow_cli.llm import decode_tool_arguments
from meow_cli.logging import get_logger
from meow_cli.tools.registry import Tool, ToolName, ToolOutcome, ToolRegistry, ToolResult

log = get_logger(__name__)


@dataclass
class ChainStepResult:
    """Result entry for one chain step."""

    step: int
    tool: str
    outcome: str
    output: str


def _parse_step(raw: Any) -> tuple[str, dict[str, Any]]:
    """Extract (tool name, arguments) from a step object."""
    if not isinstance(raw, dict):
        return "", {}
    name = str(raw.get("tool") or raw.get("name") or "").strip()
    args = raw.get("args", raw.get("arguments"))
    return name, decode_tool_arguments(args)


class ToolChainTool(Tool):
    """Run tools one after another, always attempting every step."""

    name = ToolName.TOOL_CHAIN
    description = (
        "Run a list of tool calls strictly in order. Every step is attempted even if an "
        "earlier step fails; one result entry is returned per step."
    )
    parameters = {
        "type": "object",
        "properties": {
            "steps": {
                "type": "array",
                "description": "Ordered steps to execute",
                "items": {
                    "type": "object",
                    "properties": {
                        "tool": {"type": "string", "description": "Tool name"},
                        "args": {"type": "object", "description": "Tool arguments"},
                    },
                    "required": ["tool"],
                },
            },
        },
        "required": ["steps"],
    }

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def run_steps(self, steps: list[Any]) -> list[ChainStepResult]:
        """Execute steps in input order; exactly one entry per step."""
        results: list[ChainStepResult] = []
        for index, raw in enumerate(steps, start=1):
            name, args = _parse_step(raw)
            if not name:
                result = ToolResult.failure("Step is missing a tool name")
            elif name == ToolName.TOOL_CHAIN.value:
                result = ToolResult.failure("tool_chain cannot be nested")
            else:
                result = await self.registry.execute(name, args)
            log.debug("Chain step finished", step=index, tool=name, outcome=result.outcome.value)
            results.append(
                ChainStepResult(
                    step=index,
                    tool=name or "?",
                    outcome=result.outcome.value,
                    output=result.to_text(),
                )
            )
        return results

    async def execute(self, steps: Any, **kwargs: Any) -> ToolResult:
        if isinstance(steps, str):
            try:
                steps = json.loads(steps)
            except json.JSONDecodeError:
                return ToolResult.failure("steps must be a list")
        if not isinstance(steps, list):
            return ToolResult.failure("steps must be a list")

        results = await self.run_steps(steps)
        failed = sum(1 for item in results if item.outcome != ToolOutcome.OK.value)
        log.info("Tool chain finished", steps=len(results), failed=failed)
        return ToolResult(
            content=json.dumps([asdict(item) for item in results], ensure_ascii=False, indent=2)
        )
