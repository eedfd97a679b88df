"""Agent loop: model round trips interleaved with tool execution."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from meow_cli.config import Config
from meow_cli.confirmation import ConfirmationGate, DecisionSource
from meow_cli.exceptions import ConfigurationError, MeowError
from meow_cli.llm import LLMProvider, Message, create_provider
from meow_cli.logging import get_logger
from meow_cli.session import SessionStore
from meow_cli.tools import ToolRegistry, build_tool_registry

log = get_logger(__name__)


class LoopState(str, Enum):
    """AgentLoop state machine."""

    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    HALTED_LIMIT = "halted_limit"


def empty_usage() -> dict[str, int]:
    """Create an empty usage bucket."""
    return {
        "prompt_tokens": 0,
        "completion_tokens": 0,
        "total_tokens": 0,
    }


def accumulate_usage(target: dict[str, int], usage: dict[str, int] | None) -> None:
    """Add usage values into target totals."""
    if not usage:
        return
    prompt = int(usage.get("prompt_tokens", 0))
    completion = int(usage.get("completion_tokens", 0))
    total = int(usage.get("total_tokens", prompt + completion))
    target["prompt_tokens"] += prompt
    target["completion_tokens"] += completion
    target["total_tokens"] += total


@dataclass
class AgentContext:
    """Handles threaded through the loop instead of process-wide singletons."""

    config: Config
    store: SessionStore
    provider: LLMProvider
    tools: ToolRegistry
    gate: ConfirmationGate

    @classmethod
    def build(
        cls,
        config: Config,
        decide: DecisionSource,
        store: SessionStore | None = None,
        provider: LLMProvider | None = None,
        base_path: Path | str | None = None,
    ) -> "AgentContext":
        """Wire the default collaborators from configuration."""
        gate = ConfirmationGate(
            decide,
            policy=config.confirmation.policy,
            timeout=config.confirmation.timeout,
            auto_approve=config.confirmation.auto_yes,
        )
        return cls(
            config=config,
            store=store if store is not None else SessionStore.load(config.session.path),
            provider=provider or create_provider(config.model, config.active_profile().temperature),
            tools=build_tool_registry(config, gate, base_path=base_path),
            gate=gate,
        )

    async def close(self) -> None:
        await self.provider.close()
        await self.tools.close()


@dataclass
class RoundResult:
    """Outcome of one user turn."""

    state: LoopState
    content: str | None
    session: str
    model_calls: int = 0
    tool_calls: int = 0
    usage: dict[str, int] = field(default_factory=empty_usage)


class AgentLoop:
    """Drives one user turn until the model answers without tool calls."""

    def __init__(
        self,
        context: AgentContext,
        on_tool_call: Callable[[str, dict[str, Any]], None] | None = None,
        on_tool_result: Callable[[str, str], None] | None = None,
    ):
        self.context = context
        self.on_tool_call = on_tool_call
        self.on_tool_result = on_tool_result
        self.state = LoopState.IDLE
        self.last_usage: dict[str, int] = empty_usage()
        self.total_usage: dict[str, int] = empty_usage()
        self.turns = 0

    @property
    def max_rounds(self) -> int:
        return max(1, int(self.context.config.agent.max_rounds))

    def system_message(self) -> dict[str, Any]:
        """System message derived from the active profile."""
        return Message(role="system", content=self.context.config.active_profile().system).to_dict()

    def _emit_tool_call(self, name: str, arguments: dict[str, Any]) -> None:
        if not self.on_tool_call:
            return
        try:
            self.on_tool_call(name, arguments)
        except Exception as e:
            log.debug("Tool call callback failed", error=str(e))

    def _emit_tool_result(self, name: str, output: str) -> None:
        if not self.on_tool_result:
            return
        try:
            self.on_tool_result(name, output)
        except Exception as e:
            log.debug("Tool result callback failed", error=str(e))

    def _persist(self, session_name: str, conversation: list[dict[str, Any]]) -> None:
        # The system message is rebuilt from the profile on every turn.
        self.context.store.commit(session_name, conversation[1:])

    async def run_round(self, user_text: str) -> RoundResult:
        """Process user input and return the final answer.

        The working conversation is a copy of the session; it is written
        back only when the turn completes, so a failed turn leaves the
        stored history untouched.

        Raises:
            ConfigurationError: missing credentials
            LLMError: remote call failed
        """
        ctx = self.context
        session_name = ctx.store.current
        conversation: list[dict[str, Any]] = [self.system_message()]
        conversation.extend(dict(msg) for msg in ctx.store.current_session.messages)
        conversation.append(Message(role="user", content=user_text).to_dict())

        tool_defs = list(ctx.tools.get_definitions())
        temperature = ctx.config.active_profile().temperature
        turn_usage = empty_usage()
        self.last_usage = turn_usage
        self.turns += 1
        model_calls = 0
        tool_calls = 0

        try:
            for iteration in range(self.max_rounds):
                self.state = LoopState.AWAITING_RESPONSE
                log.info("Calling model", iteration=iteration + 1, message_count=len(conversation))
                response = await ctx.provider.send(conversation, tools=tool_defs, temperature=temperature)
                model_calls += 1
                accumulate_usage(turn_usage, response.usage)
                accumulate_usage(self.total_usage, response.usage)
                conversation.append(response.to_message().to_dict())

                if not response.tool_calls:
                    self.state = LoopState.DONE
                    self._persist(session_name, conversation)
                    return RoundResult(
                        state=self.state,
                        content=response.content or "",
                        session=session_name,
                        model_calls=model_calls,
                        tool_calls=tool_calls,
                        usage=turn_usage,
                    )

                self.state = LoopState.EXECUTING_TOOLS
                log.info("Tool calls detected", count=len(response.tool_calls))
                for call in response.tool_calls:
                    self._emit_tool_call(call.name, call.arguments)
                    result = await ctx.tools.execute(call.name, call.arguments)
                    output = result.to_text()
                    tool_calls += 1
                    conversation.append(
                        Message(role="tool", content=output, tool_call_id=call.id).to_dict()
                    )
                    self._emit_tool_result(call.name, output)
        except ConfigurationError:
            self.state = LoopState.IDLE
            log.warning("Round aborted before reaching the model; user message withdrawn", session=session_name)
            raise
        except MeowError as e:
            self.state = LoopState.IDLE
            log.error("Round aborted", session=session_name, error=str(e))
            raise

        self.state = LoopState.HALTED_LIMIT
        log.warning("Model call limit reached", session=session_name, limit=self.max_rounds)
        self._persist(session_name, conversation)
        return RoundResult(
            state=self.state,
            content=None,
            session=session_name,
            model_calls=model_calls,
            tool_calls=tool_calls,
            usage=turn_usage,
        )
