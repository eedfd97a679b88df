"""OpenAI-compatible chat-completions provider - direct HTTP calls."""

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from meow_cli.config import ModelConfig
from meow_cli.exceptions import ConfigurationError, LLMAPIError, LLMTransportError
from meow_cli.logging import get_logger

log = get_logger(__name__)


ERROR_BODY_MAX_CHARS = 500


def decode_tool_arguments(raw: Any) -> dict[str, Any]:
    """Decode the JSON argument text attached to a tool call.

    Anything that does not decode to a JSON object yields an empty mapping.
    """
    if isinstance(raw, dict):
        return dict(raw)
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        log.debug("Tool arguments are not valid JSON", raw=raw[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}


@dataclass
class ToolCall:
    """A tool call from the LLM."""

    id: str
    name: str
    arguments: dict[str, Any]
    raw_arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Wire shape used inside an assistant message."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": self.raw_arguments or json.dumps(self.arguments, ensure_ascii=False),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        """Parse a wire tool call, degrading bad arguments to an empty mapping."""
        function = data.get("function") or {}
        raw = function.get("arguments", "")
        return cls(
            id=str(data.get("id") or f"call_{uuid.uuid4().hex[:12]}"),
            name=str(function.get("name", "")),
            arguments=decode_tool_arguments(raw),
            raw_arguments=raw if isinstance(raw, str) else json.dumps(raw, ensure_ascii=False),
        )


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the chat-completions wire shape."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from a wire dict."""
        return cls(
            role=str(data.get("role", "")),
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []],
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass
class LLMResponse:
    """Response from the LLM."""

    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)

    def to_message(self) -> Message:
        """Assistant message carrying this response."""
        return Message(role="assistant", content=self.content, tool_calls=list(self.tool_calls))


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool advertised to the LLM."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def send(
        self,
        messages: list[Message | dict[str, Any]],
        tools: list[ToolDefinition] | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        pass

    def reconfigure(self, settings: ModelConfig) -> None:
        """Apply changed endpoint settings to subsequent calls."""
        return None

    async def close(self) -> None:
        """Release transport resources."""
        return None


class OpenAIChatProvider(LLMProvider):
    """Provider for any endpoint speaking the OpenAI chat-completions protocol."""

    def __init__(
        self,
        model: str = "gpt-4-turbo",
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        temperature: float = 0.2,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize provider.

        Args:
            model: Model name sent with every request
            base_url: API base URL (``/chat/completions`` is appended)
            api_key: Bearer token
            temperature: Default sampling temperature
            timeout: Request timeout in seconds
            client: Optional preconfigured HTTP client
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.temperature = temperature

        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    @staticmethod
    def _convert_messages(messages: list[Message | dict[str, Any]]) -> list[dict[str, Any]]:
        """Convert messages to wire dicts."""
        result = []
        for msg in messages:
            if isinstance(msg, Message):
                result.append(msg.to_dict())
            else:
                result.append(dict(msg))
        return result

    @staticmethod
    def _truncate_body(text: str) -> str:
        cleaned = (text or "").strip()
        if len(cleaned) <= ERROR_BODY_MAX_CHARS:
            return cleaned
        return cleaned[:ERROR_BODY_MAX_CHARS] + "... [truncated]"

    def _build_body(
        self,
        messages: list[Message | dict[str, Any]],
        tools: list[ToolDefinition] | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "temperature": self.temperature if temperature is None else temperature,
        }
        if tools:
            body["tools"] = [tool.to_dict() for tool in tools]
            body["tool_choice"] = "auto"
        return body

    async def send(
        self,
        messages: list[Message | dict[str, Any]],
        tools: list[ToolDefinition] | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Send the conversation and return the model's next message."""
        if not self.api_key:
            raise ConfigurationError(
                "API key is not set. Use /key <key> or set OPENAI_API_KEY."
            )

        url = f"{self.base_url}/chat/completions"
        body = self._build_body(messages, tools, temperature)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            log.debug("Calling model", model=self.model, url=url, msg_count=len(body["messages"]))
            response = await self.client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise LLMTransportError(f"Network error: {e}") from e

        log.debug("Model response status", status=response.status_code)

        if not response.is_success:
            error_text = self._truncate_body(response.text)
            raise LLMAPIError(
                f"API error ({response.status_code}): {error_text}",
                status_code=response.status_code,
                body=error_text,
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise LLMTransportError(f"Response decode error: {e}") from e

        try:
            return self._parse_response(data)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise LLMTransportError(f"Malformed response: {e}") from e

    def _parse_response(self, data: Any) -> LLMResponse:
        message = data["choices"][0]["message"]
        if not isinstance(message, dict):
            raise TypeError("choices[0].message is not an object")

        tool_calls = [
            ToolCall.from_dict(tc)
            for tc in (message.get("tool_calls") or [])
            if isinstance(tc, dict)
        ]

        usage: dict[str, int] = {}
        raw_usage = data.get("usage")
        if isinstance(raw_usage, dict):
            for key in ("prompt_tokens", "completion_tokens", "total_tokens"):
                if key in raw_usage:
                    usage[key] = int(raw_usage.get(key) or 0)

        return LLMResponse(
            content=message.get("content"),
            tool_calls=tool_calls,
            model=str(data.get("model", self.model)),
            usage=usage,
        )

    def reconfigure(self, settings: ModelConfig) -> None:
        self.model = settings.model
        self.base_url = settings.api_base.rstrip("/")
        self.api_key = settings.api_key

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def create_provider(settings: ModelConfig, temperature: float = 0.2) -> LLMProvider:
    """Create the chat-completions provider from model settings."""
    return OpenAIChatProvider(
        model=settings.model,
        base_url=settings.api_base,
        api_key=settings.api_key,
        temperature=temperature,
        timeout=settings.timeout,
    )
