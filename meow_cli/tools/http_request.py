"""HTTP request tool with its own timeout."""

import json
from typing import Any

import httpx

from meow_cli import __version__
from meow_cli.confirmation import ConfirmationGate
from meow_cli.config import HttpToolConfig
from meow_cli.logging import get_logger
from meow_cli.tools.registry import Tool, ToolName, ToolResult

log = get_logger(__name__)

ALLOWED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}


class HttpRequestTool(Tool):
    """Send an HTTP request and return status, headers and body."""

    name = ToolName.HTTP_REQUEST
    description = "Send an HTTP request to a URL and return the status and response body."
    parameters = {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "Absolute http(s) URL",
            },
            "method": {
                "type": "string",
                "description": "HTTP method (default GET)",
            },
            "headers": {
                "type": "object",
                "description": "Request headers",
            },
            "body": {
                "type": "string",
                "description": "Request body",
            },
            "timeoutMs": {
                "type": "number",
                "description": "Timeout in milliseconds",
            },
        },
        "required": ["url"],
    }

    def __init__(self, gate: ConfirmationGate, settings: HttpToolConfig | None = None):
        self.gate = gate
        self.settings = settings or HttpToolConfig()
        self.client = httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": f"Meow CLI/{__version__} (HTTP Request Tool)"},
        )

    def _timeout_seconds(self, raw: Any) -> float:
        try:
            timeout_ms = float(raw) if raw is not None else float(self.settings.timeout_ms)
        except (TypeError, ValueError):
            timeout_ms = float(self.settings.timeout_ms)
        return max(0.1, timeout_ms / 1000.0)

    def _format_response(self, response: httpx.Response) -> str:
        body = response.text or ""
        if len(body) > self.settings.max_chars:
            body = body[: self.settings.max_chars] + f"\n... [truncated, {len(response.text)} total chars]"
        content_type = response.headers.get("content-type", "-")
        return (
            f"[HTTP {response.status_code} {response.reason_phrase}]\n"
            f"[Content-Type: {content_type}]\n\n"
            f"{body}"
        ).rstrip()

    async def execute(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, Any] | None = None,
        body: Any = None,
        **kwargs: Any,
    ) -> ToolResult:
        target = str(url or "").strip()
        if not target.lower().startswith(("http://", "https://")):
            return ToolResult.failure(f"Unsupported URL: {target or '-'}")

        verb = str(method or "GET").strip().upper()
        if verb not in ALLOWED_METHODS:
            return ToolResult.failure(f"Unsupported HTTP method: {verb}")

        if headers is not None and not isinstance(headers, dict):
            return ToolResult.failure("headers must be an object")
        request_headers = {str(k): str(v) for k, v in (headers or {}).items()}

        if isinstance(body, (dict, list)):
            payload = json.dumps(body, ensure_ascii=False)
            request_headers.setdefault("Content-Type", "application/json")
        else:
            payload = None if body is None else str(body)

        timeout = self._timeout_seconds(kwargs.get("timeoutMs"))

        detail = f"{verb} {target}"
        if request_headers:
            detail += "\n" + "\n".join(f"{k}: {v}" for k, v in request_headers.items())
        if payload:
            detail += f"\n\n{payload[:1000]}"
        if not await self.gate.request("HTTP request", detail):
            return ToolResult.cancelled("HTTP request cancelled by user.")

        try:
            log.info("Sending HTTP request", method=verb, url=target, timeout=timeout)
            response = await self.client.request(
                verb,
                target,
                headers=request_headers,
                content=payload,
                timeout=timeout,
            )
        except httpx.TimeoutException:
            return ToolResult.failure(f"Request timed out after {int(timeout * 1000)}ms")
        except httpx.HTTPError as e:
            log.error("HTTP request failed", url=target, error=str(e))
            return ToolResult.failure(f"HTTP error: {e}")

        return ToolResult(content=self._format_response(response))

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
