"""Web search tool powered by Brave Search API."""

import os
import re
from typing import Any

import httpx

from meow_cli import __version__
from meow_cli.confirmation import ConfirmationGate
from meow_cli.config import WebSearchToolConfig
from meow_cli.logging import get_logger
from meow_cli.tools.registry import Tool, ToolName, ToolResult

log = get_logger(__name__)


class WebSearchTool(Tool):
    """Search the web using Brave Search API."""

    name = ToolName.WEB_SEARCH
    description = "Search the web and return ranked results with titles, links, and snippets."
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Search query text",
            },
            "maxResults": {
                "type": "number",
                "description": "Maximum results to return (default from config, max 20)",
            },
        },
        "required": ["query"],
    }

    def __init__(self, gate: ConfirmationGate, settings: WebSearchToolConfig | None = None):
        self.gate = gate
        self.settings = settings or WebSearchToolConfig()
        self.client = httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": f"Meow CLI/{__version__} (Web Search Tool)"},
        )

    @staticmethod
    def _clean_text(value: str, max_chars: int = 500) -> str:
        """Normalize whitespace and bound output size."""
        cleaned = re.sub(r"\s+", " ", (value or "")).strip()
        if len(cleaned) <= max_chars:
            return cleaned
        return cleaned[:max_chars].rstrip() + "... [truncated]"

    def _effective_count(self, raw: Any) -> int:
        try:
            count = self.settings.max_results if raw is None else int(raw)
        except (TypeError, ValueError):
            count = self.settings.max_results
        return min(max(count, 1), 20)

    async def execute(self, query: str, **kwargs: Any) -> ToolResult:
        """Execute Brave web search."""
        q = (query or "").strip()
        if not q:
            return ToolResult.failure("Missing required query")

        api_key = self.settings.api_key.strip() or os.environ.get("BRAVE_API_KEY", "").strip()
        if not api_key:
            return ToolResult.failure(
                "Missing Brave API key. Set tools.web_search.api_key in config "
                "or BRAVE_API_KEY environment variable."
            )

        count = self._effective_count(kwargs.get("maxResults"))
        if not await self.gate.request("Web search", f"{q} (max {count} results)"):
            return ToolResult.cancelled("Web search cancelled by user.")

        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": api_key,
        }
        try:
            response = await self.client.get(
                self.settings.base_url,
                params={"q": q, "count": count},
                headers=headers,
                timeout=float(self.settings.timeout),
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            detail = f"HTTP {e.response.status_code}"
            body = (e.response.text or "").strip()
            if body:
                detail = f"{detail}: {self._clean_text(body, max_chars=300)}"
            log.error("Brave web search failed", query=q, error=detail)
            return ToolResult.failure(detail)
        except (httpx.HTTPError, ValueError) as e:
            log.error("Web search failed", query=q, error=str(e))
            return ToolResult.failure(str(e))

        web_block = payload.get("web", {}) if isinstance(payload, dict) else {}
        results = web_block.get("results", []) if isinstance(web_block, dict) else []
        if not isinstance(results, list):
            results = []
        results = results[:count]

        lines = [
            f"[QUERY: {q}]",
            f"[RESULTS: {len(results)}]",
            "",
        ]
        if not results:
            lines.append("No results found.")
        for idx, item in enumerate(results, start=1):
            if not isinstance(item, dict):
                continue
            title = self._clean_text(str(item.get("title", "") or "Untitled"), max_chars=180)
            link = str(item.get("url", "") or "").strip()
            desc = self._clean_text(str(item.get("description", "") or ""))
            lines.append(f"{idx}. {title}")
            lines.append(f"   URL: {link or '-'}")
            lines.append(f"   Snippet: {desc or '-'}")
            lines.append("")

        return ToolResult(content="\n".join(lines).strip())

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
