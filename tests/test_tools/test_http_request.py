import json

import httpx
import pytest

from meow_cli.config import HttpToolConfig
from meow_cli.confirmation import ConfirmationGate
from meow_cli.tools import ToolOutcome
from meow_cli.tools.http_request import HttpRequestTool


async def _approve(request, cancel):
    return "y"


async def _deny(request, cancel):
    return "n"


def _tool(handler, decide=_approve, settings: HttpToolConfig | None = None) -> HttpRequestTool:
    tool = HttpRequestTool(ConfirmationGate(decide), settings)
    tool.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return tool


@pytest.mark.asyncio
async def test_get_formats_status_content_type_and_body():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        return httpx.Response(200, headers={"content-type": "text/plain"}, text="pong")

    tool = _tool(handler)
    result = await tool.execute(url="https://example.com/ping")
    await tool.close()

    assert result.success is True
    assert result.content == "[HTTP 200 OK]\n[Content-Type: text/plain]\n\npong"


@pytest.mark.asyncio
async def test_object_body_is_sent_as_json():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"ok": True})

    tool = _tool(handler)
    result = await tool.execute(url="https://example.com/items", method="post", body={"a": 1})
    await tool.close()

    assert result.success is True
    assert seen[0].method == "POST"
    assert json.loads(seen[0].content) == {"a": 1}
    assert seen[0].headers["content-type"] == "application/json"
    assert result.content.startswith("[HTTP 201 Created]")


@pytest.mark.asyncio
async def test_denied_request_is_not_sent():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    tool = _tool(handler, decide=_deny)
    result = await tool.execute(url="https://example.com")
    await tool.close()

    assert result.outcome is ToolOutcome.CANCELLED
    assert result.to_text() == "HTTP request cancelled by user."
    assert seen == []


@pytest.mark.asyncio
async def test_timeout_is_reported_in_milliseconds():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    tool = _tool(handler)
    result = await tool.execute(url="https://example.com", timeoutMs=250)
    await tool.close()

    assert result.success is False
    assert result.error == "Request timed out after 250ms"


@pytest.mark.asyncio
async def test_body_is_clipped_to_max_chars():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="z" * 50)

    tool = _tool(handler, settings=HttpToolConfig(max_chars=10))
    result = await tool.execute(url="http://example.com")
    await tool.close()

    assert "z" * 10 in result.content
    assert "z" * 11 not in result.content
    assert "[truncated, 50 total chars]" in result.content


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"url": "ftp://example.com"}, "Unsupported URL"),
        ({"url": "https://example.com", "method": "BREW"}, "Unsupported HTTP method"),
        ({"url": "https://example.com", "headers": "x"}, "headers must be an object"),
    ],
)
async def test_invalid_requests_fail_before_confirmation(kwargs, message):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200)

    tool = _tool(handler, decide=_deny)
    result = await tool.execute(**kwargs)
    await tool.close()

    assert result.outcome is ToolOutcome.ERROR
    assert message in (result.error or "")
