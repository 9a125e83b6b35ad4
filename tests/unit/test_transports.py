from __future__ import annotations

import asyncio
import time
import warnings
from contextlib import asynccontextmanager
from typing import Any

import httpx
import pytest

from jewel_assist.config import build_app_config
from jewel_assist.config.model import HttpTransportConfig, McpClientConfig, StdioTransportConfig
from jewel_assist.mcp_client import (
    ConnectionFailureError,
    InvocationGate,
    ProgressEvent,
    StdioBinding,
    StreamableHttpBinding,
    ToolClient,
    ToolTimeoutError,
    build_binding,
    decode_design_result,
)
from jewel_assist.mcp_client import transports


def test_build_binding_follows_the_configured_transport() -> None:
    http = build_binding(McpClientConfig(transport="streamable_http"))
    stdio = build_binding(McpClientConfig(transport="stdio"))

    assert isinstance(http, StreamableHttpBinding)
    assert http.kind == "streamable_http"
    assert http.reconnect is not None
    assert http.reconnect.max_retries == 10
    assert http.reconnect.max_delay_s == pytest.approx(0.6)

    assert isinstance(stdio, StdioBinding)
    assert stdio.kind == "stdio"
    assert stdio.reconnect is None


def test_build_binding_has_no_fallback() -> None:
    with pytest.raises(ValueError):
        build_binding(McpClientConfig(transport="websocket"))  # type: ignore[arg-type]


def test_http_timeout_maps_the_envelope_limits() -> None:
    binding = StreamableHttpBinding(
        HttpTransportConfig(timeout_s=30.0, sse_read_timeout_s=31.0, headers_timeout_s=20.0, body_timeout_s=32.0)
    )
    t = binding.http_timeout()

    assert t.connect == 20.0
    assert t.read == 31.0
    assert t.write == 32.0
    assert t.pool == 30.0


def test_http_client_carries_headers_and_limits() -> None:
    binding = StreamableHttpBinding(HttpTransportConfig(headers={"X-Trace": "1"}, headers_timeout_s=7.0))

    async def run() -> httpx.AsyncClient:
        async with binding.http_client() as client:
            return client

    client = asyncio.run(run())
    assert client.headers["X-Trace"] == "1"
    assert client.timeout.connect == 7.0
    assert client.follow_redirects is True


def test_stdio_child_gets_no_bot_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "super-secret")
    monkeypatch.setenv("PUBLIC_KEY", "pk")
    binding = StdioBinding(
        StdioTransportConfig(command="python3", args=["server.py", "--quiet"], env={"EXTRA": "1"}, cwd="/srv")
    )
    params = binding.server_parameters()

    assert params.command == "python3"
    assert params.args == ["server.py", "--quiet"]
    assert params.cwd == "/srv"
    assert params.env is not None
    assert params.env["PYTHONUNBUFFERED"] == "1"
    assert params.env["EXTRA"] == "1"
    assert "PATH" in params.env
    assert "DISCORD_TOKEN" not in params.env
    assert "PUBLIC_KEY" not in params.env
    assert binding.describe() == "python3 server.py --quiet"


def _http_client_for(url: str, *, tool_timeout_s: float = 30) -> ToolClient:
    cfg = build_app_config(
        {"mcp": {"transport": "streamable_http", "tool_timeout_s": tool_timeout_s, "http": {"url": url}}},
        environ={},
    )
    return ToolClient.from_config(cfg.mcp, gate=InvocationGate())


def test_design_call_over_live_streamable_http(http_design_url: str) -> None:
    events: list[ProgressEvent] = []

    async def run():
        client = _http_client_for(http_design_url)
        try:
            return await client.call_tool("gen_design", {"prompt": "ring"}, on_progress=events.append)
        finally:
            await client.close()

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = asyncio.run(run())

    assert not [w for w in caught if "streamable_http_client" in str(w.message)]

    design = decode_design_result(result)
    assert design.rendered_image == "http://x/y.png"
    assert design.data["prompt"] == "ring"
    assert [e.message for e in events] == ["e1", "e2", "e3"]


def test_consecutive_http_calls_each_get_a_session(http_design_url: str) -> None:
    async def run() -> None:
        client = _http_client_for(http_design_url)
        try:
            first = await client.call_tool("gen_design", {"prompt": "a"})
            second = await client.call_tool("gen_design", {"prompt": "b"})
        finally:
            await client.close()
        assert decode_design_result(first).data["prompt"] == "a"
        assert decode_design_result(second).data["prompt"] == "b"

    asyncio.run(run())


def test_timeout_over_live_streamable_http(http_design_url: str) -> None:
    async def run() -> tuple[ToolTimeoutError, float]:
        client = _http_client_for(http_design_url)
        try:
            started = time.monotonic()
            with pytest.raises(ToolTimeoutError) as ei:
                await client.call_tool("hang", timeout_s=0.5)
            elapsed = time.monotonic() - started
            assert not client.busy
            return ei.value, elapsed
        finally:
            await client.close()

    err, elapsed = asyncio.run(run())
    assert err.timeout_s == pytest.approx(0.5)
    assert 0.5 <= err.elapsed_s < 5.0
    assert elapsed < 10.0


def test_http_binding_hands_its_client_to_the_sdk(
    monkeypatch: pytest.MonkeyPatch, design_server, in_memory_server
) -> None:
    seen: list[tuple[str, httpx.AsyncClient]] = []

    @asynccontextmanager
    async def fake_streamable_http_client(url: str, *, http_client: httpx.AsyncClient, **kwargs: Any):
        seen.append((url, http_client))
        async with in_memory_server(design_server) as (read, write):
            yield read, write, lambda: None

    monkeypatch.setattr(transports, "streamable_http_client", fake_streamable_http_client)

    async def run():
        client = _http_client_for("http://tools.test/mcp")
        try:
            return await client.call_tool("gen_design", {"prompt": "ring"})
        finally:
            await client.close()

    assert decode_design_result(asyncio.run(run())).rendered_image == "http://x/y.png"
    url, http = seen[0]
    assert url == "http://tools.test/mcp"
    assert http.timeout.read == 90
    assert http.timeout.connect == 60
    assert http.is_closed


def test_http_connection_refused_is_retried_then_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    attempts: list[str] = []

    @asynccontextmanager
    async def refusing_client(url: str, **kwargs: Any):
        attempts.append(url)
        raise httpx.ConnectError("connection refused")
        yield  # pragma: no cover

    monkeypatch.setattr(transports, "streamable_http_client", refusing_client)
    cfg = McpClientConfig(http=HttpTransportConfig(max_retries=2, max_reconnection_delay_s=0.01))

    async def run() -> ConnectionFailureError:
        client = ToolClient.from_config(cfg, gate=InvocationGate())
        with pytest.raises(ConnectionFailureError) as ei:
            await client.call_tool("gen_design", {"prompt": "ring"})
        assert not client.busy
        return ei.value

    err = asyncio.run(run())
    assert len(attempts) == 3
    assert "connection refused" in err.message


def test_stdio_launch_failure_is_a_connection_failure() -> None:
    cfg = McpClientConfig(
        transport="stdio",
        stdio=StdioTransportConfig(command="/nonexistent/jewel-assist-tool-server", args=[]),
    )

    async def run() -> None:
        client = ToolClient.from_config(cfg, gate=InvocationGate())
        with pytest.raises(ConnectionFailureError):
            await client.call_tool("gen_design", {"prompt": "ring"})
        assert not client.busy

    asyncio.run(run())
