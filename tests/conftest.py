# No `from __future__ import annotations` here: FastMCP inspects tool
# signatures at runtime to find the Context parameter.
import asyncio
import json
import threading
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterator

import anyio
import pytest
import uvicorn
from mcp import types
from mcp.server.fastmcp import Context, FastMCP
from mcp.shared.memory import create_client_server_memory_streams

from jewel_assist.mcp_client import InvocationGate, ToolClient, ToolSession

RENDERED_IMAGE = "http://x/y.png"


@asynccontextmanager
async def serve_in_memory(server: FastMCP) -> AsyncIterator[tuple[Any, Any]]:
    """Run `server` on memory streams and yield the client side (read, write)."""

    lowlevel = server._mcp_server
    async with create_client_server_memory_streams() as (client_streams, server_streams):
        async with anyio.create_task_group() as tg:

            async def run_server() -> None:
                await lowlevel.run(
                    server_streams[0],
                    server_streams[1],
                    lowlevel.create_initialization_options(),
                    raise_exceptions=False,
                )

            tg.start_soon(run_server)
            try:
                yield client_streams
            finally:
                tg.cancel_scope.cancel()


class MemoryBinding:
    """Transport binding that serves a FastMCP app in-process; counts opens."""

    kind = "memory"
    reconnect = None

    def __init__(self, server: FastMCP) -> None:
        self.server = server
        self.opened = 0
        self.closed = 0
        self.handles: list[Any] = []

    def describe(self) -> str:
        return f"memory://{self.server.name}"

    @asynccontextmanager
    async def open(self) -> AsyncIterator[tuple[Any, Any]]:
        async with serve_in_memory(self.server) as (read, write):
            self.opened += 1
            self.handles.append(write)
            try:
                yield read, write
            finally:
                self.closed += 1


def build_design_server() -> FastMCP:
    server = FastMCP("design-stub")

    @server.tool()
    async def gen_design(prompt: str, ctx: Context) -> str:
        for i in range(1, 4):
            await ctx.report_progress(i, 3, f"e{i}")
        return json.dumps({"rendered_image": RENDERED_IMAGE, "prompt": prompt})

    @server.tool()
    async def hang() -> str:
        await asyncio.sleep(3600)
        return "never"

    @server.tool()
    def fail() -> str:
        raise ValueError("boom")

    @server.tool()
    def ping() -> str:
        return "pong"

    return server


@pytest.fixture
def design_server() -> FastMCP:
    return build_design_server()


@pytest.fixture
def memory_binding(design_server: FastMCP) -> MemoryBinding:
    return MemoryBinding(design_server)


@pytest.fixture
def in_memory_server():
    return serve_in_memory


@pytest.fixture
def make_session():
    def factory(binding: Any, *, connect_timeout_s: float = 5.0) -> ToolSession:
        return ToolSession(
            binding,
            client_info=types.Implementation(name="jewel-assist-tests", version="0"),
            connect_timeout_s=connect_timeout_s,
        )

    return factory


@pytest.fixture
def make_client(make_session, memory_binding: MemoryBinding):
    def factory(
        binding: Any = None,
        *,
        gate: InvocationGate | None = None,
        timeout_s: float = 30.0,
    ) -> ToolClient:
        session = make_session(binding if binding is not None else memory_binding)
        return ToolClient(session, gate=gate or InvocationGate(), default_timeout_s=timeout_s)

    return factory


@pytest.fixture
def http_design_url(design_server: FastMCP) -> Iterator[str]:
    """Serve the design server over real streamable HTTP on an ephemeral port."""

    config = uvicorn.Config(
        design_server.streamable_http_app(),
        host="127.0.0.1",
        port=0,
        log_level="warning",
        timeout_graceful_shutdown=1,
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="mcp-http-test-server", daemon=True)
    thread.start()

    deadline = time.monotonic() + 10.0
    while not server.started:
        if not thread.is_alive() or time.monotonic() > deadline:
            raise RuntimeError("streamable HTTP test server did not start")
        time.sleep(0.02)

    port = server.servers[0].sockets[0].getsockname()[1]
    try:
        yield f"http://127.0.0.1:{port}{design_server.settings.streamable_http_path}"
    finally:
        server.should_exit = True
        thread.join(timeout=10.0)
