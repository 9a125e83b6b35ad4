"""Transport bindings: how a session reaches the tool server.

A binding's `open()` is an async context manager yielding the
(read_stream, write_stream) pair that `mcp.ClientSession` runs over. Leaving
the context closes the channel (terminates the child process, closes the HTTP
client).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Protocol

import httpx
from mcp import StdioServerParameters
from mcp.client.stdio import get_default_environment, stdio_client
from mcp.client.streamable_http import streamable_http_client

from jewel_assist.config.model import HttpTransportConfig, McpClientConfig, StdioTransportConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Bounded reconnection: capped exponential backoff between attempts."""

    max_retries: int
    max_delay_s: float
    initial_delay_s: float = 0.1

    def delay_for(self, attempt: int) -> float:
        return min(self.max_delay_s, self.initial_delay_s * (2**attempt))


class TransportBinding(Protocol):
    kind: str
    reconnect: ReconnectPolicy | None

    def open(self) -> AsyncContextManager[tuple[Any, Any]]:
        ...

    def describe(self) -> str:
        ...


class StdioBinding:
    """Launch the tool server as a subprocess and talk over its stdin/stdout."""

    kind = "stdio"
    reconnect: ReconnectPolicy | None = None

    def __init__(self, cfg: StdioTransportConfig) -> None:
        self._cfg = cfg

    def describe(self) -> str:
        return " ".join([self._cfg.command, *self._cfg.args])

    def server_parameters(self) -> StdioServerParameters:
        # The child gets the SDK's default environment subset, never bot credentials.
        # Unbuffered Python on the server side; stdio framing hangs otherwise.
        env = {**get_default_environment(), "PYTHONUNBUFFERED": "1", **(self._cfg.env or {})}
        return StdioServerParameters(
            command=self._cfg.command,
            args=list(self._cfg.args),
            env=env,
            cwd=self._cfg.cwd,
        )

    @asynccontextmanager
    async def open(self) -> AsyncIterator[tuple[Any, Any]]:
        async with stdio_client(self.server_parameters()) as (read, write):
            yield read, write


class StreamableHttpBinding:
    """Persistent streamable HTTP connection to a remote MCP endpoint."""

    kind = "streamable_http"

    def __init__(self, cfg: HttpTransportConfig) -> None:
        self._cfg = cfg
        self.reconnect: ReconnectPolicy | None = ReconnectPolicy(
            max_retries=cfg.max_retries,
            max_delay_s=cfg.max_reconnection_delay_s,
        )

    def describe(self) -> str:
        return self._cfg.url

    def http_timeout(self) -> httpx.Timeout:
        """Map the envelope limits onto httpx's four timeout phases.

        connect: waiting for the server to accept and answer (headers limit)
        read:    gap between chunks of a response, including SSE streams
        write:   sending a request body (body limit)
        pool:    waiting for a pooled connection (request limit)
        """

        return httpx.Timeout(
            connect=self._cfg.headers_timeout_s,
            read=self._cfg.sse_read_timeout_s,
            write=self._cfg.body_timeout_s,
            pool=self._cfg.timeout_s,
        )

    def http_client(self) -> httpx.AsyncClient:
        """The HTTP client the SDK transport runs on; it carries every limit."""

        return httpx.AsyncClient(
            headers=dict(self._cfg.headers) or None,
            timeout=self.http_timeout(),
            follow_redirects=True,
        )

    @asynccontextmanager
    async def open(self) -> AsyncIterator[tuple[Any, Any]]:
        logger.info("mcp_http_connecting", extra={"url": self._cfg.url})
        async with self.http_client() as http:
            async with streamable_http_client(self._cfg.url, http_client=http) as (read, write, _get_session_id):
                yield read, write


def build_binding(cfg: McpClientConfig) -> TransportBinding:
    """Select the binding named by the config. There is no fallback."""

    if cfg.transport == "stdio":
        return StdioBinding(cfg.stdio)
    if cfg.transport == "streamable_http":
        return StreamableHttpBinding(cfg.http)
    raise ValueError(f"unsupported MCP transport: {cfg.transport!r}")
