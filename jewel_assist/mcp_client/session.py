from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack, suppress
from typing import Any

import httpx
from mcp import ClientSession, types
from mcp.shared.session import ProgressFnT

from .errors import ConnectionFailureError
from .transports import TransportBinding
from .types import SessionState, ToolDescriptor

logger = logging.getLogger(__name__)


def _iter_causes(exc: BaseException) -> list[BaseException]:
    """Flatten exception groups and __cause__ chains (task groups wrap errors)."""

    out: list[BaseException] = []
    stack: list[BaseException] = [exc]
    while stack:
        e = stack.pop()
        out.append(e)
        if isinstance(e, BaseExceptionGroup):
            stack.extend(e.exceptions)
        if e.__cause__ is not None:
            stack.append(e.__cause__)
    return out


def _is_transport_error(exc: BaseException) -> bool:
    # A handshake that timed out is not retried; TimeoutError is an OSError.
    return any(
        isinstance(e, (httpx.TransportError, OSError)) and not isinstance(e, TimeoutError)
        for e in _iter_causes(exc)
    )


def _describe(exc: BaseException) -> str:
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class ToolSession:
    """One connection to the tool server, plus the tools it advertised.

    The transport is entered and exited by a dedicated runner task, so the
    SDK's task groups stay in one task no matter which task calls connect()
    or disconnect().
    """

    def __init__(
        self,
        binding: TransportBinding,
        *,
        client_info: types.Implementation,
        connect_timeout_s: float = 60.0,
    ) -> None:
        self._binding = binding
        self._client_info = client_info
        self._connect_timeout_s = float(connect_timeout_s)

        self._state = SessionState.DISCONNECTED
        self._session: ClientSession | None = None
        self._tools: list[ToolDescriptor] = []
        self._runner: asyncio.Task[None] | None = None
        self._stop: asyncio.Event | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def tools(self) -> list[ToolDescriptor]:
        return list(self._tools)

    @property
    def binding(self) -> TransportBinding:
        return self._binding

    async def connect(self) -> None:
        if self.connected:
            return

        policy = self._binding.reconnect
        attempts = 1 + (policy.max_retries if policy is not None else 0)
        for attempt in range(attempts):
            try:
                await self._start_runner()
                break
            except Exception as e:  # noqa: BLE001
                last_try = attempt + 1 >= attempts
                if last_try or policy is None or not _is_transport_error(e):
                    logger.error(
                        "mcp_connect_failed",
                        extra={"target": self._binding.describe(), "attempts": attempt + 1, "error": _describe(e)},
                    )
                    raise ConnectionFailureError(reason=_describe(e), attempts=attempt + 1) from e

                delay = policy.delay_for(attempt)
                logger.warning(
                    "mcp_connect_retry",
                    extra={"target": self._binding.describe(), "attempt": attempt + 1, "delay_s": delay},
                )
                await asyncio.sleep(delay)

        self._state = SessionState.CONNECTED
        logger.info(
            "mcp_connected",
            extra={
                "transport": self._binding.kind,
                "target": self._binding.describe(),
                "tools": [t.name for t in self._tools],
            },
        )

    async def disconnect(self) -> None:
        runner, stop = self._runner, self._stop
        self._runner = None
        self._stop = None
        self._state = SessionState.DISCONNECTED
        self._tools = []

        if runner is None:
            return

        if stop is not None:
            stop.set()
        with suppress(asyncio.CancelledError):
            await runner
        logger.info("mcp_disconnected", extra={"target": self._binding.describe()})

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        progress_callback: ProgressFnT | None = None,
    ) -> types.CallToolResult:
        session = self._session
        if session is None:
            raise RuntimeError("MCP session is not connected")
        return await session.call_tool(name, arguments, progress_callback=progress_callback)

    async def _start_runner(self) -> None:
        loop = asyncio.get_running_loop()
        ready: asyncio.Future[None] = loop.create_future()
        stop = asyncio.Event()
        runner = loop.create_task(self._run(ready, stop), name="mcp-session")

        try:
            await asyncio.wait_for(asyncio.shield(ready), timeout=self._connect_timeout_s)
        except BaseException:
            runner.cancel()
            with suppress(asyncio.CancelledError):
                await runner
            raise

        self._runner = runner
        self._stop = stop

    async def _run(self, ready: asyncio.Future[None], stop: asyncio.Event) -> None:
        try:
            async with AsyncExitStack() as stack:
                read, write = await stack.enter_async_context(self._binding.open())
                session = await stack.enter_async_context(
                    ClientSession(read, write, client_info=self._client_info)
                )
                await session.initialize()
                listed = await session.list_tools()

                self._session = session
                self._tools = [
                    ToolDescriptor(name=t.name, description=t.description, input_schema=dict(t.inputSchema or {}))
                    for t in listed.tools
                ]
                ready.set_result(None)
                await stop.wait()
        except Exception as e:  # noqa: BLE001
            if not ready.done():
                ready.set_exception(e)
            else:
                logger.warning("mcp_session_closed_with_error", extra={"error": _describe(e)})
        finally:
            self._session = None
            if self._runner is asyncio.current_task():
                # Transport died on its own while connected.
                self._runner = None
                self._stop = None
                self._state = SessionState.DISCONNECTED
