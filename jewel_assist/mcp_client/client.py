from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from mcp import types
from mcp.shared.exceptions import McpError

from jewel_assist.config.model import DEFAULT_TOOL_TIMEOUT_S, McpClientConfig

from .errors import InvocationFailureError, ToolClientError, ToolTimeoutError
from .gate import InvocationGate, process_gate
from .results import error_text
from .session import ToolSession
from .transports import build_binding
from .types import ProgressEvent, ProgressSink, ToolDescriptor

logger = logging.getLogger(__name__)


class ToolClient:
    """Single-flight client for one MCP tool server.

    Every call tears the session down and connects afresh, so no server-side
    state leaks between unrelated requests. Only one call may be in flight per
    gate; a concurrent call fails fast with ServerBusyError.

    On timeout the client stops waiting but sends no cancellation, so the
    server may keep working on the abandoned call.
    """

    def __init__(
        self,
        session: ToolSession,
        *,
        gate: InvocationGate | None = None,
        default_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S,
    ) -> None:
        self._session = session
        self._gate = gate or process_gate()
        self._default_timeout_s = float(default_timeout_s)

    @classmethod
    def from_config(cls, cfg: McpClientConfig, *, gate: InvocationGate | None = None) -> "ToolClient":
        session = ToolSession(
            build_binding(cfg),
            client_info=types.Implementation(name=cfg.client_name, version=cfg.client_version),
            connect_timeout_s=cfg.connect_timeout_s,
        )
        return cls(session, gate=gate, default_timeout_s=cfg.tool_timeout_s)

    @property
    def busy(self) -> bool:
        return self._gate.held

    @property
    def session(self) -> ToolSession:
        return self._session

    def list_tools(self) -> list[ToolDescriptor]:
        """Tools advertised at the last connect (advisory; calls are not checked against it)."""

        return self._session.tools

    async def connect(self) -> None:
        await self._session.connect()

    async def close(self) -> None:
        await self._session.disconnect()

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        on_progress: ProgressSink | None = None,
        timeout_s: float | None = None,
    ) -> types.CallToolResult:
        if not isinstance(name, str) or not name:
            raise ValueError("tool name must be a non-empty string")
        if arguments is not None and not isinstance(arguments, dict):
            raise ValueError("tool arguments must be a dict")

        timeout = self._default_timeout_s if timeout_s is None else float(timeout_s)
        args = dict(arguments or {})

        try:
            with self._gate.hold(tool=name):
                await self._session.disconnect()
                await self._session.connect()
                return await self._invoke(name, args, on_progress=on_progress, timeout_s=timeout)
        except ToolClientError as e:
            logger.warning(
                "tool_call_failed",
                extra={"tool": name, "error_type": e.error_type, "error": e.message},
            )
            raise

    async def _invoke(
        self,
        name: str,
        args: dict[str, Any],
        *,
        on_progress: ProgressSink | None,
        timeout_s: float,
    ) -> types.CallToolResult:
        started = time.monotonic()
        callback = self._progress_forwarder(name, on_progress) if on_progress is not None else None

        try:
            result = await asyncio.wait_for(
                self._session.call_tool(name, args, progress_callback=callback),
                timeout=timeout_s,
            )
        except TimeoutError as e:
            raise ToolTimeoutError(tool=name, timeout_s=timeout_s, elapsed_s=time.monotonic() - started) from e
        except McpError as e:
            raise InvocationFailureError(
                tool=name,
                reason=e.error.message,
                details={"code": str(e.error.code)},
            ) from e
        except Exception as e:  # noqa: BLE001
            raise InvocationFailureError(tool=name, reason=str(e) or type(e).__name__, details={"exc": type(e).__name__}) from e

        if result.isError:
            raise InvocationFailureError(tool=name, reason=error_text(result), details={"is_error": "true"})

        logger.info("tool_call_ok", extra={"tool": name, "elapsed_s": round(time.monotonic() - started, 3)})
        return result

    @staticmethod
    def _progress_forwarder(name: str, sink: ProgressSink):  # noqa: ANN205
        async def forward(progress: float, total: float | None, message: str | None) -> None:
            try:
                sink(ProgressEvent(progress=progress, total=total, message=message))
            except Exception:  # noqa: BLE001
                # A broken sink must not take down the session's receive loop.
                logger.exception("progress_sink_failed", extra={"tool": name})

        return forward
