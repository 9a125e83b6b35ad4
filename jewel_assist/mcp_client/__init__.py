"""MCP tool-server client.

This package intentionally avoids the top-level name `mcp` to prevent shadowing
the upstream MCP Python SDK module (`import mcp`).
"""

from __future__ import annotations

from .client import ToolClient
from .errors import (
    ConnectionFailureError,
    InvocationFailureError,
    MalformedResultError,
    ServerBusyError,
    ToolClientError,
    ToolTimeoutError,
)
from .gate import InvocationGate, process_gate
from .results import DesignResult, decode_design_result, decode_json_text, error_text, first_text
from .session import ToolSession
from .transports import ReconnectPolicy, StdioBinding, StreamableHttpBinding, TransportBinding, build_binding
from .types import ProgressEvent, ProgressSink, SessionState, ToolDescriptor

__all__ = [
    "ConnectionFailureError",
    "DesignResult",
    "InvocationFailureError",
    "InvocationGate",
    "MalformedResultError",
    "ProgressEvent",
    "ProgressSink",
    "ReconnectPolicy",
    "ServerBusyError",
    "SessionState",
    "StdioBinding",
    "StreamableHttpBinding",
    "ToolClient",
    "ToolClientError",
    "ToolDescriptor",
    "ToolSession",
    "ToolTimeoutError",
    "TransportBinding",
    "build_binding",
    "decode_design_result",
    "decode_json_text",
    "error_text",
    "first_text",
    "process_gate",
]
