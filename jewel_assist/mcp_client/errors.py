from __future__ import annotations


class ToolClientError(RuntimeError):
    """Base exception for tool client failures.

    Transport and protocol failures are normalized into this small set of
    stable error types so callers can surface `message` without inspecting
    the cause.
    """

    def __init__(self, error_type: str, message: str, *, details: dict[str, str] | None = None):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details or {}


class ServerBusyError(ToolClientError):
    def __init__(self, *, tool: str | None = None):
        super().__init__(
            "busy",
            "The tool server is busy with another request, please try again later",
            details={"tool": tool} if tool else None,
        )


class ConnectionFailureError(ToolClientError):
    def __init__(self, *, reason: str, attempts: int = 1):
        super().__init__(
            "connection_failed",
            f"Failed to connect to the MCP server: {reason}",
            details={"reason": reason, "attempts": str(attempts)},
        )


class ToolTimeoutError(ToolClientError):
    def __init__(self, *, tool: str, timeout_s: float, elapsed_s: float):
        super().__init__(
            "timeout",
            f"Calling tool {tool} timed out after {timeout_s:g}s",
            details={"tool": tool, "timeout_s": str(timeout_s), "elapsed_s": f"{elapsed_s:.3f}"},
        )
        self.timeout_s = timeout_s
        self.elapsed_s = elapsed_s


class InvocationFailureError(ToolClientError):
    def __init__(self, *, tool: str, reason: str, details: dict[str, str] | None = None):
        super().__init__(
            "invocation_failed",
            f"Calling tool {tool} failed: {reason}",
            details={"tool": tool, **(details or {})},
        )
        self.tool = tool


class MalformedResultError(ToolClientError):
    def __init__(self, reason: str, *, details: dict[str, str] | None = None):
        super().__init__("malformed_result", f"Malformed tool result: {reason}", details=details)
