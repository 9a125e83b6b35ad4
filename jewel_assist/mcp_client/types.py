from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable


class SessionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """A tool as advertised by the server's tools/list (advisory only)."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """One notifications/progress message for an in-flight call."""

    progress: float
    total: float | None = None
    message: str | None = None


ProgressSink = Callable[[ProgressEvent], None]
