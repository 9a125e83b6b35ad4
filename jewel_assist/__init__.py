"""Discord bot with an MCP-backed design command."""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "1.0.0"
