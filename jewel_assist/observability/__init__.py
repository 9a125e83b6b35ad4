from __future__ import annotations

from .context import bind_interaction, snapshot
from .logging import configure_logging

__all__ = ["bind_interaction", "configure_logging", "snapshot"]
