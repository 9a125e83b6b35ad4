from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from .errors import ServerBusyError


class InvocationGate:
    """Single-flight gate: at most one tool call holds it at a time.

    Contention is rejected with ServerBusyError, never queued. Every client
    constructed with the same gate shares the single slot.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    @contextmanager
    def hold(self, *, tool: str | None = None) -> Iterator[None]:
        # No await between the check and the set: atomic on the event loop.
        if self._held:
            raise ServerBusyError(tool=tool)
        self._held = True
        try:
            yield
        finally:
            self._held = False


_process_gate = InvocationGate()


def process_gate() -> InvocationGate:
    """The gate shared by every client in this process unless one is injected."""

    return _process_gate
