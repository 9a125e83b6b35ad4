from __future__ import annotations

from contextvars import ContextVar


_interaction_id: ContextVar[str | None] = ContextVar("interaction_id", default=None)
_command: ContextVar[str | None] = ContextVar("command", default=None)
_user_id: ContextVar[str | None] = ContextVar("user_id", default=None)


def bind_interaction(*, interaction_id: str | None, command: str | None = None, user_id: str | None = None) -> None:
    _interaction_id.set(interaction_id)
    _command.set(command)
    _user_id.set(user_id)


def snapshot() -> dict[str, object]:
    """Return a snapshot of current observability context for logging."""

    out: dict[str, object] = {}
    if (v := _interaction_id.get()) is not None:
        out["interaction_id"] = v
    if (v := _command.get()) is not None:
        out["command"] = v
    if (v := _user_id.get()) is not None:
        out["user_id"] = v
    return out
