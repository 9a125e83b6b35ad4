from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping


class InteractionType(enum.IntEnum):
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3


class InteractionContext(enum.IntEnum):
    GUILD = 0
    BOT_DM = 1
    PRIVATE_CHANNEL = 2


class InteractionError(ValueError):
    """Raised when an interaction payload lacks a field a handler needs."""


@dataclass(frozen=True, slots=True)
class Interaction:
    """An inbound interaction, already verified by the gateway."""

    id: str
    type: int
    token: str
    application_id: str
    data: Mapping[str, Any] = field(default_factory=dict)
    context: int | None = None
    user_id: str | None = None
    message_id: str | None = None

    @classmethod
    def from_payload(cls, body: Mapping[str, Any]) -> "Interaction":
        if not isinstance(body, Mapping):
            raise InteractionError("interaction body must be a mapping")
        try:
            itype = int(body["type"])
        except (KeyError, TypeError, ValueError) as e:
            raise InteractionError("interaction type is missing") from e

        context = body.get("context")
        member = body.get("member") or {}
        user = body.get("user") or {}
        # Guild interactions carry the user under member; DMs carry it at the top.
        if context == InteractionContext.GUILD or (context is None and member):
            user_id = (member.get("user") or {}).get("id")
        else:
            user_id = user.get("id")

        message = body.get("message") or {}
        data = body.get("data") or {}
        return cls(
            id=str(body.get("id", "")),
            type=itype,
            token=str(body.get("token", "")),
            application_id=str(body.get("application_id", "")),
            data=data if isinstance(data, Mapping) else {},
            context=int(context) if context is not None else None,
            user_id=str(user_id) if user_id is not None else None,
            message_id=str(message["id"]) if message.get("id") is not None else None,
        )

    @property
    def command_name(self) -> str | None:
        name = self.data.get("name")
        return str(name) if name is not None else None

    @property
    def custom_id(self) -> str:
        return str(self.data.get("custom_id", ""))

    @property
    def values(self) -> list[str]:
        return [str(v) for v in self.data.get("values") or []]

    def option_value(self, index: int = 0) -> Any:
        options = self.data.get("options") or []
        if len(options) <= index or "value" not in options[index]:
            raise InteractionError(f"command option #{index} is missing")
        return options[index]["value"]
