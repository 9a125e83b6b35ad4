"""Interaction response payloads.

Only the small set of shapes the bot sends; the gateway serializes them.
"""

from __future__ import annotations

import enum
import random
from typing import Any


class ResponseType(enum.IntEnum):
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE = 5


class MessageFlags(enum.IntFlag):
    EPHEMERAL = 1 << 6
    IS_COMPONENTS_V2 = 1 << 15


class ComponentType(enum.IntEnum):
    ACTION_ROW = 1
    BUTTON = 2
    STRING_SELECT = 3
    TEXT_DISPLAY = 10


class ButtonStyle(enum.IntEnum):
    PRIMARY = 1


_EMOJIS = ["😭", "😄", "😌", "🤓", "😎", "😤", "🤖", "😶‍🌫️", "🌏", "📸", "💿", "👋", "🌊", "✨"]


def random_emoji() -> str:
    return random.choice(_EMOJIS)


def text_display(content: str) -> dict[str, Any]:
    return {"type": ComponentType.TEXT_DISPLAY, "content": content}


def pong() -> dict[str, Any]:
    return {"type": ResponseType.PONG}


def text_message(content: str, *, ephemeral: bool = False) -> dict[str, Any]:
    flags = MessageFlags.IS_COMPONENTS_V2
    if ephemeral:
        flags |= MessageFlags.EPHEMERAL
    return {
        "type": ResponseType.CHANNEL_MESSAGE_WITH_SOURCE,
        "data": {"flags": int(flags), "components": [text_display(content)]},
    }


def components_message(components: list[dict[str, Any]], *, ephemeral: bool = False) -> dict[str, Any]:
    flags = MessageFlags.IS_COMPONENTS_V2
    if ephemeral:
        flags |= MessageFlags.EPHEMERAL
    return {
        "type": ResponseType.CHANNEL_MESSAGE_WITH_SOURCE,
        "data": {"flags": int(flags), "components": components},
    }


def deferred_ephemeral(content: str = "Processing...") -> dict[str, Any]:
    return {
        "type": ResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE,
        "data": {"content": content, "flags": int(MessageFlags.EPHEMERAL)},
    }


def button(*, custom_id: str, label: str, style: ButtonStyle = ButtonStyle.PRIMARY) -> dict[str, Any]:
    return {"type": ComponentType.BUTTON, "custom_id": custom_id, "label": label, "style": style}


def string_select(*, custom_id: str, options: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": ComponentType.STRING_SELECT, "custom_id": custom_id, "options": options}


def action_row(*components: dict[str, Any]) -> dict[str, Any]:
    return {"type": ComponentType.ACTION_ROW, "components": list(components)}
