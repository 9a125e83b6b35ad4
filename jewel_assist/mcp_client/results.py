"""Decoding of tools/call result envelopes.

Two stages: first the envelope (a text content block must be present), then
the structured payload carried inside that text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from mcp import types

from .errors import MalformedResultError


@dataclass(frozen=True, slots=True)
class DesignResult:
    rendered_image: str
    data: dict[str, Any]


def first_text(result: types.CallToolResult) -> str:
    for block in result.content:
        if isinstance(block, types.TextContent):
            return block.text
    raise MalformedResultError(
        "result has no text content",
        details={"content_types": ",".join(b.type for b in result.content) or "none"},
    )


def decode_json_text(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResultError(f"text content is not JSON ({e.msg})", details={"text": text[:200]}) from e
    if not isinstance(data, dict):
        raise MalformedResultError(
            f"expected a JSON object, got {type(data).__name__}",
            details={"text": text[:200]},
        )
    return data


def decode_design_result(result: types.CallToolResult) -> DesignResult:
    data = decode_json_text(first_text(result))
    rendered = data.get("rendered_image")
    if not isinstance(rendered, str) or not rendered:
        raise MalformedResultError("rendered_image is missing", details={"keys": ",".join(sorted(data))})
    return DesignResult(rendered_image=rendered, data=data)


def error_text(result: types.CallToolResult) -> str:
    """Readable message of an isError result."""

    texts = [b.text for b in result.content if isinstance(b, types.TextContent) and b.text]
    return "\n".join(texts) or "tool reported an error without a message"
