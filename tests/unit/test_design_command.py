from __future__ import annotations

import asyncio
from typing import Any

from mcp import types

from jewel_assist.bot.design import BUSY_MESSAGE, DESIGN_TOOL, DesignCommand
from jewel_assist.bot.interactions import Interaction
from jewel_assist.bot.responses import MessageFlags, ResponseType
from jewel_assist.mcp_client import InvocationGate, ProgressEvent, ToolTimeoutError


class FakeClient:
    def __init__(self, *, result: types.CallToolResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.gate = InvocationGate()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def busy(self) -> bool:
        return self.gate.held

    async def call_tool(self, name, arguments=None, *, on_progress=None, timeout_s=None):  # noqa: ANN001, ANN201
        self.calls.append((name, dict(arguments or {})))
        if on_progress is not None:
            on_progress(ProgressEvent(progress=1, total=2, message="rendering"))
        if self.error is not None:
            raise self.error
        return self.result


class FakeFollowUps:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.edits: list[dict[str, Any]] = []

    async def edit_original(self, *, token: str, content: str, application_id: str | None = None) -> None:
        if self.fail:
            raise RuntimeError("webhook down")
        self.edits.append({"token": token, "content": content, "application_id": application_id})


def _design_interaction(prompt: str = "ring") -> Interaction:
    return Interaction.from_payload(
        {
            "id": "i-1",
            "type": 2,
            "token": "tok",
            "application_id": "app-1",
            "context": 0,
            "member": {"user": {"id": "u-1"}},
            "data": {"name": "design", "options": [{"name": "prompt", "value": prompt}]},
        }
    )


def _text_result(text: str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


def test_design_defers_then_edits_with_result() -> None:
    client = FakeClient(result=_text_result('{"rendered_image": "http://x/y.png"}'))
    followups = FakeFollowUps()
    command = DesignCommand(client=client, followups=followups)

    async def run() -> dict[str, Any]:
        reply = await command.handle(_design_interaction())
        await command.drain()
        return reply

    reply = asyncio.run(run())

    assert reply["type"] == ResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE
    assert reply["data"]["flags"] == MessageFlags.EPHEMERAL
    assert client.calls == [(DESIGN_TOOL, {"prompt": "ring"})]
    assert followups.edits == [
        {
            "token": "tok",
            "content": "Design request processed: ring\n\nResult: http://x/y.png",
            "application_id": "app-1",
        }
    ]


def test_design_rejects_when_busy_without_calling() -> None:
    client = FakeClient(result=_text_result("{}"))
    followups = FakeFollowUps()
    command = DesignCommand(client=client, followups=followups)

    async def run() -> dict[str, Any]:
        with client.gate.hold():
            return await command.handle(_design_interaction())

    reply = asyncio.run(run())

    assert reply["type"] == ResponseType.CHANNEL_MESSAGE_WITH_SOURCE
    assert reply["data"]["components"][0]["content"] == BUSY_MESSAGE
    assert client.calls == []
    assert followups.edits == []


def test_design_reports_tool_failures() -> None:
    client = FakeClient(error=ToolTimeoutError(tool=DESIGN_TOOL, timeout_s=1200, elapsed_s=1200.1))
    followups = FakeFollowUps()
    command = DesignCommand(client=client, followups=followups)

    async def run() -> None:
        await command.handle(_design_interaction("vase"))
        await command.drain()

    asyncio.run(run())

    assert followups.edits[0]["content"] == (
        "Design request failed: vase\n\nCalling tool gen_design timed out after 1200s"
    )


def test_design_reports_malformed_results() -> None:
    client = FakeClient(result=_text_result("not json"))
    followups = FakeFollowUps()
    command = DesignCommand(client=client, followups=followups)

    async def run() -> None:
        await command.handle(_design_interaction())
        await command.drain()

    asyncio.run(run())

    assert followups.edits[0]["content"].startswith("Design request failed: ring\n\nMalformed tool result:")


def test_followup_failure_is_logged_not_raised() -> None:
    client = FakeClient(result=_text_result('{"rendered_image": "http://x/y.png"}'))
    command = DesignCommand(client=client, followups=FakeFollowUps(fail=True))

    async def run() -> None:
        await command.handle(_design_interaction())
        await command.drain()

    asyncio.run(run())
    assert client.calls
