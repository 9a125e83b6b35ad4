from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Protocol

from mcp import types

from jewel_assist.mcp_client import ProgressEvent, ProgressSink, ToolClientError, decode_design_result

from . import responses
from .interactions import Interaction

logger = logging.getLogger(__name__)

DESIGN_TOOL = "gen_design"
BUSY_MESSAGE = "Another request is being processed right now, please try again later."


class DesignToolClient(Protocol):
    @property
    def busy(self) -> bool:
        ...

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        on_progress: ProgressSink | None = None,
        timeout_s: float | None = None,
    ) -> types.CallToolResult:
        ...


class FollowUpSender(Protocol):
    async def edit_original(self, *, token: str, content: str, application_id: str | None = None) -> None:
        ...


class DesignCommand:
    """`/design <prompt>`: acknowledge at once, edit the reply when the tool finishes."""

    def __init__(self, *, client: DesignToolClient, followups: FollowUpSender) -> None:
        self._client = client
        self._followups = followups
        self._pending: set[asyncio.Task[None]] = set()

    async def handle(self, interaction: Interaction) -> dict[str, Any]:
        prompt = str(interaction.option_value(0))

        if self._client.busy:
            logger.info("design_rejected_busy")
            return responses.text_message(BUSY_MESSAGE)

        task = asyncio.create_task(self._run(interaction, prompt), name=f"design-{interaction.id}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return responses.deferred_ephemeral()

    async def drain(self) -> None:
        """Wait for every outstanding design request."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self, interaction: Interaction, prompt: str) -> None:
        started = time.monotonic()
        logger.info("design_started", extra={"prompt": prompt})

        def on_progress(event: ProgressEvent) -> None:
            logger.info(
                "design_progress",
                extra={
                    "progress": event.progress,
                    "total": event.total,
                    "progress_message": event.message,
                    "elapsed_s": round(time.monotonic() - started, 3),
                },
            )

        try:
            result = await self._client.call_tool(DESIGN_TOOL, {"prompt": prompt}, on_progress=on_progress)
            design = decode_design_result(result)
            content = f"Design request processed: {prompt}\n\nResult: {design.rendered_image}"
        except ToolClientError as e:
            content = f"Design request failed: {prompt}\n\n{e.message}"

        try:
            await self._followups.edit_original(
                token=interaction.token,
                content=content,
                application_id=interaction.application_id or None,
            )
        except Exception:  # noqa: BLE001
            # Reporting must not fail the handler; the user just sees "Processing...".
            logger.exception("design_followup_failed")
        finally:
            logger.info(
                "design_finished",
                extra={"user_id": interaction.user_id, "elapsed_s": round(time.monotonic() - started, 3)},
            )
