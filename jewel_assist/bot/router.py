from __future__ import annotations

import logging
from typing import Any, Mapping

from jewel_assist.observability import bind_interaction

from . import responses
from .challenge import ChallengeGame
from .design import DesignCommand
from .interactions import Interaction, InteractionType

logger = logging.getLogger(__name__)


class UnknownInteractionError(ValueError):
    """The gateway answers these with HTTP 400."""


class InteractionRouter:
    def __init__(self, *, design: DesignCommand, challenge: ChallengeGame) -> None:
        self._design = design
        self._challenge = challenge

    async def dispatch(self, body: Mapping[str, Any]) -> dict[str, Any]:
        interaction = Interaction.from_payload(body)
        bind_interaction(
            interaction_id=interaction.id or None,
            command=interaction.command_name,
            user_id=interaction.user_id,
        )

        if interaction.type == InteractionType.PING:
            return responses.pong()

        if interaction.type == InteractionType.APPLICATION_COMMAND:
            name = interaction.command_name
            if name == "test":
                return responses.text_message(f"hello world {responses.random_emoji()}")
            if name == "challenge" and interaction.id:
                return await self._challenge.handle_command(interaction)
            if name == "design" and interaction.id:
                return await self._design.handle(interaction)

            logger.error("unknown_command", extra={"command_name": name})
            raise UnknownInteractionError(f"unknown command: {name}")

        if interaction.type == InteractionType.MESSAGE_COMPONENT:
            out = await self._challenge.handle_component(interaction)
            if out is None:
                raise UnknownInteractionError(f"unhandled component: {interaction.custom_id}")
            return out

        logger.error("unknown_interaction_type", extra={"interaction_type": interaction.type})
        raise UnknownInteractionError(f"unknown interaction type: {interaction.type}")

    async def drain(self) -> None:
        await self._design.drain()
        await self._challenge.drain()
