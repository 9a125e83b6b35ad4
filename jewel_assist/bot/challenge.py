from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol

from . import responses
from .interactions import Interaction

logger = logging.getLogger(__name__)

ACCEPT_PREFIX = "accept_button_"
SELECT_PREFIX = "select_choice_"


@dataclass(frozen=True, slots=True)
class Player:
    id: str | None
    object_name: str


class GameRules(Protocol):
    """The rock-paper-scissors rule table (provided by the host application)."""

    def shuffled_options(self) -> list[dict[str, Any]]:
        ...

    def result(self, challenger: Player, responder: Player) -> str:
        ...


class MessageEditor(Protocol):
    async def edit_message(
        self,
        *,
        token: str,
        message_id: str,
        components: list[dict[str, Any]],
        application_id: str | None = None,
    ) -> None:
        ...

    async def delete_message(self, *, token: str, message_id: str, application_id: str | None = None) -> None:
        ...


class ChallengeGame:
    """Two-player challenge: `/challenge <object>`, Accept button, ephemeral choice select."""

    def __init__(self, *, rules: GameRules, editor: MessageEditor) -> None:
        self._rules = rules
        self._editor = editor
        self._games: dict[str, Player] = {}
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def active_games(self) -> dict[str, Player]:
        return dict(self._games)

    async def handle_command(self, interaction: Interaction) -> dict[str, Any]:
        object_name = str(interaction.option_value(0))
        self._games[interaction.id] = Player(id=interaction.user_id, object_name=object_name)
        logger.info("challenge_created", extra={"game_id": interaction.id})

        return responses.components_message(
            [
                responses.text_display(f"Rock papers scissors challenge from <@{interaction.user_id}>"),
                responses.action_row(
                    responses.button(custom_id=f"{ACCEPT_PREFIX}{interaction.id}", label="Accept"),
                ),
            ]
        )

    async def handle_component(self, interaction: Interaction) -> dict[str, Any] | None:
        """Returns None for components this game does not own."""

        custom_id = interaction.custom_id
        if custom_id.startswith(ACCEPT_PREFIX):
            return self._accept(interaction, custom_id.removeprefix(ACCEPT_PREFIX))
        if custom_id.startswith(SELECT_PREFIX):
            return self._select(interaction, custom_id.removeprefix(SELECT_PREFIX))
        return None

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _accept(self, interaction: Interaction, game_id: str) -> dict[str, Any]:
        if interaction.message_id is not None:
            self._after_response(
                "challenge_delete_failed",
                self._editor.delete_message(
                    token=interaction.token,
                    message_id=interaction.message_id,
                    application_id=interaction.application_id or None,
                ),
            )

        return responses.components_message(
            [
                responses.text_display("What is your object of choice?"),
                responses.action_row(
                    responses.string_select(
                        custom_id=f"{SELECT_PREFIX}{game_id}",
                        options=self._rules.shuffled_options(),
                    )
                ),
            ],
            ephemeral=True,
        )

    def _select(self, interaction: Interaction, game_id: str) -> dict[str, Any] | None:
        challenger = self._games.pop(game_id, None)
        if challenger is None:
            logger.info("challenge_unknown_game", extra={"game_id": game_id})
            return None

        values = interaction.values
        responder = Player(id=interaction.user_id, object_name=values[0] if values else "")
        result = self._rules.result(challenger, responder)

        if interaction.message_id is not None:
            self._after_response(
                "challenge_edit_failed",
                self._editor.edit_message(
                    token=interaction.token,
                    message_id=interaction.message_id,
                    components=[responses.text_display(f"Nice choice {responses.random_emoji()}")],
                    application_id=interaction.application_id or None,
                ),
            )

        return responses.text_message(result)

    def _after_response(self, event: str, op: Awaitable[None]) -> None:
        async def run() -> None:
            try:
                await op
            except Exception:  # noqa: BLE001
                logger.exception(event)

        task = asyncio.create_task(run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
