"""Interaction handlers: routing, the design command and the challenge game."""

from __future__ import annotations

from .challenge import ChallengeGame, GameRules, Player
from .design import DESIGN_TOOL, DesignCommand
from .interactions import Interaction, InteractionError, InteractionType
from .router import InteractionRouter, UnknownInteractionError
from .webhooks import PlatformRequestError, WebhookClient

__all__ = [
    "ChallengeGame",
    "DESIGN_TOOL",
    "DesignCommand",
    "GameRules",
    "Interaction",
    "InteractionError",
    "InteractionRouter",
    "InteractionType",
    "Player",
    "PlatformRequestError",
    "UnknownInteractionError",
    "WebhookClient",
]
