"""Text serialization for the player aggregate."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .models import Player

logger = logging.getLogger(__name__)

EMPTY_STATE = '{"classes":{},"projects":{}}'
_EMPTY_DOCUMENTS = {"", "null", "{}"}


def fresh_player() -> Player:
    """Return a player with no classes and no projects."""

    return Player()


def encode(player: Player) -> str:
    """Serialize ``player`` to JSON, falling back to an empty state on failure."""

    try:
        return player.model_dump_json(by_alias=True)
    except (TypeError, ValueError) as exc:
        logger.error("Failed to encode player state", extra={"error": str(exc)})
        return EMPTY_STATE


def decode(text: str | None) -> Player:
    """Parse serialized state into a Player.

    Empty and malformed documents yield a fresh player. Missing or null
    collections come back as empty containers.
    """

    if text is None or text.strip() in _EMPTY_DOCUMENTS:
        return fresh_player()

    try:
        return Player.model_validate_json(text)
    except ValidationError as exc:
        logger.warning(
            "Discarding unreadable player state",
            extra={"error_count": exc.error_count(), "length": len(text)},
        )
        return fresh_player()


__all__ = ["EMPTY_STATE", "decode", "encode", "fresh_player"]
