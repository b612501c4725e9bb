"""Player aggregate, codec and command store."""

from .codec import EMPTY_STATE, decode, encode, fresh_player
from .models import HistoryEntry, Player, Project, Quest, SkillClass
from .store import CommandError, CommandResult, PlayerStore

__all__ = [
    "CommandError",
    "CommandResult",
    "EMPTY_STATE",
    "HistoryEntry",
    "Player",
    "PlayerStore",
    "Project",
    "Quest",
    "SkillClass",
    "decode",
    "encode",
    "fresh_player",
]
