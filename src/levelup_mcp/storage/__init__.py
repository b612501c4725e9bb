"""Storage abstractions for LevelUp MCP."""

from .chroma import ChromaEvent, ChromaStore, ChromaUnavailableError
from .models import LevelUpRecord, SnapshotRecord

__all__ = [
    "ChromaEvent",
    "ChromaStore",
    "ChromaUnavailableError",
    "LevelUpRecord",
    "SnapshotRecord",
]
