"""Data models for persistent tracking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class SnapshotRecord:
    event_id: str
    command: str
    sequence: int
    created_at: datetime
    state: str
    metadata: dict[str, Any]


@dataclass(slots=True)
class LevelUpRecord:
    class_id: str
    previous_level: int
    new_level: int
    xp_gained: int
    recorded_at: datetime


__all__ = ["LevelUpRecord", "SnapshotRecord"]
