"""Player state models and their wire (camelCase) schema."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..progression import MAX_XP_AWARD, resolve_level_up, xp_for_level


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SkillClass(BaseModel):
    """A skill track that levels independently of the others."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Opaque unique identifier.")
    name: str = Field(..., description="Display name of the class.")
    color: str = Field(default="", description="Opaque display tag, e.g. a hex color.")
    level: int = Field(default=1, ge=1)
    xp: int = Field(
        default=0, ge=0, le=MAX_XP_AWARD, description="XP accumulated toward the next level."
    )
    xp_to_next_level: int = Field(
        default_factory=lambda: xp_for_level(1),
        gt=0,
        alias="xpToNextLevel",
        description="Threshold for the next level-up.",
    )

    @model_validator(mode="after")
    def _settle_pending_level_ups(self) -> "SkillClass":
        # Stored data may predate a curve change; xp must stay below the threshold.
        if self.xp >= self.xp_to_next_level:
            resolve_level_up(self, 0)
        return self


class Quest(BaseModel):
    """An active unit of work inside a project."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    class_id: str = Field(..., alias="classId", description="Lookup key of the rewarded class.")
    xp: int = Field(..., gt=0, le=MAX_XP_AWARD, description="XP awarded on completion.")


class HistoryEntry(BaseModel):
    """Immutable record of a completed quest."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    quest_name: str = Field(..., alias="questName")
    class_id: str = Field(..., alias="classId")
    xp: int = Field(..., gt=0)
    completed_at: datetime = Field(default_factory=utcnow, alias="completedAt")

    @field_validator("completed_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class Project(BaseModel):
    """Container for quests and the log of their completion."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    last_activity: datetime = Field(default_factory=utcnow, alias="lastActivity")
    quests: dict[str, Quest] = Field(default_factory=dict)
    history: list[HistoryEntry] = Field(
        default_factory=list,
        description="Completed quests, most recent first.",
    )
    total_xp: int = Field(default=0, ge=0, alias="totalXp")
    is_archived: bool = Field(default=False, alias="isArchived")

    @field_validator("created_at", "last_activity")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @field_validator("quests", mode="before")
    @classmethod
    def _ensure_mapping(cls, value: Any):
        if value is None:
            return {}
        return value

    @field_validator("history", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):
        if value is None:
            return []
        if isinstance(value, tuple):
            return list(value)
        return value


class Player(BaseModel):
    """Aggregate root holding every class and project."""

    model_config = ConfigDict(populate_by_name=True)

    classes: dict[str, SkillClass] = Field(default_factory=dict)
    projects: dict[str, Project] = Field(default_factory=dict)

    @field_validator("classes", "projects", mode="before")
    @classmethod
    def _ensure_mapping(cls, value: Any):
        if value is None:
            return {}
        return value

    def summary(self) -> dict[str, Any]:
        """Return counts and totals suitable for status reporting."""

        archived = sum(1 for project in self.projects.values() if project.is_archived)
        return {
            "classes": len(self.classes),
            "projects": {
                "total": len(self.projects),
                "active": len(self.projects) - archived,
                "archived": archived,
            },
            "active_quests": sum(len(project.quests) for project in self.projects.values()),
            "completed_quests": sum(len(project.history) for project in self.projects.values()),
            "total_xp": sum(project.total_xp for project in self.projects.values()),
            "levels": {class_id: skill.level for class_id, skill in self.classes.items()},
        }


__all__ = ["HistoryEntry", "Player", "Project", "Quest", "SkillClass", "utcnow"]
