"""Command surface over a single player aggregate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from ..progression import MAX_XP_AWARD, LevelUpResult, resolve_level_up, xp_for_level
from .codec import decode, encode, fresh_player
from .models import HistoryEntry, Player, Project, Quest, SkillClass

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_WINDOW = timedelta(days=30)
# One hour is one XP, so quests share the award bound.
MAX_QUEST_HOURS = MAX_XP_AWARD


class CommandRejected(RuntimeError):
    """Raised inside a command when its preconditions do not hold."""

    def __init__(self, code: str, message: str, **details: Any) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


@dataclass(slots=True)
class CommandError:
    """Structured reason a command left the state untouched."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


@dataclass(slots=True)
class CommandResult:
    """Outcome of one command: the serialized state plus what happened."""

    command: str
    state: str
    player: Player
    error: CommandError | None = None
    changed: bool = False
    details: dict[str, Any] = field(default_factory=dict)
    level_up: LevelUpResult | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


Mutator = Callable[[Player], dict[str, Any] | None]


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise CommandRejected(
            "invalid_argument",
            f"{field_name} must be a string",
            field=field_name,
            received=type(value).__name__,
        )
    return value


def _coerce_hours(hours: Any) -> int:
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        raise CommandRejected(
            "invalid_argument",
            "hours must be a number",
            field="hours",
            received=type(hours).__name__,
        )
    if isinstance(hours, float):
        if not hours.is_integer():
            raise CommandRejected("invalid_hours", "hours must be a whole number", hours=hours)
        hours = int(hours)
    if hours <= 0:
        raise CommandRejected("invalid_hours", "hours must be greater than zero", hours=hours)
    if hours > MAX_QUEST_HOURS:
        raise CommandRejected(
            "invalid_hours", f"hours must not exceed {MAX_QUEST_HOURS}", hours=hours
        )
    return hours


def _require_project(player: Player, project_id: Any) -> Project:
    project_id = _require_text(project_id, "project_id")
    project = player.projects.get(project_id)
    if project is None:
        raise CommandRejected("project_not_found", f"Project '{project_id}' not found", project_id=project_id)
    return project


class PlayerStore:
    """Owns one Player and applies commands to it atomically.

    Mutating commands run against a deep copy that replaces the live player only
    when the command succeeds, so a rejected or failing command never leaves a
    partial change behind. Every command returns a :class:`CommandResult` and
    none of them raise.
    """

    def __init__(
        self,
        player: Player | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        inactivity_window: timedelta = DEFAULT_INACTIVITY_WINDOW,
    ) -> None:
        self._player = player if player is not None else fresh_player()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory or (lambda: uuid4().hex)
        self._inactivity_window = inactivity_window
        self._last_result: CommandResult | None = None

    @property
    def player(self) -> Player:
        return self._player

    @property
    def last_result(self) -> CommandResult | None:
        return self._last_result

    @property
    def inactivity_window(self) -> timedelta:
        return self._inactivity_window

    def _finish(
        self,
        command: str,
        *,
        error: CommandError | None = None,
        changed: bool = False,
        details: dict[str, Any] | None = None,
        level_up: LevelUpResult | None = None,
    ) -> CommandResult:
        result = CommandResult(
            command=command,
            state=encode(self._player),
            player=self._player,
            error=error,
            changed=changed,
            details=details or {},
            level_up=level_up,
        )
        self._last_result = result
        return result

    def _execute(self, command: str, mutator: Mutator) -> CommandResult:
        working = self._player.model_copy(deep=True)
        try:
            outcome = dict(mutator(working) or {})
        except CommandRejected as exc:
            logger.warning(
                "Command rejected",
                extra={"command": command, "code": exc.code, "reason": exc.message, **exc.details},
            )
            return self._finish(command, error=CommandError(exc.code, exc.message, dict(exc.details)))
        except Exception as exc:
            logger.exception("Command failed", extra={"command": command})
            return self._finish(command, error=CommandError("internal_error", str(exc)))

        changed = working != self._player
        self._player = working
        level_up = outcome.pop("level_up", None)
        return self._finish(command, changed=changed, details=outcome, level_up=level_up)

    def snapshot(self) -> CommandResult:
        """Return the current state without changing it."""

        return self._finish("get_player_data")

    def initialize(self) -> CommandResult:
        """Replace the player with an empty one."""

        self._player = fresh_player()
        logger.info("Initialized empty player")
        return self._finish("initialize_player", changed=True)

    def load(self, text: str | None) -> CommandResult:
        """Replace the player with the decoded contents of ``text``.

        Unreadable text yields an empty player; a non-string argument is
        rejected and the current player is kept.
        """

        if text is not None and not isinstance(text, str):
            logger.warning(
                "Command rejected",
                extra={"command": "load_player_data", "code": "invalid_argument"},
            )
            return self._finish(
                "load_player_data",
                error=CommandError(
                    "invalid_argument",
                    "data must be a string",
                    {"field": "data", "received": type(text).__name__},
                ),
            )

        self._player = decode(text)
        logger.info(
            "Loaded player state",
            extra={"classes": len(self._player.classes), "projects": len(self._player.projects)},
        )
        return self._finish("load_player_data", changed=True)

    def create_class(self, name: str, color: str) -> CommandResult:
        """Add a new class at level 1."""

        def mutate(player: Player) -> dict[str, Any]:
            class_id = self._id_factory()
            player.classes[class_id] = SkillClass(
                id=class_id,
                name=_require_text(name, "name"),
                color=_require_text(color, "color"),
                level=1,
                xp=0,
                xp_to_next_level=xp_for_level(1),
            )
            logger.info("Created class", extra={"class_id": class_id, "class_name": name})
            return {"class_id": class_id}

        return self._execute("create_class", mutate)

    def create_project(self, name: str) -> CommandResult:
        """Add a new, empty project."""

        def mutate(player: Player) -> dict[str, Any]:
            project_id = self._id_factory()
            now = self._clock()
            player.projects[project_id] = Project(
                id=project_id,
                name=_require_text(name, "name"),
                created_at=now,
                last_activity=now,
            )
            logger.info("Created project", extra={"project_id": project_id, "project_name": name})
            return {"project_id": project_id}

        return self._execute("create_project", mutate)

    def add_quest(self, project_id: str, class_id: str, name: str, hours: int) -> CommandResult:
        """Add a quest worth ``hours`` XP to a project."""

        def mutate(player: Player) -> dict[str, Any]:
            project = _require_project(player, project_id)
            target_class = _require_text(class_id, "class_id")
            if target_class not in player.classes:
                raise CommandRejected("class_not_found", f"Class '{target_class}' not found", class_id=target_class)
            quest_name = _require_text(name, "name")
            xp = _coerce_hours(hours)

            quest_id = self._id_factory()
            project.quests[quest_id] = Quest(id=quest_id, name=quest_name, class_id=target_class, xp=xp)
            project.last_activity = self._clock()
            logger.info(
                "Added quest",
                extra={"project_id": project.id, "quest_id": quest_id, "class_id": target_class, "xp": xp},
            )
            return {"project_id": project.id, "quest_id": quest_id}

        return self._execute("add_quest_to_project", mutate)

    def complete_quest(self, project_id: str, quest_id: str) -> CommandResult:
        """Move a quest into history and award its XP to the referenced class."""

        def mutate(player: Player) -> dict[str, Any]:
            project = _require_project(player, project_id)
            target_quest = _require_text(quest_id, "quest_id")
            quest = project.quests.pop(target_quest, None)
            if quest is None:
                raise CommandRejected(
                    "quest_not_found",
                    f"Quest '{target_quest}' not found in project '{project.id}'",
                    project_id=project.id,
                    quest_id=target_quest,
                )

            now = self._clock()
            project.history.insert(
                0,
                HistoryEntry(quest_name=quest.name, class_id=quest.class_id, xp=quest.xp, completed_at=now),
            )
            project.total_xp += quest.xp
            project.last_activity = now

            outcome: dict[str, Any] = {"project_id": project.id, "quest_id": quest.id, "xp": quest.xp}
            skill = player.classes.get(quest.class_id)
            if skill is None:
                logger.warning(
                    "Quest class missing; XP recorded without progression",
                    extra={"project_id": project.id, "quest_id": quest.id, "class_id": quest.class_id},
                )
                return outcome

            level_up = resolve_level_up(skill, quest.xp)
            if level_up.leveled_up:
                logger.info(
                    "Class leveled up",
                    extra={
                        "class_id": skill.id,
                        "previous_level": level_up.previous_level,
                        "new_level": level_up.new_level,
                    },
                )
            outcome["class_id"] = skill.id
            outcome["level_up"] = level_up
            return outcome

        return self._execute("complete_quest", mutate)

    def archive_inactive_projects(self) -> CommandResult:
        """Archive every active project idle for longer than the inactivity window."""

        def mutate(player: Player) -> dict[str, Any]:
            now = self._clock()
            archived: list[str] = []
            for project in player.projects.values():
                if project.is_archived:
                    continue
                if now - project.last_activity > self._inactivity_window:
                    project.is_archived = True
                    archived.append(project.id)
            if archived:
                logger.info("Archived inactive projects", extra={"archived": archived})
            return {"archived": archived}

        return self._execute("archive_inactive_projects", mutate)


__all__ = ["CommandError", "CommandRejected", "CommandResult", "PlayerStore"]
