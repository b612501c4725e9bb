"""Tool registration for LevelUp MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastmcp import Context, FastMCP

from ..config import LevelUpSettings
from ..state import CommandResult, PlayerStore
from ..storage import ChromaStore

logger = logging.getLogger(__name__)

COMMAND_LOG_LIMIT = 50


@dataclass(slots=True)
class ToolHandles:
    get_player_data: Any
    initialize_player: Any
    load_player_data: Any
    create_class: Any
    create_project: Any
    add_quest_to_project: Any
    complete_quest: Any
    archive_inactive_projects: Any
    store: PlayerStore
    command_log: list[dict[str, Any]]


def register_tools(
    server: FastMCP,
    *,
    settings: LevelUpSettings,
    store: PlayerStore,
    snapshot_store: ChromaStore | None,
) -> ToolHandles:
    """Register the player commands as MCP tools on the server.

    Every tool returns the full serialized player, whether or not the command
    was accepted.
    """

    command_log: list[dict[str, Any]] = []

    def _persist(result: CommandResult) -> None:
        if snapshot_store is None or not settings.persist_snapshots or not result.changed:
            return
        try:
            snapshot_store.record_snapshot(result.state, command=result.command)
            if result.level_up is not None and result.level_up.leveled_up:
                snapshot_store.record_level_up(result.details["class_id"], result.level_up)
        except Exception as exc:  # snapshot errors never fail a command
            logger.warning(
                "Failed to persist player snapshot",
                extra={"command": result.command, "error": str(exc)},
            )

    def _respond(result: CommandResult, context: Context | None) -> str:
        entry: dict[str, Any] = {
            "command": result.command,
            "ok": result.ok,
            "changed": result.changed,
            "at": datetime.now(timezone.utc).isoformat(),
        }
        if result.error is not None:
            entry["error"] = result.error.as_dict()
            _emit_log(
                context,
                "warning",
                "Command rejected",
                extra={"command": result.command, "code": result.error.code, "reason": result.error.message},
            )
        else:
            _emit_log(
                context,
                "debug",
                "Command applied",
                extra={"command": result.command, "changed": result.changed, **result.details},
            )
        if result.level_up is not None and result.level_up.leveled_up:
            entry["level_up"] = {
                "class_id": result.details.get("class_id"),
                "previous_level": result.level_up.previous_level,
                "new_level": result.level_up.new_level,
            }
            _emit_log(context, "info", "Class leveled up", extra=entry["level_up"])

        command_log.append(entry)
        del command_log[:-COMMAND_LOG_LIMIT]

        _persist(result)
        return result.state

    # Arguments are typed loosely so malformed values reach the store, which
    # rejects them and still answers with the current state.
    def _get_player_data(context: Context | None = None) -> str:
        """Return the current player state as JSON."""

        return _respond(store.snapshot(), context)

    def _initialize_player(context: Context | None = None) -> str:
        """Reset to an empty player with no classes or projects."""

        return _respond(store.initialize(), context)

    def _load_player_data(data: Any, context: Context | None = None) -> str:
        """Replace the player with previously saved JSON state."""

        return _respond(store.load(data), context)

    def _create_class(name: Any = None, color: Any = None, context: Context | None = None) -> str:
        return _respond(store.create_class(name, color), context)

    def _create_project(name: Any = None, context: Context | None = None) -> str:
        return _respond(store.create_project(name), context)

    def _add_quest_to_project(
        project_id: Any = None,
        class_id: Any = None,
        name: Any = None,
        hours: Any = None,
        context: Context | None = None,
    ) -> str:
        return _respond(store.add_quest(project_id, class_id, name, hours), context)

    def _complete_quest(
        project_id: Any = None, quest_id: Any = None, context: Context | None = None
    ) -> str:
        return _respond(store.complete_quest(project_id, quest_id), context)

    def _archive_inactive_projects(context: Context | None = None) -> str:
        return _respond(store.archive_inactive_projects(), context)

    tool_get = server.tool(
        name="get_player_data",
        description="Return the full player state (classes, projects, quests, history) as JSON.",
    )(_get_player_data)

    tool_init = server.tool(
        name="initialize_player",
        description="Discard the current player and start from an empty state.",
        annotations={"destructiveHint": True},
    )(_initialize_player)

    tool_load = server.tool(
        name="load_player_data",
        description=(
            "Replace the player with saved JSON state. Unreadable input yields an empty "
            "player; missing collections are treated as empty."
        ),
        annotations={"destructiveHint": True},
    )(_load_player_data)

    tool_class = server.tool(
        name="create_class",
        description="Create a skill class at level 1 with the given name and display color.",
    )(_create_class)

    tool_project = server.tool(
        name="create_project",
        description="Create an empty project to group quests under.",
    )(_create_project)

    tool_quest = server.tool(
        name="add_quest_to_project",
        description=(
            "Add a quest to a project. The quest rewards the given class with one XP per "
            "hour; hours must be greater than zero."
        ),
    )(_add_quest_to_project)

    tool_complete = server.tool(
        name="complete_quest",
        description="Complete a quest: log it in project history and award its XP, applying level-ups.",
    )(_complete_quest)

    tool_archive = server.tool(
        name="archive_inactive_projects",
        description=(
            f"Archive projects with no quest activity for more than {settings.inactivity_days} days."
        ),
    )(_archive_inactive_projects)

    return ToolHandles(
        get_player_data=tool_get,
        initialize_player=tool_init,
        load_player_data=tool_load,
        create_class=tool_class,
        create_project=tool_project,
        add_quest_to_project=tool_quest,
        complete_quest=tool_complete,
        archive_inactive_projects=tool_archive,
        store=store,
        command_log=command_log,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["register_tools", "ToolHandles"]
