"""FastMCP server bootstrap for LevelUp."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import LevelUpSettings, get_settings
from .state import PlayerStore
from .storage import ChromaStore, ChromaUnavailableError
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the LevelUp server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[LevelUpSettings] = None,
    store: PlayerStore | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server and restore the last saved player."""

    settings = settings or get_settings()
    store = store or PlayerStore(inactivity_window=settings.inactivity_window)

    snapshot_store: ChromaStore | None = None
    chroma_metadata = {
        "available": False,
        "path": str(settings.chroma_persist_path),
        "collection": settings.snapshot_collection,
        "error": None,
        "restored_sequence": None,
    }

    if settings.persist_snapshots:
        try:
            snapshot_store = ChromaStore(
                settings.chroma_persist_path,
                collection_name=settings.snapshot_collection,
                snapshot_retention=settings.snapshot_retention,
            )
            snapshot_store.ping()
            chroma_metadata["available"] = True
        except ChromaUnavailableError as exc:
            chroma_metadata["error"] = str(exc)
            snapshot_store = None
    else:
        chroma_metadata["error"] = "snapshot persistence disabled"

    if snapshot_store is not None:
        try:
            latest = snapshot_store.latest_snapshot()
        except Exception as exc:  # start empty when the store is unreadable
            logging.getLogger(__name__).warning(
                "Could not read latest snapshot", extra={"error": str(exc)}
            )
            chroma_metadata["error"] = str(exc)
            latest = None
        if latest is not None:
            store.load(latest.state)
            chroma_metadata["restored_sequence"] = latest.sequence

    server = FastMCP(
        name="LevelUp MCP",
        version=__version__,
        instructions=(
            "LevelUp tracks skill classes, projects and quests. Completing a quest logs it "
            "in the project history and turns its hours into XP for the quest's class. "
            "Every tool returns the full player state as JSON."
        ),
    )

    handles = register_tools(
        server,
        settings=settings,
        store=store,
        snapshot_store=snapshot_store,
    )
    command_log = handles.command_log

    def _status_payload(request_id: str | None = None) -> dict[str, Any]:
        rejected = [entry for entry in command_log if not entry.get("ok")]
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "inactivity_days": settings.inactivity_days,
            "player": store.player.summary(),
            "storage": {"chroma": chroma_metadata},
            "commands": {
                "count": len(command_log),
                "rejected": len(rejected),
                "last": command_log[-1] if command_log else None,
            },
            "request_id": request_id,
        }

    @server.resource(
        "resource://levelup/status",
        name="levelup_status",
        title="LevelUp MCP Status",
        description="Provides the current runtime status for the LevelUp MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        return json.dumps(_status_payload(getattr(context, "request_id", None)))

    setattr(server, "player_store", store)
    setattr(server, "snapshot_store", snapshot_store)
    setattr(server, "chroma_metadata", chroma_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_payload", _status_payload)
    return server


def main() -> None:
    """Entry point for running the LevelUp MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching LevelUp MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "chroma_available": getattr(server, "chroma_metadata", {}).get("available"),
            "classes": len(getattr(server, "player_store").player.classes),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
