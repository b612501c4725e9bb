"""LevelUp MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import json

from levelup_mcp.config import LevelUpSettings
from levelup_mcp.state import decode
from levelup_mcp.storage import ChromaStore, ChromaUnavailableError


def load_store(settings: LevelUpSettings) -> ChromaStore:
    try:
        store = ChromaStore(
            settings.chroma_persist_path,
            collection_name=settings.snapshot_collection,
            snapshot_retention=settings.snapshot_retention,
        )
        store.ping()
        return store
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)


def cmd_snapshots(args: argparse.Namespace) -> None:
    settings = LevelUpSettings()
    store = load_store(settings)
    try:
        snapshots = store.list_snapshots(limit=args.limit)
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)
    payload = [
        {
            "event_id": snapshot.event_id,
            "sequence": snapshot.sequence,
            "command": snapshot.command,
            "created_at": snapshot.created_at.isoformat(),
            "size": len(snapshot.state),
        }
        for snapshot in snapshots
    ]
    print(json.dumps(payload, indent=2))


def cmd_player(args: argparse.Namespace) -> None:
    settings = LevelUpSettings()
    store = load_store(settings)
    try:
        latest = store.latest_snapshot()
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)

    player = decode(latest.state if latest is not None else None)
    if args.json:
        print(player.model_dump_json(by_alias=True, indent=2))
        return

    if not player.classes and not player.projects:
        print("No saved player state")
        return
    for skill in player.classes.values():
        print(f"{skill.name} [lvl {skill.level}] {skill.xp}/{skill.xp_to_next_level} xp")
    for project in player.projects.values():
        status = "archived" if project.is_archived else "active"
        print(
            f"{project.name} ({status}) quests={len(project.quests)} "
            f"completed={len(project.history)} total_xp={project.total_xp}"
        )


def cmd_metrics(args: argparse.Namespace) -> None:
    settings = LevelUpSettings()
    store = load_store(settings)
    try:
        latest = store.latest_snapshot()
        snapshots = store.list_snapshots()
        level_ups = store.list_level_ups()
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)

    player = decode(latest.state if latest is not None else None)

    command_counts: dict[str, int] = {}
    for snapshot in snapshots:
        command_counts[snapshot.command] = command_counts.get(snapshot.command, 0) + 1

    metrics = {
        "snapshots_total": len(snapshots),
        "command_counts": command_counts,
        "level_ups_total": len(level_ups),
        "inactivity_days": settings.inactivity_days,
        "player": player.summary(),
        "classes": [
            {
                "id": skill.id,
                "name": skill.name,
                "level": skill.level,
                "xp": skill.xp,
                "xp_to_next_level": skill.xp_to_next_level,
            }
            for skill in player.classes.values()
        ],
    }

    print(json.dumps(metrics, indent=2))


def cmd_levelups(args: argparse.Namespace) -> None:
    settings = LevelUpSettings()
    store = load_store(settings)
    try:
        records = store.list_level_ups(class_id=args.class_id)
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)

    if args.limit is not None and args.limit > 0:
        records = records[-args.limit :]

    payload = [
        {
            "class_id": record.class_id,
            "previous_level": record.previous_level,
            "new_level": record.new_level,
            "xp_gained": record.xp_gained,
            "recorded_at": record.recorded_at.isoformat(),
        }
        for record in records
    ]
    print(json.dumps(payload, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LevelUp MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_snapshots = sub.add_parser("snapshots", help="List stored player snapshots")
    p_snapshots.add_argument("--limit", type=int, default=None, help="Show only the latest N")
    p_snapshots.set_defaults(func=cmd_snapshots)

    p_player = sub.add_parser("player", help="Show the latest saved player")
    p_player.add_argument("--json", action="store_true", help="Output JSON")
    p_player.set_defaults(func=cmd_player)

    p_metrics = sub.add_parser("metrics", help="Show class levels and project counts")
    p_metrics.set_defaults(func=cmd_metrics)

    p_levelups = sub.add_parser("levelups", help="List recorded level-ups")
    p_levelups.add_argument("--class-id")
    p_levelups.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N level-ups",
    )
    p_levelups.set_defaults(func=cmd_levelups)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
