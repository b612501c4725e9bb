from __future__ import annotations

import json
from datetime import datetime, timezone

from levelup_mcp.config import LevelUpSettings
from levelup_mcp.server import create_server
from levelup_mcp.storage import ChromaUnavailableError, SnapshotRecord

SAVED_STATE = json.dumps(
    {
        "classes": {"c1": {"id": "c1", "name": "Coding", "color": "#fff", "level": 2, "xp": 4, "xpToNextLevel": 19}},
        "projects": {"p1": {"id": "p1", "name": "Site", "quests": None, "history": None, "totalXp": 14}},
    }
)


class StubChromaStore:
    last_instance: "StubChromaStore | None" = None
    saved_state: str | None = SAVED_STATE

    def __init__(self, *_, **__):
        self.snapshots: list[tuple[str, str]] = []
        StubChromaStore.last_instance = self

    def ping(self) -> bool:
        return True

    def latest_snapshot(self):
        if self.saved_state is None:
            return None
        return SnapshotRecord(
            event_id="player:1",
            command="create_class",
            sequence=7,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
            state=self.saved_state,
            metadata={},
        )

    def record_snapshot(self, state, *, command, metadata=None):
        self.snapshots.append((command, state))

    def record_level_up(self, class_id, result):
        return None


class UnavailableChromaStore:
    def __init__(self, *_, **__):
        raise ChromaUnavailableError("chromadb package is not installed")


def test_create_server_restores_latest_snapshot(monkeypatch) -> None:
    monkeypatch.setattr("levelup_mcp.server.ChromaStore", StubChromaStore)

    server = create_server(LevelUpSettings())

    store = getattr(server, "player_store")
    assert store.player.classes["c1"].level == 2
    assert store.player.projects["p1"].quests == {}
    assert getattr(server, "chroma_metadata")["available"] is True
    assert getattr(server, "chroma_metadata")["restored_sequence"] == 7


def test_tool_commands_are_snapshotted(monkeypatch) -> None:
    monkeypatch.setattr("levelup_mcp.server.ChromaStore", StubChromaStore)

    server = create_server(LevelUpSettings())
    handles = getattr(server, "tool_handles")
    handles.create_project.fn("Garden")

    snapshot_store = StubChromaStore.last_instance
    assert snapshot_store is not None
    assert snapshot_store.snapshots[-1][0] == "create_project"


def test_create_server_without_chroma(monkeypatch) -> None:
    monkeypatch.setattr("levelup_mcp.server.ChromaStore", UnavailableChromaStore)

    server = create_server(LevelUpSettings())

    metadata = getattr(server, "chroma_metadata")
    assert metadata["available"] is False
    assert "not installed" in metadata["error"]
    assert getattr(server, "snapshot_store") is None
    state = json.loads(getattr(server, "tool_handles").create_class.fn("Coding", "#fff"))
    assert len(state["classes"]) == 1


def test_status_payload_summarizes_player(monkeypatch) -> None:
    monkeypatch.setattr("levelup_mcp.server.ChromaStore", StubChromaStore)

    server = create_server(LevelUpSettings())
    handles = getattr(server, "tool_handles")
    handles.add_quest_to_project.fn("p1", "c1", "Nothing", -2)

    status = getattr(server, "status_payload")(request_id="req-1")

    assert status["player"]["classes"] == 1
    assert status["player"]["projects"] == {"total": 1, "active": 1, "archived": 0}
    assert status["player"]["total_xp"] == 14
    assert status["commands"]["rejected"] == 1
    assert status["commands"]["last"]["error"]["code"] == "invalid_hours"
    assert status["request_id"] == "req-1"
    json.dumps(status)


def test_persistence_disabled_skips_chroma(monkeypatch) -> None:
    monkeypatch.setattr("levelup_mcp.server.ChromaStore", UnavailableChromaStore)
    settings = LevelUpSettings()
    settings.persist_snapshots = False

    server = create_server(settings)

    assert getattr(server, "chroma_metadata")["error"] == "snapshot persistence disabled"
    assert getattr(server, "player_store").player.classes == {}
