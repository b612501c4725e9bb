from __future__ import annotations

import argparse
import importlib.util
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from levelup_mcp.storage import ChromaUnavailableError, LevelUpRecord, SnapshotRecord

STATE = json.dumps(
    {
        "classes": {"c1": {"id": "c1", "name": "Coding", "color": "#fff", "level": 3, "xp": 5, "xpToNextLevel": 24}},
        "projects": {
            "p1": {"id": "p1", "name": "Site", "totalXp": 34, "history": [{"questName": "Big", "classId": "c1", "xp": 34}]},
            "p2": {"id": "p2", "name": "Old", "isArchived": True},
        },
    }
)


def _load_diag(module_name: str):
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "levelup_diag.py"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


def _snapshot(sequence: int, command: str, state: str = STATE) -> SnapshotRecord:
    return SnapshotRecord(
        event_id=f"player:{sequence}",
        command=command,
        sequence=sequence,
        created_at=datetime(2025, 1, 1, minute=sequence, tzinfo=timezone.utc),
        state=state,
        metadata={},
    )


class StubStore:
    def __init__(self, snapshots=None, level_ups=None) -> None:
        self._snapshots = snapshots if snapshots is not None else [
            _snapshot(1, "create_class"),
            _snapshot(2, "create_project"),
            _snapshot(3, "complete_quest"),
        ]
        self._level_ups = level_ups or []

    def list_snapshots(self, *, limit=None):
        if limit:
            return self._snapshots[-limit:]
        return list(self._snapshots)

    def latest_snapshot(self):
        return self._snapshots[-1] if self._snapshots else None

    def list_level_ups(self, class_id=None):
        return [record for record in self._level_ups if not class_id or record.class_id == class_id]


def test_load_store_reports_missing_chroma(monkeypatch, capsys) -> None:
    diag = _load_diag("levelup_diag_missing_module")

    class Unavailable:
        def __init__(self, *_, **__):
            raise ChromaUnavailableError("chromadb package is not installed")

    monkeypatch.setattr(diag, "ChromaStore", Unavailable)

    with pytest.raises(SystemExit) as excinfo:
        diag.main(["metrics"])

    assert excinfo.value.code == 1
    assert "Chroma unavailable" in capsys.readouterr().out


def test_snapshots_limit(monkeypatch, capsys) -> None:
    diag = _load_diag("levelup_diag_snapshots_module")
    monkeypatch.setattr(diag, "load_store", lambda _settings: StubStore())

    diag.cmd_snapshots(argparse.Namespace(limit=2))

    payload = json.loads(capsys.readouterr().out)
    assert [item["command"] for item in payload] == ["create_project", "complete_quest"]
    assert payload[-1]["size"] == len(STATE)


def test_metrics_reports_progression(monkeypatch, capsys) -> None:
    diag = _load_diag("levelup_diag_metrics_module")
    level_ups = [
        LevelUpRecord(
            class_id="c1",
            previous_level=1,
            new_level=3,
            xp_gained=34,
            recorded_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
    ]
    monkeypatch.setattr(diag, "load_store", lambda _settings: StubStore(level_ups=level_ups))

    diag.cmd_metrics(argparse.Namespace())

    payload = json.loads(capsys.readouterr().out)
    assert payload["snapshots_total"] == 3
    assert payload["command_counts"]["complete_quest"] == 1
    assert payload["level_ups_total"] == 1
    assert payload["player"]["projects"] == {"total": 2, "active": 1, "archived": 1}
    assert payload["classes"][0]["level"] == 3


def test_player_summary_text(monkeypatch, capsys) -> None:
    diag = _load_diag("levelup_diag_player_module")
    monkeypatch.setattr(diag, "load_store", lambda _settings: StubStore())

    diag.cmd_player(argparse.Namespace(json=False))

    output = capsys.readouterr().out
    assert "Coding [lvl 3] 5/24 xp" in output
    assert "Old (archived)" in output


def test_player_without_snapshots(monkeypatch, capsys) -> None:
    diag = _load_diag("levelup_diag_empty_module")
    monkeypatch.setattr(diag, "load_store", lambda _settings: StubStore(snapshots=[]))

    diag.cmd_player(argparse.Namespace(json=True))

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"classes": {}, "projects": {}}


def test_levelups_filter_and_limit(monkeypatch, capsys) -> None:
    diag = _load_diag("levelup_diag_levelups_module")
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    records = [
        LevelUpRecord(class_id="c1", previous_level=i, new_level=i + 1, xp_gained=10, recorded_at=base.replace(minute=i))
        for i in range(1, 4)
    ] + [LevelUpRecord(class_id="c2", previous_level=1, new_level=2, xp_gained=10, recorded_at=base)]
    monkeypatch.setattr(diag, "load_store", lambda _settings: StubStore(level_ups=records))

    diag.cmd_levelups(argparse.Namespace(class_id="c1", limit=2))

    payload = json.loads(capsys.readouterr().out)
    assert [item["new_level"] for item in payload] == [3, 4]
    assert all(item["class_id"] == "c1" for item in payload)
