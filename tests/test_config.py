from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from levelup_mcp.config import LevelUpSettings


def test_defaults(monkeypatch) -> None:
    for name in (
        "LEVELUP_LOG_LEVEL",
        "LEVELUP_INACTIVITY_DAYS",
        "LEVELUP_PERSIST_SNAPSHOTS",
        "LEVELUP_SNAPSHOT_RETENTION",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = LevelUpSettings()

    assert settings.log_level == "INFO"
    assert settings.inactivity_days == 30
    assert settings.inactivity_window == timedelta(days=30)
    assert settings.persist_snapshots is True
    assert settings.snapshot_collection == "levelup_state"
    assert settings.snapshot_retention == 20


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("LEVELUP_LOG_LEVEL", " debug ")
    monkeypatch.setenv("LEVELUP_INACTIVITY_DAYS", "7")
    monkeypatch.setenv("LEVELUP_PERSIST_SNAPSHOTS", "false")

    settings = LevelUpSettings()

    assert settings.log_level == "DEBUG"
    assert settings.inactivity_window == timedelta(days=7)
    assert settings.persist_snapshots is False


def test_rejects_unknown_log_level(monkeypatch) -> None:
    monkeypatch.setenv("LEVELUP_LOG_LEVEL", "chatty")
    with pytest.raises(ValidationError):
        LevelUpSettings()


def test_rejects_non_positive_inactivity(monkeypatch) -> None:
    monkeypatch.setenv("LEVELUP_INACTIVITY_DAYS", "0")
    with pytest.raises(ValidationError):
        LevelUpSettings()


def test_snapshot_retention_override(monkeypatch) -> None:
    monkeypatch.setenv("LEVELUP_SNAPSHOT_RETENTION", "5")
    assert LevelUpSettings().snapshot_retention == 5

    monkeypatch.setenv("LEVELUP_SNAPSHOT_RETENTION", "0")
    with pytest.raises(ValidationError):
        LevelUpSettings()
