"""Chroma-based persistence layer."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from ..progression import LevelUpResult
from .models import LevelUpRecord, SnapshotRecord

SNAPSHOT_STREAM = "player"
SNAPSHOT_EVENT = "state_snapshot"
LEVEL_UP_EVENT = "level_up"
DEFAULT_SNAPSHOT_RETENTION = 20


class ChromaUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by LevelUp."""

    def add(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...

    def delete(self, *, ids: Iterable[str]) -> None:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by LevelUp."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


@dataclass(slots=True)
class ChromaEvent:
    """Represents a stored event in Chroma."""

    id: str
    stream: str
    event_type: str
    document: str
    metadata: dict[str, Any]
    timestamp: datetime


class ChromaStore:
    """Persist serialized player snapshots and progression events via ChromaDB."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "levelup_state",
        snapshot_retention: int | None = DEFAULT_SNAPSHOT_RETENTION,
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if snapshot_retention is not None and snapshot_retention < 1:
            raise ValueError("snapshot_retention must be at least 1")
        self._path = Path(path)
        self._collection_name = collection_name
        self._snapshot_retention = snapshot_retention
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None
        self._counters: dict[str, int] = {}

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise ChromaUnavailableError(
                "chromadb package is not installed; install levelup-mcp with persistence extras"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    def _next_sequence(self, stream: str) -> int:
        if stream not in self._counters:
            # Continue numbering across restarts instead of starting over at 1.
            existing = self._convert_result(self._ensure_collection().get(where={"stream": stream}))
            self._counters[stream] = max(
                (int(event.metadata.get("sequence", 0)) for event in existing), default=0
            )
        self._counters[stream] += 1
        return self._counters[stream]

    def _convert_result(self, result: dict[str, list[Any]]) -> list[ChromaEvent]:
        events: list[ChromaEvent] = []
        ids = result.get("ids", [])
        documents = result.get("documents", [])
        metadatas = result.get("metadatas", [])
        for event_id, document, metadata in zip(ids, documents, metadatas):
            timestamp_raw = metadata.get("timestamp")
            timestamp = (
                datetime.fromisoformat(timestamp_raw)
                if isinstance(timestamp_raw, str)
                else self._clock()
            )
            events.append(
                ChromaEvent(
                    id=event_id,
                    stream=metadata.get("stream", ""),
                    event_type=metadata.get("event_type", ""),
                    document=document,
                    metadata=metadata,
                    timestamp=timestamp,
                )
            )
        events.sort(key=lambda event: event.metadata.get("sequence", 0))
        return events

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def record_event(
        self,
        *,
        stream: str,
        event_type: str,
        body: Any,
        metadata: dict[str, Any] | None = None,
    ) -> ChromaEvent:
        collection = self._ensure_collection()
        counter = self._next_sequence(stream)
        event_id = f"{stream}:{uuid.uuid4().hex}"
        timestamp = self._clock()

        document = body if isinstance(body, str) else json.dumps(body)
        record_metadata = {
            "stream": stream,
            "event_type": event_type,
            "timestamp": timestamp.isoformat(),
            "sequence": counter,
        }
        if metadata:
            record_metadata.update(metadata)

        collection.add(
            documents=[document],
            metadatas=[record_metadata],
            ids=[event_id],
        )

        return ChromaEvent(
            id=event_id,
            stream=stream,
            event_type=event_type,
            document=document,
            metadata=record_metadata,
            timestamp=timestamp,
        )

    @staticmethod
    def _to_snapshot(event: ChromaEvent) -> SnapshotRecord:
        return SnapshotRecord(
            event_id=event.id,
            command=str(event.metadata.get("command", "unknown")),
            sequence=int(event.metadata.get("sequence", 0)),
            created_at=event.timestamp,
            state=event.document,
            metadata={
                k: v
                for k, v in event.metadata.items()
                if k not in {"stream", "event_type", "timestamp", "sequence", "command"}
            },
        )

    def record_snapshot(
        self,
        state: str,
        *,
        command: str,
        metadata: dict[str, Any] | None = None,
    ) -> SnapshotRecord:
        """Store one serialized player state produced by ``command``."""

        merged = dict(metadata or {})
        merged["command"] = command
        event = self.record_event(
            stream=SNAPSHOT_STREAM,
            event_type=SNAPSHOT_EVENT,
            body=state,
            metadata=merged,
        )
        self._prune_snapshots()
        return self._to_snapshot(event)

    def _prune_snapshots(self) -> None:
        # Only the newest ``snapshot_retention`` player states are kept.
        if self._snapshot_retention is None:
            return
        events = self.search_events(filters={"event_type": SNAPSHOT_EVENT})
        stale = events[: -self._snapshot_retention]
        if stale:
            self._ensure_collection().delete(ids=[event.id for event in stale])

    def list_snapshots(self, *, limit: int | None = None) -> list[SnapshotRecord]:
        """Return stored snapshots oldest first; ``limit`` keeps the most recent N."""

        events = self.search_events(filters={"event_type": SNAPSHOT_EVENT})
        snapshots = [self._to_snapshot(event) for event in events]
        if limit is not None and limit > 0:
            snapshots = snapshots[-limit:]
        return snapshots

    def latest_snapshot(self) -> SnapshotRecord | None:
        snapshots = self.list_snapshots()
        return snapshots[-1] if snapshots else None

    def record_level_up(self, class_id: str, result: LevelUpResult) -> LevelUpRecord:
        """Append an audit event for a class that gained one or more levels."""

        payload = {
            "class_id": class_id,
            "previous_level": result.previous_level,
            "new_level": result.new_level,
            "xp_gained": result.xp_gained,
        }
        event = self.record_event(
            stream=f"class::{class_id}",
            event_type=LEVEL_UP_EVENT,
            body=payload,
            metadata=payload,
        )
        return LevelUpRecord(recorded_at=event.timestamp, **payload)

    def list_level_ups(self, class_id: str | None = None) -> list[LevelUpRecord]:
        events = self.search_events(filters={"event_type": LEVEL_UP_EVENT})
        records: list[LevelUpRecord] = []
        for event in events:
            doc = json.loads(event.document)
            if class_id and doc.get("class_id") != class_id:
                continue
            records.append(
                LevelUpRecord(
                    class_id=doc["class_id"],
                    previous_level=int(doc["previous_level"]),
                    new_level=int(doc["new_level"]),
                    xp_gained=int(doc.get("xp_gained", 0)),
                    recorded_at=event.timestamp,
                )
            )
        records.sort(key=lambda record: record.recorded_at)
        return records

    def search_events(
        self,
        *,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[ChromaEvent]:
        collection = self._ensure_collection()
        result = collection.get(where=filters, limit=limit)
        return self._convert_result(result)


__all__ = ["ChromaEvent", "ChromaStore", "ChromaUnavailableError"]
