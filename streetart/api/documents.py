"""
Remote document store: named collections of JSON documents with a change feed.

Every write bumps the collection's version and pushes a fresh snapshot to the
collection's subscribers. Conflict handling is last-write-wins per document.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session, sessionmaker

from .models import CollectionVersion, Document

logger = logging.getLogger(__name__)

# Collection names shared by the client mirror and the HTTP backend
CAPTURES = "streetart-captures"  # art_id -> latest capture record
COOLDOWNS = "streetart-cooldowns"  # "<player_id>_<art_id>" -> {scanned_at}
TEAMS = "streetart-teams"  # team -> {score, captures}
PLAYERS = "streetart-players"  # player_id -> profile
POINTS_META = "streetart-points-meta"  # art_id -> {status}
SECTORS = "streetart-sectors"  # hood_id -> {controlled_by}


@dataclass(frozen=True)
class CollectionSnapshot:
    """All documents of one collection at a given version."""
    collection: str
    version: int
    documents: dict[str, dict[str, Any]] = field(default_factory=dict)


SnapshotListener = Callable[[CollectionSnapshot], None]


def cooldown_id(player_id: str, art_id: str) -> str:
    return f"{player_id}_{art_id}"


class DocumentStore:
    """
    SQLAlchemy-backed document collections.

    subscribe() delivers the current snapshot immediately and then again after
    every committed write to that collection. Listener errors are logged and do
    not fail the write.

    Writes are serialised by a store-wide lock held from the read of the current
    document through commit and snapshot delivery, so versions never repeat and
    listeners see them in increasing order. The lock is re-entrant: a listener
    may write to the store from the same thread.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._listeners: dict[str, list[SnapshotListener]] = {}
        self._lock = threading.Lock()  # listeners
        self._write_lock = threading.RLock()

    # ===== Reads =====

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._session_factory() as db:
            row = db.get(Document, (collection, doc_id))
            return json.loads(row.data) if row else None

    def list_documents(self, collection: str) -> dict[str, dict[str, Any]]:
        return self.snapshot(collection).documents

    def snapshot(self, collection: str) -> CollectionSnapshot:
        with self._session_factory() as db:
            rows = db.query(Document).filter(Document.collection == collection).order_by(Document.doc_id).all()
            return CollectionSnapshot(
                collection=collection,
                version=self._version(db, collection),
                documents={row.doc_id: json.loads(row.data) for row in rows},
            )

    # ===== Writes =====

    def set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> dict[str, Any]:
        """Replace (or with merge=True, shallow-merge into) a document. Returns the stored document."""
        with self._write_lock:
            with self._session_factory() as db:
                row = db.get(Document, (collection, doc_id))
                stored = dict(data)
                if merge and row is not None:
                    stored = {**json.loads(row.data), **data}
                self._write(db, collection, doc_id, row, stored)
                db.commit()
            self._notify(collection)
        return stored

    def increment(
        self,
        collection: str,
        doc_id: str,
        deltas: dict[str, int | float],
        minimum: int | float | None = None,
    ) -> dict[str, Any]:
        """
        Add deltas to numeric fields, creating the document or fields as needed.
        With minimum set, every incremented field is clamped to at least that value.
        """
        with self._write_lock:
            with self._session_factory() as db:
                row = db.get(Document, (collection, doc_id))
                stored = json.loads(row.data) if row else {}
                for key, delta in deltas.items():
                    value = stored.get(key, 0)
                    if not isinstance(value, (int, float)):
                        value = 0
                    value += delta
                    if minimum is not None:
                        value = max(minimum, value)
                    stored[key] = value
                self._write(db, collection, doc_id, row, stored)
                db.commit()
            self._notify(collection)
        return stored

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._write_lock:
            with self._session_factory() as db:
                row = db.get(Document, (collection, doc_id))
                if row is None:
                    return False
                db.delete(row)
                self._bump(db, collection)
                db.commit()
            self._notify(collection)
        return True

    # ===== Change feed =====

    def subscribe(self, collection: str, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        with self._write_lock:
            with self._lock:
                self._listeners.setdefault(collection, []).append(listener)
            listener(self.snapshot(collection))

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def listener_count(self, collection: str) -> int:
        with self._lock:
            return len(self._listeners.get(collection, []))

    def _notify(self, collection: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection, []))
        if not listeners:
            return
        snap = self.snapshot(collection)
        for listener in listeners:
            try:
                listener(snap)
            except Exception:
                logger.exception("Snapshot listener failed for %s", collection)

    # ===== Internals =====

    def _version(self, db: Session, collection: str) -> int:
        row = db.get(CollectionVersion, collection)
        return row.version if row else 0

    def _bump(self, db: Session, collection: str) -> int:
        row = db.get(CollectionVersion, collection)
        if row is None:
            row = CollectionVersion(collection=collection, version=0)
            db.add(row)
        row.version += 1
        return row.version

    def _write(self, db: Session, collection: str, doc_id: str, row: Document | None, data: dict[str, Any]) -> None:
        version = self._bump(db, collection)
        payload = json.dumps(data)
        if row is None:
            db.add(Document(collection=collection, doc_id=doc_id, data=payload, version=version))
        else:
            row.data = payload
            row.version = version
            row.updated_at = datetime.utcnow()


def record_capture(
    store: DocumentStore,
    capture: dict[str, Any],
    base_points: int,
    profile: dict[str, Any] | None = None,
) -> None:
    """
    Write one capture everywhere it is aggregated: the capture record, the
    player's scan cooldown, team scores (the previous owner loses the art's
    base points, never going below zero) and the player profile when given.
    """
    art_id = capture["art_id"]
    player_id = capture.get("player_id")
    store.set(CAPTURES, art_id, capture)
    if player_id:
        store.set(COOLDOWNS, cooldown_id(player_id, art_id), {
            "player_id": player_id,
            "art_id": art_id,
            "scanned_at": capture.get("timestamp"),
        })
    store.increment(TEAMS, capture["team"], {"score": capture.get("points", 0), "captures": 1})
    previous_team = capture.get("previous_team")
    if previous_team and previous_team != capture["team"]:
        store.increment(TEAMS, previous_team, {"score": -base_points}, minimum=0)
    if profile is not None and profile.get("id"):
        store.set(PLAYERS, profile["id"], profile, merge=True)
