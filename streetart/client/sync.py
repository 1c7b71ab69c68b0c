"""
Remote sync adapter.

Keeps the local art map in step with the remote document store and mirrors
local captures to it. Incoming capture snapshots are diffed against the
previously observed one; every ownership transition made by someone else
becomes a transient capture notification.

Remote failures are logged and swallowed: the local state stays authoritative
until the next snapshot arrives.
"""

import logging
import time
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from streetart.api.documents import (
    CAPTURES,
    COOLDOWNS,
    PLAYERS,
    POINTS_META,
    CollectionSnapshot,
    DocumentStore,
    cooldown_id,
    record_capture,
)
from streetart.client.notifications import KIND_CAPTURE, NotificationQueue
from streetart.client.snapshots import SnapshotChange, diff_snapshots
from streetart.engine.definitions import Catalog
from streetart.engine.events import GameEvent, ownership_changed
from streetart.engine.state import ArtPoint, CaptureEvent, PlayerProfile
from streetart.engine.utils import build_art_points_from_records

logger = logging.getLogger(__name__)

# Store errors that never propagate out of the adapter
REMOTE_ERRORS = (SQLAlchemyError, OSError, ValueError)

UpdateCallback = Callable[[dict[str, ArtPoint], list[GameEvent]], None]


def _team(doc: dict | None) -> str | None:
    return (doc or {}).get("team") or None


class RemoteSyncAdapter:
    def __init__(
        self,
        store: DocumentStore,
        catalog: Catalog,
        on_update: UpdateCallback,
        notifications: NotificationQueue,
        clock: Callable[[], float] = time.time,
        local_player_id: Callable[[], str | None] | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.on_update = on_update
        self.notifications = notifications
        self._clock = clock
        self._local_player_id = local_player_id or (lambda: None)
        self._captures: CollectionSnapshot | None = None
        self._meta: CollectionSnapshot | None = None
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def started(self) -> bool:
        return bool(self._unsubscribers)

    def start(self) -> None:
        if self.started:
            return
        try:
            self._unsubscribers.append(self.store.subscribe(POINTS_META, self._on_meta_snapshot))
            self._unsubscribers.append(self.store.subscribe(CAPTURES, self._on_captures_snapshot))
        except REMOTE_ERRORS as e:
            logger.warning("Remote sync unavailable, playing offline: %s", e)
            # Drop partial subscriptions so a later start() subscribes both feeds again
            self.close()
            return
        logger.info("Remote sync started for catalog %s", self.catalog.id)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        logger.info("Remote sync stopped")

    # ===== Incoming =====

    def _on_meta_snapshot(self, snapshot: CollectionSnapshot) -> None:
        self._meta = snapshot
        if self._captures is not None:
            self._publish([])

    def _on_captures_snapshot(self, snapshot: CollectionSnapshot) -> None:
        baseline = self._captures is None
        changes = diff_snapshots(self._captures, snapshot)
        self._captures = snapshot

        events = []
        for change in changes:
            old_team, new_team = _team(change.previous), _team(change.current)
            if old_team == new_team:
                continue
            events.append(ownership_changed(change.id, old_team, new_team, "remote"))
            if not baseline:
                self._notify_capture(change, old_team, new_team)
        self._publish(events)

    def _notify_capture(self, change: SnapshotChange, old_team: str | None, new_team: str | None) -> None:
        record = change.current or {}
        if new_team is None:
            return
        if record.get("player_id") and record.get("player_id") == self._local_player_id():
            return
        art = self.catalog.get_art(change.id)
        self.notifications.push(KIND_CAPTURE, {
            "art_id": change.id,
            "art_name": art.name if art else record.get("art_name", change.id),
            "team": new_team,
            "player_name": record.get("player_name"),
            "points": record.get("points", 0),
            "streak": record.get("streak", 0),
            "is_recapture": bool(record.get("is_recapture", old_team is not None)),
            "previous_team": old_team,
        }, now=self._clock())

    def refresh(self) -> None:
        """Re-publish the last observed remote view, e.g. after the local state was rebuilt."""
        if self._captures is not None:
            self._publish([])

    def _publish(self, events: list[GameEvent]) -> None:
        art_points = build_art_points_from_records(
            self.catalog,
            self._captures.documents if self._captures else {},
            self._meta.documents if self._meta else {},
        )
        self.on_update(art_points, events)

    # ===== Outgoing =====

    def mirror_capture(self, capture: CaptureEvent, base_points: int, profile: PlayerProfile) -> bool:
        """
        Write a local capture to the remote store. Returns False when it could not
        be written; the local capture stands either way.
        """
        try:
            record_capture(
                self.store,
                capture.to_dict(),
                base_points,
                profile.to_dict() if profile.is_registered else None,
            )
        except REMOTE_ERRORS as e:
            logger.warning("Could not mirror capture of %s: %s", capture.art_id, e)
            return False
        return True

    def mirror_profile(self, profile: PlayerProfile) -> bool:
        if not profile.is_registered:
            return True
        try:
            self.store.set(PLAYERS, profile.id, profile.to_dict(), merge=True)
        except REMOTE_ERRORS as e:
            logger.warning("Could not mirror profile %s: %s", profile.id, e)
            return False
        return True

    def cooldown_started_at(self, player_id: str, art_id: str) -> float | None:
        try:
            doc = self.store.get(COOLDOWNS, cooldown_id(player_id, art_id))
        except REMOTE_ERRORS as e:
            logger.warning("Could not read scan cooldown for %s: %s", art_id, e)
            return None
        scanned_at = (doc or {}).get("scanned_at")
        return float(scanned_at) if isinstance(scanned_at, (int, float)) else None
