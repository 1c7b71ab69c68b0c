"""
GameSession: the client-side owner of game state.

Created by the application, started once, closed on teardown. Holds the
GameState, persists it to LocalStorage after every change, mirrors captures to
the remote store when one is configured, and collects notifications.
"""

import logging
import time
from typing import Any, Callable

from streetart.config import NEAREST_ART_RADIUS_M, SCAN_COOLDOWN_SECONDS
from streetart.client.notifications import KIND_ACHIEVEMENT, Notification, NotificationQueue
from streetart.client.storage import (
    ACHIEVEMENTS_KEY,
    CAPTURES_KEY,
    DISCOVERIES_KEY,
    MODE_KEY,
    PLAYER_KEY,
    LocalStorage,
)
from streetart.client.sync import RemoteSyncAdapter
from streetart.api.documents import DocumentStore
from streetart.engine.actions import (
    Action,
    discover_art,
    join_team,
    reset_player,
    set_game_mode,
    set_player_name,
)
from streetart.engine.definitions import Catalog
from streetart.engine.events import (
    ACHIEVEMENT_UNLOCKED,
    ART_DISCOVERED,
    GameEvent,
)
from streetart.engine.queries import calculate_team_scores, find_nearest_art
from streetart.engine.reducer import CaptureResult, apply_action, capture
from streetart.engine.state import ArtPoint, CaptureEvent, GameState, PlayerProfile
from streetart.engine.utils import initialize_game_state, new_player_profile

logger = logging.getLogger(__name__)


class GameSession:
    def __init__(
        self,
        catalog: Catalog,
        storage: LocalStorage,
        store: DocumentStore | None = None,
        clock: Callable[[], float] = time.time,
        notifications: NotificationQueue | None = None,
    ):
        self.catalog = catalog
        self.storage = storage
        self.store = store
        self._clock = clock
        self.notifications = notifications or NotificationQueue(clock=clock)
        self.sync: RemoteSyncAdapter | None = None
        self._state: GameState | None = None

    # ===== Lifecycle =====

    def start(self) -> "GameSession":
        if self._state is not None:
            return self
        self._state = self._load_state()
        if self.store is not None:
            self.sync = RemoteSyncAdapter(
                self.store,
                self.catalog,
                self._on_remote_update,
                self.notifications,
                clock=self._clock,
                local_player_id=lambda: self._state.player.id if self._state else None,
            )
            self.sync.start()
        logger.info("Session started for %s (%s)", self._state.player.id, self.catalog.id)
        return self

    def close(self) -> None:
        if self.sync is not None:
            self.sync.close()
            self.sync = None
        if self._state is not None:
            self._persist()
            logger.info("Session closed for %s", self._state.player.id)
        self._state = None

    def __enter__(self) -> "GameSession":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def state(self) -> GameState:
        if self._state is None:
            raise RuntimeError("Session not started")
        return self._state

    @property
    def player(self) -> PlayerProfile:
        return self.state.player

    @property
    def art_points(self) -> dict[str, ArtPoint]:
        return self.state.art_points

    # ===== Operations =====

    def join_team(self, team: str) -> list[GameEvent]:
        """Raises ValueError for an unknown team."""
        events = self._apply(join_team(self.player.id, team))
        self._mirror_profile()
        return events

    def set_name(self, name: str) -> list[GameEvent]:
        """Raises ValueError for an empty or too long name."""
        events = self._apply(set_player_name(self.player.id, name))
        self._mirror_profile()
        return events

    def set_game_mode(self, mode: str) -> list[GameEvent]:
        return self._apply(set_game_mode(self.player.id, mode))

    def capture(self, art_id: str, location: tuple[float, float] | None = None) -> CaptureResult:
        """Capture for the player's team. Rule violations come back as success=False."""
        new_state, result, events = capture(self.state, art_id, self.catalog, location, now=self._clock())
        if not result.success:
            logger.info("Capture of %s rejected: %s", art_id, result.message)
            return result
        self._state = new_state
        self._after_change(events)
        if self.sync is not None:
            self.sync.mirror_capture(self.state.recent_activity[0], result.base_points or 0, self.player)
        logger.info("Captured %s for %s (+%s)", art_id, self.player.team, result.points)
        return result

    def discover(self, art_id: str, location: tuple[float, float] | None = None) -> CaptureResult:
        """Solo mode discovery; no score, no ownership change."""
        try:
            events = self._apply(discover_art(self.player.id, art_id, location))
        except ValueError as e:
            return CaptureResult(success=False, message=str(e))
        found = next(e for e in events if e.type == ART_DISCOVERED).payload
        return CaptureResult(
            success=True,
            message=f"Discovered {found['art_name']}!",
            art=self.art_points.get(art_id),
            points=0,
            base_points=0,
            streak=self.player.streak,
        )

    def reset_all(self) -> list[GameEvent]:
        """Forget the local player: new id, no team, no stats. Remote data is left alone."""
        events = self._apply(reset_player(self.player.id))
        if self.sync is not None:
            # Keep the remote ownership view; only the player is reset
            self.sync.refresh()
        return events

    # ===== Queries =====

    def find_nearest_art(
        self,
        lat: float,
        lng: float,
        max_distance_m: float = NEAREST_ART_RADIUS_M,
    ) -> tuple[ArtPoint, int] | None:
        return find_nearest_art(self.art_points.values(), lat, lng, max_distance_m)

    def team_scores(self) -> dict[str, int]:
        return calculate_team_scores(self.art_points.values(), self.catalog.teams, self.catalog.sizes)

    def cooldown_remaining(self, art_id: str) -> float:
        """Seconds until this player may scan art_id again; 0 without a remote store."""
        if self.sync is None:
            return 0.0
        scanned_at = self.sync.cooldown_started_at(self.player.id, art_id)
        if scanned_at is None:
            return 0.0
        return max(0.0, scanned_at + SCAN_COOLDOWN_SECONDS - self._clock())

    def active_notifications(self) -> list[Notification]:
        return self.notifications.active(self._clock())

    def dismiss_notification(self, notification_id: int) -> bool:
        return self.notifications.dismiss(notification_id)

    def recent_captures(self) -> list[CaptureEvent]:
        return list(self.state.recent_activity)

    # ===== Internals =====

    def _apply(self, action: Action) -> list[GameEvent]:
        new_state, events = apply_action(self.state, action, self.catalog, now=self._clock())
        self._state = new_state
        self._after_change(events)
        return events

    def _after_change(self, events: list[GameEvent]) -> None:
        for event in events:
            if event.type == ACHIEVEMENT_UNLOCKED:
                self.notifications.push(KIND_ACHIEVEMENT, event.payload, now=self._clock())
        self._persist()

    def _mirror_profile(self) -> None:
        if self.sync is not None:
            self.sync.mirror_profile(self.player)

    def _on_remote_update(self, art_points: dict[str, ArtPoint], events: list[GameEvent]) -> None:
        if self._state is None:
            return
        self._state.art_points = art_points
        for event in events:
            logger.debug("Remote ownership change: %s", event.payload)
        self.storage.set(CAPTURES_KEY, self._state.ownership())

    def _load_state(self) -> GameState:
        raw_player = self.storage.get(PLAYER_KEY)
        player = PlayerProfile.from_dict(raw_player) if isinstance(raw_player, dict) and raw_player.get("id") else None
        captures = self.storage.get(CAPTURES_KEY)
        discoveries = self.storage.get(DISCOVERIES_KEY)
        achievements = self.storage.get(ACHIEVEMENTS_KEY)
        return initialize_game_state(
            self.catalog,
            player=player or new_player_profile(),
            captures={str(k): str(v) for k, v in captures.items() if v} if isinstance(captures, dict) else None,
            discoveries=_float_map(discoveries),
            unlocked_achievements=[a for a in achievements if isinstance(a, str)] if isinstance(achievements, list) else None,
            game_mode=self.storage.get(MODE_KEY) or "battle",
        )

    def _persist(self) -> None:
        state = self.state
        self.storage.set(PLAYER_KEY, state.player.to_dict())
        self.storage.set(CAPTURES_KEY, state.ownership())
        self.storage.set(DISCOVERIES_KEY, dict(state.discoveries))
        self.storage.set(MODE_KEY, state.game_mode)
        self.storage.set(ACHIEVEMENTS_KEY, list(state.unlocked_achievements))


def _float_map(value: Any) -> dict[str, float] | None:
    if not isinstance(value, dict):
        return None
    out = {}
    for k, v in value.items():
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            out[str(k)] = float(v)
    return out
