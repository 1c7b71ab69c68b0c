"""
Game events for UI hooks, logging, and the remote mirror.
Events describe what happened during action processing.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Player events
TEAM_JOINED = "team_joined"
PLAYER_RENAMED = "player_renamed"
PLAYER_RESET = "player_reset"
GAME_MODE_CHANGED = "game_mode_changed"

# Art events
ART_CAPTURED = "art_captured"
ART_DISCOVERED = "art_discovered"
OWNERSHIP_CHANGED = "ownership_changed"

# Progress events
ACHIEVEMENT_UNLOCKED = "achievement_unlocked"


# ===== Event Factory Functions =====

def team_joined(player_id: str, team: str, previous_team: str | None) -> GameEvent:
    return GameEvent(TEAM_JOINED, {
        "player_id": player_id,
        "team": team,
        "previous_team": previous_team,
    })


def player_renamed(player_id: str, old_name: str, new_name: str) -> GameEvent:
    return GameEvent(PLAYER_RENAMED, {
        "player_id": player_id,
        "old_name": old_name,
        "new_name": new_name,
    })


def player_reset(old_player_id: str, new_player_id: str) -> GameEvent:
    return GameEvent(PLAYER_RESET, {
        "old_player_id": old_player_id,
        "new_player_id": new_player_id,
    })


def game_mode_changed(old_mode: str, new_mode: str) -> GameEvent:
    return GameEvent(GAME_MODE_CHANGED, {"old_mode": old_mode, "new_mode": new_mode})


def art_captured(capture: dict[str, Any], base_points: int, message: str) -> GameEvent:
    """capture is a CaptureEvent.to_dict()."""
    return GameEvent(ART_CAPTURED, {
        **capture,
        "base_points": base_points,
        "message": message,
    })


def art_discovered(
    player_id: str,
    art_id: str,
    art_name: str,
    area: str,
    discovery_count: int,
    timestamp: float,
) -> GameEvent:
    return GameEvent(ART_DISCOVERED, {
        "player_id": player_id,
        "art_id": art_id,
        "art_name": art_name,
        "area": area,
        "discovery_count": discovery_count,
        "timestamp": timestamp,
    })


def ownership_changed(
    art_id: str,
    old_team: str | None,
    new_team: str | None,
    source: str,
) -> GameEvent:
    """source: "local" for the reducer, "remote" for the sync adapter."""
    return GameEvent(OWNERSHIP_CHANGED, {
        "art_id": art_id,
        "old_team": old_team,
        "new_team": new_team,
        "source": source,
    })


def achievement_unlocked(player_id: str, achievement_id: str, name: str) -> GameEvent:
    return GameEvent(ACHIEVEMENT_UNLOCKED, {
        "player_id": player_id,
        "achievement_id": achievement_id,
        "name": name,
    })
