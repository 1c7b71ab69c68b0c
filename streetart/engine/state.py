"""
Game state representation.
All state is treated as immutable by the reducer; mutations happen on copies.
Includes JSON serialization for local persistence and the remote mirror.
"""

import json
from dataclasses import dataclass, field
from copy import deepcopy
from typing import Any

from streetart.engine.definitions import ArtDefinition, STATUS_ACTIVE, STATUS_GHOST


def _ensure_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(x) for x in value]
    return []


def _ensure_location(value: Any) -> tuple[float, float] | None:
    """Accept [lat, lng], (lat, lng) or {"lat": .., "lng": ..}; None otherwise."""
    try:
        if isinstance(value, dict):
            return (float(value["lat"]), float(value["lng"]))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
    except (KeyError, TypeError, ValueError):
        pass
    return None


def _int(v: Any, default: int = 0) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _float_or_none(v: Any) -> float | None:
    try:
        return float(v) if v is not None else None
    except (TypeError, ValueError):
        return None


@dataclass
class ArtPoint:
    """An art piece joined with its current ownership."""
    id: str
    name: str
    location: tuple[float, float]
    size: str
    status: str = STATUS_ACTIVE
    area: str = ""
    hood: str = ""
    mhd: str | None = None
    captured_by: str | None = None  # team id or None if unowned
    captured_at: float | None = None  # epoch seconds
    captured_by_player_id: str | None = None
    captured_by_player_name: str | None = None

    @property
    def is_ghost(self) -> bool:
        return self.status == STATUS_GHOST

    @classmethod
    def from_definition(cls, art: ArtDefinition) -> "ArtPoint":
        return cls(
            id=art.id,
            name=art.name,
            location=art.location,
            size=art.size,
            status=art.status,
            area=art.area,
            hood=art.hood,
            mhd=art.mhd,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": list(self.location),
            "size": self.size,
            "status": self.status,
            "area": self.area,
            "hood": self.hood,
            "mhd": self.mhd,
            "captured_by": self.captured_by,
            "captured_at": self.captured_at,
            "captured_by_player_id": self.captured_by_player_id,
            "captured_by_player_name": self.captured_by_player_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArtPoint":
        if not isinstance(data, dict):
            data = {}
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            location=_ensure_location(data.get("location")) or (0.0, 0.0),
            size=str(data.get("size") or "medium"),
            status=str(data.get("status") or STATUS_ACTIVE),
            area=str(data.get("area") or ""),
            hood=str(data.get("hood") or ""),
            mhd=data.get("mhd"),
            captured_by=data.get("captured_by"),
            captured_at=_float_or_none(data.get("captured_at")),
            captured_by_player_id=data.get("captured_by_player_id"),
            captured_by_player_name=data.get("captured_by_player_name"),
        )


@dataclass
class PlayerProfile:
    """The local player's cumulative stats. max_streak >= streak always."""
    id: str
    name: str
    team: str | None = None  # None until chosen
    score: int = 0
    captured_art: list[str] = field(default_factory=list)
    streak: int = 0
    max_streak: int = 0
    capture_count: int = 0
    recapture_count: int = 0
    first_capture_count: int = 0
    last_capture_time: float | None = None  # epoch seconds
    last_capture_location: tuple[float, float] | None = None
    unique_areas_visited: list[str] = field(default_factory=list)
    discovery_count: int = 0
    # Cumulative meters between consecutive located captures
    total_distance: float = 0.0
    has_early_capture: bool = False
    has_night_capture: bool = False

    @property
    def is_registered(self) -> bool:
        """Name and team set; only then is the profile mirrored remotely."""
        return bool(self.name) and self.team is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "team": self.team,
            "score": self.score,
            "captured_art": list(self.captured_art),
            "streak": self.streak,
            "max_streak": self.max_streak,
            "capture_count": self.capture_count,
            "recapture_count": self.recapture_count,
            "first_capture_count": self.first_capture_count,
            "last_capture_time": self.last_capture_time,
            "last_capture_location": list(self.last_capture_location) if self.last_capture_location else None,
            "unique_areas_visited": list(self.unique_areas_visited),
            "discovery_count": self.discovery_count,
            "total_distance": self.total_distance,
            "has_early_capture": self.has_early_capture,
            "has_night_capture": self.has_night_capture,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlayerProfile":
        if not isinstance(data, dict):
            data = {}
        streak = max(0, _int(data.get("streak")))
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            team=data.get("team") or None,
            score=_int(data.get("score")),
            captured_art=_ensure_str_list(data.get("captured_art")),
            streak=streak,
            max_streak=max(streak, _int(data.get("max_streak"))),
            capture_count=_int(data.get("capture_count")),
            recapture_count=_int(data.get("recapture_count")),
            first_capture_count=_int(data.get("first_capture_count")),
            last_capture_time=_float_or_none(data.get("last_capture_time")),
            last_capture_location=_ensure_location(data.get("last_capture_location")),
            unique_areas_visited=_ensure_str_list(data.get("unique_areas_visited")),
            discovery_count=_int(data.get("discovery_count")),
            total_distance=_float_or_none(data.get("total_distance")) or 0.0,
            has_early_capture=bool(data.get("has_early_capture", False)),
            has_night_capture=bool(data.get("has_night_capture", False)),
        )


@dataclass
class CaptureEvent:
    """One successful capture, as broadcast to observers and kept in recent activity."""
    art_id: str
    art_name: str
    team: str
    player_id: str
    player_name: str
    points: int
    bonuses: list[dict[str, Any]]  # serialized bonus variants
    streak: int
    is_first_capture: bool
    is_recapture: bool
    previous_team: str | None
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "art_id": self.art_id,
            "art_name": self.art_name,
            "team": self.team,
            "player_id": self.player_id,
            "player_name": self.player_name,
            "points": self.points,
            "bonuses": [dict(b) for b in self.bonuses],
            "streak": self.streak,
            "is_first_capture": self.is_first_capture,
            "is_recapture": self.is_recapture,
            "previous_team": self.previous_team,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CaptureEvent":
        if not isinstance(data, dict):
            data = {}
        bonuses = data.get("bonuses")
        return cls(
            art_id=str(data.get("art_id") or ""),
            art_name=str(data.get("art_name") or ""),
            team=str(data.get("team") or ""),
            player_id=str(data.get("player_id") or ""),
            player_name=str(data.get("player_name") or ""),
            points=_int(data.get("points")),
            bonuses=[b for b in bonuses if isinstance(b, dict)] if isinstance(bonuses, list) else [],
            streak=_int(data.get("streak")),
            is_first_capture=bool(data.get("is_first_capture", False)),
            is_recapture=bool(data.get("is_recapture", False)),
            previous_team=data.get("previous_team"),
            timestamp=_float_or_none(data.get("timestamp")) or 0.0,
        )


@dataclass
class GameState:
    """Complete client-side game state."""
    player: PlayerProfile
    # art_id -> ArtPoint (catalog joined with ownership)
    art_points: dict[str, ArtPoint]
    # art_id -> epoch seconds of personal discovery (solo mode)
    discoveries: dict[str, float] = field(default_factory=dict)
    # Most recent first, bounded by config.RECENT_ACTIVITY_LIMIT
    recent_activity: list[CaptureEvent] = field(default_factory=list)
    # Monotonic: ids are only ever added
    unlocked_achievements: list[str] = field(default_factory=list)
    game_mode: str = "battle"  # "solo" or "battle"

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    def ownership(self) -> dict[str, str]:
        """art_id -> owning team, for owned pieces only."""
        return {aid: a.captured_by for aid, a in self.art_points.items() if a.captured_by}

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        return {
            "player": self.player.to_dict(),
            "art_points": {aid: a.to_dict() for aid, a in self.art_points.items()},
            "discoveries": dict(self.discoveries),
            "recent_activity": [e.to_dict() for e in self.recent_activity],
            "unlocked_achievements": list(self.unlocked_achievements),
            "game_mode": self.game_mode,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Create GameState from a dictionary (handles missing/None fields)."""
        if not isinstance(data, dict):
            data = {}
        ap = data.get("art_points") or {}
        if not isinstance(ap, dict):
            ap = {}
        disc = data.get("discoveries") or {}
        if not isinstance(disc, dict):
            disc = {}
        activity = data.get("recent_activity") or []
        if not isinstance(activity, list):
            activity = []
        mode = data.get("game_mode")
        return cls(
            player=PlayerProfile.from_dict(data.get("player") or {}),
            art_points={
                str(aid): ArtPoint.from_dict(a)
                for aid, a in ap.items()
                if isinstance(a, dict)
            },
            discoveries={str(k): float(v) for k, v in disc.items() if _float_or_none(v) is not None},
            recent_activity=[CaptureEvent.from_dict(e) for e in activity if isinstance(e, dict)],
            unlocked_achievements=_ensure_str_list(data.get("unlocked_achievements")),
            game_mode=mode if mode in ("solo", "battle") else "battle",
        )

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        return cls.from_dict(json.loads(json_str))
