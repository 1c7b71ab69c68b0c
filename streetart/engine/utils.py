"""
Utility functions for the game engine.
"""

import math
import uuid

from streetart.engine import METERS_PER_DEGREE
from streetart.engine.definitions import Catalog, STATUS_ACTIVE, STATUS_GHOST
from streetart.engine.state import ArtPoint, GameState, PlayerProfile


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def distance_meters(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """
    Approximate planar distance in meters between two (lat, lng) points.
    Equirectangular projection using the origin's latitude; fine for city-scale distances.
    """
    d_lat = (target[0] - origin[0]) * METERS_PER_DEGREE
    d_lng = (target[1] - origin[1]) * METERS_PER_DEGREE * math.cos(math.radians(origin[0]))
    return math.sqrt(d_lat * d_lat + d_lng * d_lng)


def generate_player_id() -> str:
    return f"player-{uuid.uuid4().hex[:12]}"


def new_player_profile(name: str = "", player_id: str | None = None) -> PlayerProfile:
    if not name:
        from streetart.config import DEFAULT_PLAYER_NAME
        name = DEFAULT_PLAYER_NAME
    return PlayerProfile(id=player_id or generate_player_id(), name=name)


def build_art_points(
    catalog: Catalog,
    captures: dict[str, str] | None = None,
) -> dict[str, ArtPoint]:
    """
    Join the static catalog with an ownership map (art_id -> team).
    Unknown art ids in captures are ignored.
    """
    captures = captures or {}
    points = {}
    for art_id, art_def in catalog.art.items():
        point = ArtPoint.from_definition(art_def)
        point.captured_by = captures.get(art_id) or None
        points[art_id] = point
    return points


def build_art_points_from_records(
    catalog: Catalog,
    captures: dict[str, dict] | None = None,
    meta: dict[str, dict] | None = None,
) -> dict[str, ArtPoint]:
    """
    Join the static catalog with remote documents.

    Args:
        catalog: Static catalog
        captures: art_id -> latest capture record (team, player_id, player_name, timestamp)
        meta: art_id -> {"status": ...} override (e.g. a piece marked ghost after it was painted over)
    """
    captures = captures or {}
    meta = meta or {}
    points = {}
    for art_id, art_def in catalog.art.items():
        point = ArtPoint.from_definition(art_def)
        record = captures.get(art_id)
        if isinstance(record, dict) and record.get("team"):
            point.captured_by = str(record["team"])
            timestamp = record.get("timestamp")
            point.captured_at = float(timestamp) if isinstance(timestamp, (int, float)) else None
            point.captured_by_player_id = record.get("player_id")
            point.captured_by_player_name = record.get("player_name")
        override = meta.get(art_id)
        if isinstance(override, dict) and override.get("status") in (STATUS_ACTIVE, STATUS_GHOST):
            point.status = override["status"]
        points[art_id] = point
    return points


def initialize_game_state(
    catalog: Catalog,
    player: PlayerProfile | None = None,
    captures: dict[str, str] | None = None,
    discoveries: dict[str, float] | None = None,
    unlocked_achievements: list[str] | None = None,
    game_mode: str = "battle",
) -> GameState:
    """
    Create a game state for a catalog.

    Args:
        catalog: Static catalog
        player: Existing profile, or None for a fresh one
        captures: Ownership backup (art_id -> team)
        discoveries: Personal discoveries (art_id -> timestamp)
        unlocked_achievements: Previously unlocked achievement ids
        game_mode: "solo" or "battle"
    """
    return GameState(
        player=player if player is not None else new_player_profile(),
        art_points=build_art_points(catalog, captures),
        discoveries=dict(discoveries or {}),
        unlocked_achievements=sorted(set(unlocked_achievements or [])),
        game_mode=game_mode if game_mode in ("solo", "battle") else "battle",
    )


def print_game_state(state: GameState, catalog: Catalog) -> None:
    """Pretty-print the game state for debugging."""
    p = state.player
    print(f"\n=== {p.name} ({p.team or 'no team'}) | mode={state.game_mode} ===")
    print(f"Score: {p.score} | Streak: {p.streak} (best {p.max_streak})")
    print(f"Captures: {p.capture_count} | Recaptures: {p.recapture_count} | Firsts: {p.first_capture_count}")
    print(f"Discoveries: {p.discovery_count} | Areas: {', '.join(p.unique_areas_visited) or '-'}")

    owned: dict[str, list[str]] = {}
    for art in state.art_points.values():
        if art.captured_by:
            owned.setdefault(art.captured_by, []).append(art.id)
    for team in sorted(catalog.teams):
        ids = owned.get(team, [])
        print(f"  {team}: {len(ids)} pieces {ids if ids else ''}")

    if state.unlocked_achievements:
        print(f"Achievements: {', '.join(state.unlocked_achievements)}")
    if state.recent_activity:
        print("Recent activity:")
        for e in state.recent_activity:
            tag = " (stolen)" if e.is_recapture else ""
            print(f"  - {e.player_name} [{e.team}] {e.art_name} +{e.points}{tag}")
