"""
Query functions for UI and API integration.
These functions help callers understand the game without mutating state.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from streetart.engine.actions import Action
from streetart.engine.definitions import Catalog, size_points
from streetart.engine.reducer import apply_action
from streetart.engine.state import ArtPoint, GameState, PlayerProfile
from streetart.engine.utils import distance_meters, round_half_up


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error}


# ===== Action Validation =====

def validate_action(
    state: GameState,
    action: Action,
    catalog: Catalog,
    now: float | None = None,
) -> ValidationResult:
    """
    Validate an action without applying it.
    Runs the reducer on a copy, so the rules cannot drift from apply_action.
    """
    try:
        apply_action(state, action, catalog, now)
    except ValueError as e:
        return ValidationResult(False, str(e))
    return ValidationResult(True)


# ===== Map Queries =====

def find_nearest_art(
    art_points: Iterable[ArtPoint],
    lat: float,
    lng: float,
    max_distance_m: float = 50,
) -> tuple[ArtPoint, int] | None:
    """
    Nearest piece within max_distance_m of (lat, lng), with its distance rounded to meters.
    Returns None when nothing is in range.
    """
    nearest = None
    min_dist = float("inf")
    for point in art_points:
        dist = distance_meters((lat, lng), point.location)
        if dist < min_dist and dist <= max_distance_m:
            min_dist = dist
            nearest = point
    if nearest is None:
        return None
    return nearest, round_half_up(min_dist)


def calculate_team_scores(
    art_points: Iterable[ArtPoint],
    teams: Iterable[str],
    sizes: dict[str, int] | None = None,
) -> dict[str, int]:
    """Team score = size value of every owned piece; ghosts count half (floored)."""
    scores = {team: 0 for team in teams}
    for point in art_points:
        if point.captured_by in scores:
            value = size_points(point.size, sizes)
            if point.is_ghost:
                value = value // 2
            scores[point.captured_by] += value
    return scores


def team_piece_counts(art_points: Iterable[ArtPoint], teams: Iterable[str]) -> dict[str, int]:
    counts = {team: 0 for team in teams}
    for point in art_points:
        if point.captured_by in counts:
            counts[point.captured_by] += 1
    return counts


def hood_discovery_stats(state: GameState, hood_id: str) -> dict[str, int]:
    """{found, total} for the pieces in one hood."""
    hood_art = [a for a in state.art_points.values() if a.hood == hood_id]
    found = sum(1 for a in hood_art if a.id in state.discoveries)
    return {"found": found, "total": len(hood_art)}


def player_stats(player: PlayerProfile) -> dict[str, Any]:
    """Summary for the profile screen."""
    return {
        "score": player.score,
        "captures": player.capture_count,
        "recaptures": player.recapture_count,
        "first_captures": player.first_capture_count,
        "discoveries": player.discovery_count,
        "streak": player.streak,
        "max_streak": player.max_streak,
        "areas_visited": len(player.unique_areas_visited),
        "distance_km": round(player.total_distance / 1000, 2),
    }


def recent_activity(state: GameState) -> list[dict[str, Any]]:
    return [e.to_dict() for e in state.recent_activity]
