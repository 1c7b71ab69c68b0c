"""
Main game reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from streetart.config import RECENT_ACTIVITY_LIMIT
from streetart.engine import EARLY_CAPTURE_BEFORE_HOUR, NIGHT_CAPTURE_FROM_HOUR, GAME_MODES
from streetart.engine.actions import Action, capture_art
from streetart.engine.definitions import Catalog
from streetart.engine.state import ArtPoint, CaptureEvent, GameState
from streetart.engine.scoring import ScoreResult, compute_score
from streetart.engine.achievements import get_achievement, unlock
from streetart.engine.utils import distance_meters, initialize_game_state, new_player_profile
from streetart.engine.events import (
    GameEvent,
    ART_CAPTURED,
    team_joined,
    player_renamed,
    player_reset,
    game_mode_changed,
    art_captured,
    art_discovered,
    ownership_changed,
    achievement_unlocked,
)

# User-facing rejection messages, in the order they are checked
JOIN_TEAM_FIRST = "Join a team first!"
ART_NOT_FOUND = "Art not found"
ALREADY_YOURS = "Already yours!"
ART_GONE = "This art no longer exists"
ALREADY_DISCOVERED = "Already discovered!"

MAX_NAME_LENGTH = 32


def check_capture_allowed(art: ArtPoint | None, team: str | None) -> ArtPoint:
    """
    Raise ValueError with the first failing precondition; return the art otherwise.
    Order: team assigned, art exists, not already owned by the team, not a ghost.
    """
    if not team:
        raise ValueError(JOIN_TEAM_FIRST)
    if art is None:
        raise ValueError(ART_NOT_FOUND)
    if art.captured_by == team:
        raise ValueError(ALREADY_YOURS)
    if art.is_ghost:
        raise ValueError(ART_GONE)
    return art


def _location_from_payload(value: Any) -> tuple[float, float] | None:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return (float(value[0]), float(value[1]))
    return None


def _add_area(areas: list[str], area: str) -> list[str]:
    if area and area not in areas:
        return areas + [area]
    return areas


def apply_action(
    state: GameState,
    action: Action,
    catalog: Catalog,
    now: float | None = None,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.
    The input state is never mutated.

    Raises:
        ValueError: with a user-facing message when the action is not allowed
    """
    if action.player_id != state.player.id:
        raise ValueError(
            f"Action player {action.player_id} does not match current player {state.player.id}")
    if now is None:
        now = time.time()

    new_state = state.copy()
    events: list[GameEvent] = []

    if action.type == "join_team":
        new_state, evts = _handle_join_team(new_state, action, catalog)
        events.extend(evts)

    elif action.type == "set_player_name":
        new_state, evts = _handle_set_player_name(new_state, action)
        events.extend(evts)

    elif action.type == "capture_art":
        new_state, evts = _handle_capture_art(new_state, action, catalog, now)
        events.extend(evts)

    elif action.type == "discover_art":
        new_state, evts = _handle_discover_art(new_state, action, now)
        events.extend(evts)

    elif action.type == "set_game_mode":
        new_state, evts = _handle_set_game_mode(new_state, action)
        events.extend(evts)

    elif action.type == "reset_player":
        new_state, evts = _handle_reset_player(new_state, action, catalog)
        events.extend(evts)

    else:
        raise ValueError(f"Unknown action type: {action.type}")

    # Achievements are re-evaluated after every change; the set only grows
    all_unlocked, new_ids = unlock(new_state.unlocked_achievements, new_state.player)
    new_state.unlocked_achievements = all_unlocked
    for aid in new_ids:
        definition = get_achievement(aid)
        events.append(achievement_unlocked(new_state.player.id, aid, definition.name if definition else aid))

    return new_state, events


def _handle_join_team(
    state: GameState,
    action: Action,
    catalog: Catalog,
) -> tuple[GameState, list[GameEvent]]:
    team = action.payload.get("team")
    if team not in catalog.teams:
        raise ValueError(f"Invalid team: {team}")
    previous = state.player.team
    if previous == team:
        return state, []
    state.player.team = team
    return state, [team_joined(state.player.id, team, previous)]


def _handle_set_player_name(state: GameState, action: Action) -> tuple[GameState, list[GameEvent]]:
    name = str(action.payload.get("name") or "").strip()
    if not name:
        raise ValueError("Name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Name must be at most {MAX_NAME_LENGTH} characters")
    old = state.player.name
    if old == name:
        return state, []
    state.player.name = name
    return state, [player_renamed(state.player.id, old, name)]


def _handle_capture_art(
    state: GameState,
    action: Action,
    catalog: Catalog,
    now: float,
) -> tuple[GameState, list[GameEvent]]:
    """
    Capture an art piece for the player's team.
    Validates (first failure wins):
    - Player has a team
    - Art id is known
    - Art is not already owned by the player's team
    - Art is not a ghost
    On success ownership is replaced outright and the player's stats are updated.
    """
    player = state.player
    art_id = action.payload.get("art_id")
    location = _location_from_payload(action.payload.get("location"))
    art = check_capture_allowed(state.art_points.get(art_id), player.team)

    score: ScoreResult = compute_score(art, player, location=location, now=now, sizes=catalog.sizes)
    previous_team = art.captured_by
    total = score.total_points

    # Ownership: total replacement
    art.captured_by = player.team
    art.captured_at = now
    art.captured_by_player_id = player.id
    art.captured_by_player_name = player.name

    # Player stats
    player.score += total
    player.captured_art = [aid for aid in player.captured_art if aid != art_id] + [art_id]
    player.streak += 1
    player.max_streak = max(player.max_streak, player.streak)
    player.capture_count += 1
    if score.is_recapture:
        player.recapture_count += 1
    if score.is_first_capture:
        player.first_capture_count += 1
    if score.distance_m is not None:
        # Counted even when the distance bonus threshold is not met
        player.total_distance += score.distance_m
    player.last_capture_time = now
    if location is not None:
        player.last_capture_location = location
    player.unique_areas_visited = _add_area(player.unique_areas_visited, art.area)
    hour = datetime.fromtimestamp(now).hour
    if hour < EARLY_CAPTURE_BEFORE_HOUR:
        player.has_early_capture = True
    if hour >= NIGHT_CAPTURE_FROM_HOUR:
        player.has_night_capture = True

    capture_event = CaptureEvent(
        art_id=art.id,
        art_name=art.name,
        team=player.team,
        player_id=player.id,
        player_name=player.name,
        points=total,
        bonuses=[b.to_dict() for b in score.bonuses],
        streak=player.streak,
        is_first_capture=score.is_first_capture,
        is_recapture=score.is_recapture,
        previous_team=previous_team,
        timestamp=now,
    )
    state.recent_activity = ([capture_event] + state.recent_activity)[:RECENT_ACTIVITY_LIMIT]

    message = f"Stolen from {previous_team}!" if previous_team else "Captured!"
    return state, [
        ownership_changed(art.id, previous_team, player.team, "local"),
        art_captured(capture_event.to_dict(), score.base_points, message),
    ]


def _handle_discover_art(
    state: GameState,
    action: Action,
    now: float,
) -> tuple[GameState, list[GameEvent]]:
    """
    Solo mode discovery: permanent and team independent.
    Validates art exists, is not a ghost, and was not discovered before.
    """
    player = state.player
    art_id = action.payload.get("art_id")
    location = _location_from_payload(action.payload.get("location"))
    art = state.art_points.get(art_id)
    if art is None:
        raise ValueError(ART_NOT_FOUND)
    if art.is_ghost:
        raise ValueError(ART_GONE)
    if art_id in state.discoveries:
        raise ValueError(ALREADY_DISCOVERED)

    state.discoveries[art_id] = now
    player.discovery_count += 1
    player.streak += 1
    player.max_streak = max(player.max_streak, player.streak)
    player.unique_areas_visited = _add_area(player.unique_areas_visited, art.area)
    if location is not None:
        if player.last_capture_location is not None:
            player.total_distance += distance_meters(location, player.last_capture_location)
        player.last_capture_location = location

    return state, [
        art_discovered(player.id, art.id, art.name, art.area, player.discovery_count, now),
    ]


def _handle_set_game_mode(state: GameState, action: Action) -> tuple[GameState, list[GameEvent]]:
    mode = action.payload.get("mode")
    if mode not in GAME_MODES:
        raise ValueError(f"Invalid game mode: {mode}")
    old = state.game_mode
    if old == mode:
        return state, []
    state.game_mode = mode
    return state, [game_mode_changed(old, mode)]


def _handle_reset_player(
    state: GameState,
    action: Action,
    catalog: Catalog,
) -> tuple[GameState, list[GameEvent]]:
    """
    Forget the player and the ownership backup. Discoveries, unlocked achievements
    and the game mode are permanent and carried over.
    """
    old_id = state.player.id
    fresh = initialize_game_state(
        catalog,
        player=new_player_profile(player_id=action.payload.get("new_player_id")),
        discoveries=state.discoveries,
        unlocked_achievements=state.unlocked_achievements,
        game_mode=state.game_mode,
    )
    return fresh, [player_reset(old_id, fresh.player.id)]


# ===== Capture convenience =====

@dataclass
class CaptureResult:
    """Outcome of a capture attempt, as shown to the player."""
    success: bool
    message: str
    art: ArtPoint | None = None
    points: int | None = None
    base_points: int | None = None
    bonuses: list[dict[str, Any]] = field(default_factory=list)
    streak: int | None = None
    previous_team: str | None = None
    is_first_capture: bool = False
    is_recapture: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.success:
            out.update({
                "art": self.art.to_dict() if self.art else None,
                "points": self.points,
                "base_points": self.base_points,
                "bonuses": self.bonuses,
                "streak": self.streak,
                "previous_team": self.previous_team,
                "is_first_capture": self.is_first_capture,
                "is_recapture": self.is_recapture,
            })
        return out


def capture(
    state: GameState,
    art_id: str,
    catalog: Catalog,
    location: tuple[float, float] | None = None,
    now: float | None = None,
) -> tuple[GameState, CaptureResult, list[GameEvent]]:
    """
    Attempt a capture. Rejections come back as CaptureResult(success=False)
    with the original state untouched.
    """
    try:
        new_state, events = apply_action(state, capture_art(state.player.id, art_id, location), catalog, now)
    except ValueError as e:
        return state, CaptureResult(success=False, message=str(e)), []

    captured = next(e for e in events if e.type == ART_CAPTURED).payload
    result = CaptureResult(
        success=True,
        message=captured["message"],
        art=new_state.art_points[art_id],
        points=captured["points"],
        base_points=captured["base_points"],
        bonuses=captured["bonuses"],
        streak=captured["streak"],
        previous_team=captured["previous_team"],
        is_first_capture=captured["is_first_capture"],
        is_recapture=captured["is_recapture"],
    )
    return new_state, result, events
