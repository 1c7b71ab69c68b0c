"""
Action definitions for the game.
Actions are immutable, deterministic instructions.
"""

from dataclasses import dataclass


@dataclass
class Action:
    """Base action class. All actions have a type, player, and payload."""
    type: str  # e.g., "join_team", "capture_art", "discover_art"
    player_id: str  # player performing the action
    payload: dict  # Action-specific data


def _location_payload(location: tuple[float, float] | None) -> list[float] | None:
    return [float(location[0]), float(location[1])] if location is not None else None


def join_team(player_id: str, team: str) -> Action:
    """Join (or switch to) a team. Example: join_team(p.id, "red")"""
    return Action(type="join_team", player_id=player_id, payload={"team": team})


def set_player_name(player_id: str, name: str) -> Action:
    return Action(type="set_player_name", player_id=player_id, payload={"name": name})


def capture_art(
    player_id: str,
    art_id: str,
    location: tuple[float, float] | None = None,  # player's (lat, lng) at scan time
) -> Action:
    """
    Claim an art piece for the player's team.
    location enables the distance bonus and distance tracking.
    """
    return Action(
        type="capture_art",
        player_id=player_id,
        payload={"art_id": art_id, "location": _location_payload(location)},
    )


def discover_art(
    player_id: str,
    art_id: str,
    location: tuple[float, float] | None = None,
) -> Action:
    """Solo mode: add an art piece to the personal collection. Team independent."""
    return Action(
        type="discover_art",
        player_id=player_id,
        payload={"art_id": art_id, "location": _location_payload(location)},
    )


def set_game_mode(player_id: str, mode: str) -> Action:
    """mode: "solo" or "battle"."""
    return Action(type="set_game_mode", player_id=player_id, payload={"mode": mode})


def reset_player(player_id: str, new_player_id: str | None = None) -> Action:
    """Full reset: fresh profile, no ownership, no discoveries, no achievements."""
    return Action(type="reset_player", player_id=player_id, payload={"new_player_id": new_player_id})
