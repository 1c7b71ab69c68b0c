"""
Score-bonus calculator.

Bonuses are a closed set of frozen variants; each carries only the data it needs.
compute_score is pure: the caller applies the result to state.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar

from streetart.engine import (
    STREAK_BONUS_RATE,
    STREAK_BONUS_MAX_RATE,
    RECAPTURE_BONUS_RATE,
    FIRST_CAPTURE_BONUS_RATE,
    SPEED_BONUS_RATE,
    SPEED_BONUS_WINDOW_MINUTES,
    DISTANCE_BONUS_MIN_METERS,
    DISTANCE_BONUS_PER_100M,
    DISTANCE_BONUS_MAX,
)
from streetart.engine.definitions import size_points
from streetart.engine.state import ArtPoint, PlayerProfile
from streetart.engine.utils import distance_meters, round_half_up


# =============================================================================
# Bonus Variants
# =============================================================================


@dataclass(frozen=True, slots=True)
class StreakBonus:
    """Grows 10% of base per streak step, capped at 100% of base."""

    kind: ClassVar[str] = "streak"
    points: int
    streak: int
    """Player's streak before this capture."""

    @property
    def label(self) -> str:
        return f"Streak x{self.streak}"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "label": self.label, "points": self.points, "streak": self.streak}


@dataclass(frozen=True, slots=True)
class RecaptureBonus:
    kind: ClassVar[str] = "recapture"
    points: int
    previous_team: str

    @property
    def label(self) -> str:
        return f"Stolen from {self.previous_team}"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "label": self.label, "points": self.points, "previous_team": self.previous_team}


@dataclass(frozen=True, slots=True)
class FirstCaptureBonus:
    kind: ClassVar[str] = "first_capture"
    points: int

    @property
    def label(self) -> str:
        return "First capture"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "label": self.label, "points": self.points}


@dataclass(frozen=True, slots=True)
class SpeedBonus:
    kind: ClassVar[str] = "speed"
    points: int
    minutes_since_last: float

    @property
    def label(self) -> str:
        return "Speed bonus"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "label": self.label,
            "points": self.points,
            "minutes_since_last": round(self.minutes_since_last, 2),
        }


@dataclass(frozen=True, slots=True)
class DistanceBonus:
    kind: ClassVar[str] = "distance"
    points: int
    distance_m: float

    @property
    def label(self) -> str:
        return f"Explorer {round_half_up(self.distance_m)}m"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "label": self.label,
            "points": self.points,
            "distance_m": round_half_up(self.distance_m),
        }


# Type alias for all bonus types
Bonus = StreakBonus | RecaptureBonus | FirstCaptureBonus | SpeedBonus | DistanceBonus

BONUS_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (StreakBonus, RecaptureBonus, FirstCaptureBonus, SpeedBonus, DistanceBonus)
}


def bonus_from_dict(data: dict[str, Any]) -> Bonus:
    """Rebuild a bonus variant from its to_dict() form. Raises ValueError for unknown types."""
    kind = data.get("type")
    points = int(data.get("points", 0))
    if kind == StreakBonus.kind:
        return StreakBonus(points=points, streak=int(data.get("streak", 0)))
    if kind == RecaptureBonus.kind:
        return RecaptureBonus(points=points, previous_team=str(data.get("previous_team") or ""))
    if kind == FirstCaptureBonus.kind:
        return FirstCaptureBonus(points=points)
    if kind == SpeedBonus.kind:
        return SpeedBonus(points=points, minutes_since_last=float(data.get("minutes_since_last", 0.0)))
    if kind == DistanceBonus.kind:
        return DistanceBonus(points=points, distance_m=float(data.get("distance_m", 0.0)))
    raise ValueError(f"Unknown bonus type: {kind}")


# =============================================================================
# Score Calculation
# =============================================================================


@dataclass(frozen=True)
class ScoreResult:
    base_points: int
    bonuses: tuple[Bonus, ...] = field(default_factory=tuple)
    is_recapture: bool = False
    is_first_capture: bool = False
    distance_m: float | None = None
    """Distance from the previous capture location, when both locations are known."""

    @property
    def total_points(self) -> int:
        return self.base_points + sum(b.points for b in self.bonuses)

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_points": self.base_points,
            "total_points": self.total_points,
            "bonuses": [b.to_dict() for b in self.bonuses],
            "is_recapture": self.is_recapture,
            "is_first_capture": self.is_first_capture,
        }


def base_points_for(art: ArtPoint, sizes: dict[str, int] | None = None) -> int:
    return size_points(art.size, sizes)


def minutes_since_last_capture(player: PlayerProfile, now: float) -> float:
    """Infinite when the player has never captured."""
    if player.last_capture_time is None:
        return math.inf
    return (now - player.last_capture_time) / 60.0


def compute_score(
    art: ArtPoint,
    player: PlayerProfile,
    location: tuple[float, float] | None = None,
    now: float | None = None,
    sizes: dict[str, int] | None = None,
) -> ScoreResult:
    """
    Base points plus every triggered bonus. Bonuses stack additively with no cap on the total.

    Args:
        art: The piece being captured (with its current owner)
        player: Capturing player's state before the capture
        location: Player's (lat, lng) at capture time, if known
        now: Epoch seconds; defaults to time.time()
        sizes: size tier -> base points (defaults to the standard tiers)
    """
    if now is None:
        now = time.time()
    base = base_points_for(art, sizes)
    is_first_capture = art.captured_by is None
    is_recapture = art.captured_by is not None and art.captured_by != player.team

    bonuses: list[Bonus] = []

    if player.streak > 0:
        rate = min(player.streak * STREAK_BONUS_RATE, STREAK_BONUS_MAX_RATE)
        bonuses.append(StreakBonus(points=round_half_up(base * rate), streak=player.streak))

    if is_recapture:
        bonuses.append(RecaptureBonus(
            points=round_half_up(base * RECAPTURE_BONUS_RATE),
            previous_team=art.captured_by,
        ))

    if is_first_capture:
        bonuses.append(FirstCaptureBonus(points=round_half_up(base * FIRST_CAPTURE_BONUS_RATE)))

    minutes = minutes_since_last_capture(player, now)
    if minutes < SPEED_BONUS_WINDOW_MINUTES:
        bonuses.append(SpeedBonus(points=round_half_up(base * SPEED_BONUS_RATE), minutes_since_last=minutes))

    distance = None
    if location is not None and player.last_capture_location is not None:
        distance = distance_meters(location, player.last_capture_location)
        if distance > DISTANCE_BONUS_MIN_METERS:
            points = min(round_half_up(distance / 100) * DISTANCE_BONUS_PER_100M, DISTANCE_BONUS_MAX)
            bonuses.append(DistanceBonus(points=points, distance_m=distance))

    return ScoreResult(
        base_points=base,
        bonuses=tuple(bonuses),
        is_recapture=is_recapture,
        is_first_capture=is_first_capture,
        distance_m=distance,
    )
