"""
Achievement definitions and evaluation.

Each achievement is an independent predicate over the player's cumulative stats.
The unlocked set only ever grows: evaluation results are unioned into it.
"""

from dataclasses import dataclass
from typing import Callable

from streetart.engine.state import PlayerProfile

CATEGORY_SOLO = "solo"
CATEGORY_BATTLE = "battle"
CATEGORY_SPECIAL = "special"

RARITY_COMMON = "common"
RARITY_RARE = "rare"
RARITY_EPIC = "epic"
RARITY_LEGENDARY = "legendary"


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    icon: str
    category: str
    rarity: str
    check: Callable[[PlayerProfile], bool]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "category": self.category,
            "rarity": self.rarity,
        }


def _areas(p: PlayerProfile) -> int:
    return len(set(p.unique_areas_visited))


ACHIEVEMENTS: list[AchievementDefinition] = [
    # Solo mode - discovery milestones
    AchievementDefinition("first_find", "First Find", "Discover your first street art", "🔍",
                          CATEGORY_SOLO, RARITY_COMMON, lambda p: p.discovery_count >= 1),
    AchievementDefinition("explorer", "Explorer", "Discover 10 pieces of street art", "🗺️",
                          CATEGORY_SOLO, RARITY_RARE, lambda p: p.discovery_count >= 10),
    AchievementDefinition("collector", "Collector", "Discover 25 pieces of street art", "📦",
                          CATEGORY_SOLO, RARITY_EPIC, lambda p: p.discovery_count >= 25),
    # Solo mode - areas
    AchievementDefinition("tourist", "Tourist", "Visit 3 different areas", "🚶",
                          CATEGORY_SOLO, RARITY_COMMON, lambda p: _areas(p) >= 3),
    AchievementDefinition("wanderer", "Wanderer", "Visit all areas", "🌍",
                          CATEGORY_SOLO, RARITY_EPIC, lambda p: _areas(p) >= 6),
    # Solo mode - streaks
    AchievementDefinition("getting_started", "Getting Started", "Reach a streak of 3", "🔥",
                          CATEGORY_SOLO, RARITY_COMMON, lambda p: p.streak >= 3),
    AchievementDefinition("on_fire", "On Fire", "Reach a streak of 5", "🔥",
                          CATEGORY_SOLO, RARITY_RARE, lambda p: p.streak >= 5),
    AchievementDefinition("unstoppable", "Unstoppable", "Reach a streak of 10", "💥",
                          CATEGORY_SOLO, RARITY_EPIC, lambda p: p.streak >= 10),
    # Battle mode - captures
    AchievementDefinition("first_blood", "First Blood", "Capture your first territory", "⚔️",
                          CATEGORY_BATTLE, RARITY_COMMON, lambda p: p.capture_count >= 1),
    AchievementDefinition("warrior", "Warrior", "Capture 10 territories", "🗡️",
                          CATEGORY_BATTLE, RARITY_RARE, lambda p: p.capture_count >= 10),
    AchievementDefinition("conqueror", "Conqueror", "Capture 50 territories", "👑",
                          CATEGORY_BATTLE, RARITY_LEGENDARY, lambda p: p.capture_count >= 50),
    # Battle mode - steals
    AchievementDefinition("thief", "Thief", "Steal your first territory", "🦊",
                          CATEGORY_BATTLE, RARITY_COMMON, lambda p: p.recapture_count >= 1),
    AchievementDefinition("raider", "Raider", "Steal 10 territories", "🏴‍☠️",
                          CATEGORY_BATTLE, RARITY_RARE, lambda p: p.recapture_count >= 10),
    AchievementDefinition("nemesis", "Nemesis", "Steal 25 territories", "💀",
                          CATEGORY_BATTLE, RARITY_EPIC, lambda p: p.recapture_count >= 25),
    # Battle mode - team contribution
    AchievementDefinition("team_player", "Team Player", "Contribute 500 points to your team", "🤝",
                          CATEGORY_BATTLE, RARITY_COMMON, lambda p: p.score >= 500),
    AchievementDefinition("mvp", "MVP", "Contribute 2000 points to your team", "⭐",
                          CATEGORY_BATTLE, RARITY_RARE, lambda p: p.score >= 2000),
    AchievementDefinition("legend", "Legend", "Contribute 5000 points to your team", "🌟",
                          CATEGORY_BATTLE, RARITY_LEGENDARY, lambda p: p.score >= 5000),
    # Special
    AchievementDefinition("pioneer", "Pioneer", "Be the first to capture a territory", "🚀",
                          CATEGORY_SPECIAL, RARITY_RARE, lambda p: p.first_capture_count >= 1),
    AchievementDefinition("early_bird", "Early Bird", "Capture before 7 AM", "🌅",
                          CATEGORY_SPECIAL, RARITY_RARE, lambda p: p.has_early_capture),
    AchievementDefinition("night_owl", "Night Owl", "Capture after 10 PM", "🦉",
                          CATEGORY_SPECIAL, RARITY_RARE, lambda p: p.has_night_capture),
]

ACHIEVEMENTS_BY_ID: dict[str, AchievementDefinition] = {a.id: a for a in ACHIEVEMENTS}
TOTAL_ACHIEVEMENTS = len(ACHIEVEMENTS)


def get_achievement(achievement_id: str) -> AchievementDefinition | None:
    return ACHIEVEMENTS_BY_ID.get(achievement_id)


def evaluate(player: PlayerProfile) -> set[str]:
    """Ids of every achievement whose predicate currently holds. Recomputed in full each call."""
    return {a.id for a in ACHIEVEMENTS if a.check(player)}


def newly_unlocked(player: PlayerProfile, previously_unlocked) -> set[str]:
    return evaluate(player) - set(previously_unlocked)


def unlock(previously_unlocked, player: PlayerProfile) -> tuple[list[str], list[str]]:
    """
    Union the current evaluation into the unlocked set.

    Returns:
        (all_unlocked, new_ids), both sorted. all_unlocked is always a superset of previously_unlocked.
    """
    previous = set(previously_unlocked)
    new_ids = evaluate(player) - previous
    return sorted(previous | new_ids), sorted(new_ids)
