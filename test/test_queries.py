"""
Tests for catalog loading, geometry helpers and read-only queries.
"""

import pytest

from conftest import NOW
from streetart.engine import queries
from streetart.engine.actions import capture_art, discover_art
from streetart.engine.definitions import list_catalogs, load_catalog
from streetart.engine.queries import (
    calculate_team_scores,
    find_nearest_art,
    hood_discovery_stats,
    player_stats,
    recent_activity,
    team_piece_counts,
    validate_action,
)
from streetart.engine.reducer import apply_action, capture
from streetart.engine.state import GameState
from streetart.engine.utils import build_art_points_from_records, distance_meters, round_half_up


# =============================================================================
# Catalog
# =============================================================================


class TestCatalog:
    def test_prague_catalog(self, catalog) -> None:
        assert catalog.id == "prague"
        assert len(catalog.art) == 45
        assert set(catalog.teams) == {"red", "blue"}
        assert set(catalog.hoods) == {"palmovka", "vysocany", "podebrady"}
        assert catalog.sizes == {"sticker": 25, "small": 50, "medium": 100, "large": 200}
        assert catalog.team_color("red") == "#ff6b6b"

    def test_target_index_follows_catalog_order(self, catalog) -> None:
        assert catalog.target_index[0] == "art-01"
        assert len(catalog.target_index) == len(catalog.art)

    def test_point_value(self, catalog) -> None:
        assert catalog.point_value("large") == 200
        assert catalog.point_value("sticker") == 25
        assert catalog.point_value("mural") == 100

    def test_every_art_belongs_to_a_known_hood(self, catalog) -> None:
        assert {a.hood for a in catalog.art.values()} <= set(catalog.hoods)

    def test_list_catalogs(self) -> None:
        assert "prague" in [c["id"] for c in list_catalogs()]

    def test_missing_catalog(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_catalog("atlantis")


# =============================================================================
# Geometry
# =============================================================================


class TestGeometry:
    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(3.2) == 3
        assert round_half_up(3.49) == 3

    def test_distance_along_meridian(self) -> None:
        assert distance_meters((50.0, 14.0), (51.0, 14.0)) == pytest.approx(111000)

    def test_distance_shrinks_east_west_with_latitude(self) -> None:
        at_equator = distance_meters((0.0, 14.0), (0.0, 15.0))
        in_prague = distance_meters((50.0, 14.0), (50.0, 15.0))
        assert at_equator == pytest.approx(111000)
        assert in_prague == pytest.approx(111000 * 0.6428, rel=1e-3)


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    def test_validate_action_does_not_apply(self, red_state, catalog) -> None:
        before = red_state.to_dict()
        assert validate_action(red_state, capture_art("p1", "art-01"), catalog, NOW).valid
        assert red_state.to_dict() == before

        invalid = validate_action(red_state, capture_art("p1", "art-999"), catalog, NOW)
        assert not invalid.valid
        assert invalid.error == "Art not found"

    def test_find_nearest_art(self, red_state, catalog) -> None:
        lat, lng = catalog.art["art-22"].location  # Karlín, isolated
        art, dist = find_nearest_art(red_state.art_points.values(), lat, lng)
        assert art.id == "art-22"
        assert dist == 0

    def test_find_nearest_art_rounds_half_up(self, red_state, monkeypatch) -> None:
        monkeypatch.setattr(queries, "distance_meters", lambda origin, target: 2.5)
        _, dist = find_nearest_art(red_state.art_points.values(), 50.0, 14.0)
        assert dist == 3

    def test_find_nearest_art_out_of_range(self, red_state) -> None:
        assert find_nearest_art(red_state.art_points.values(), 48.0, 16.0, max_distance_m=100) is None

    def test_team_scores_count_ghosts_half(self, red_state, catalog, ghost_art_ids) -> None:
        ghost = ghost_art_ids[0]
        red_state.art_points["art-01"].captured_by = "red"
        red_state.art_points[ghost].captured_by = "red"
        ghost_value = catalog.sizes[catalog.art[ghost].size] // 2

        scores = calculate_team_scores(red_state.art_points.values(), catalog.teams, catalog.sizes)
        assert scores == {"red": 100 + ghost_value, "blue": 0}
        assert team_piece_counts(red_state.art_points.values(), catalog.teams) == {"red": 2, "blue": 0}

    def test_hood_discovery_stats(self, state, catalog) -> None:
        state, _ = apply_action(state, discover_art("p1", "art-22"), catalog, now=NOW)
        stats = hood_discovery_stats(state, "palmovka")
        total = sum(1 for a in catalog.art.values() if a.hood == "palmovka")
        assert stats == {"found": 1, "total": total}

    def test_player_stats_and_activity(self, red_state, catalog) -> None:
        state, _, _ = capture(red_state, "art-01", catalog, now=NOW)
        stats = player_stats(state.player)
        assert stats["captures"] == 1
        assert stats["score"] == 125
        assert recent_activity(state)[0]["art_id"] == "art-01"


class TestStateSerialization:
    def test_from_dict_tolerates_garbage(self) -> None:
        state = GameState.from_dict({"player": {"id": "p1", "streak": "x"}, "art_points": [], "game_mode": "coop"})
        assert state.player.id == "p1"
        assert state.player.streak == 0
        assert state.art_points == {}
        assert state.game_mode == "battle"

    def test_json_keeps_ownership(self, red_state, catalog) -> None:
        state, _, _ = capture(red_state, "art-01", catalog, now=NOW)
        restored = GameState.from_json(state.to_json())
        assert restored.ownership() == {"art-01": "red"}
        assert restored.recent_activity[0].points == 125


def test_records_join_with_status_override(catalog) -> None:
    points = build_art_points_from_records(
        catalog,
        {"art-01": {"team": "blue", "player_id": "p9", "player_name": "Nine", "timestamp": NOW}},
        {"art-02": {"status": "ghost"}, "art-03": {"status": "bogus"}},
    )
    assert points["art-01"].captured_by == "blue"
    assert points["art-01"].captured_by_player_name == "Nine"
    assert points["art-02"].is_ghost
    assert points["art-03"].status == "active"
