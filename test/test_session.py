"""
Tests for GameSession: lifecycle, local persistence, remote mirroring.
"""

import pytest

from streetart.api.documents import CAPTURES, PLAYERS, TEAMS
from streetart.client.notifications import KIND_ACHIEVEMENT, KIND_CAPTURE
from streetart.client.session import GameSession
from streetart.client.storage import CAPTURES_KEY, MODE_KEY, PLAYER_KEY
from streetart.config import SCAN_COOLDOWN_SECONDS
from streetart.engine.reducer import JOIN_TEAM_FIRST


@pytest.fixture
def offline(catalog, storage, clock):
    with GameSession(catalog, storage, clock=clock) as session:
        yield session


@pytest.fixture
def online(catalog, storage, store, clock):
    with GameSession(catalog, storage, store=store, clock=clock) as session:
        yield session


class TestLifecycle:
    def test_state_requires_start(self, catalog, storage) -> None:
        session = GameSession(catalog, storage)
        with pytest.raises(RuntimeError):
            session.state

    def test_close_persists_and_restart_restores(self, catalog, storage, clock) -> None:
        session = GameSession(catalog, storage, clock=clock).start()
        session.set_name("Tester")
        session.join_team("red")
        session.capture("art-01")
        player_id = session.player.id
        session.close()

        assert storage.get(PLAYER_KEY)["id"] == player_id
        assert storage.get(CAPTURES_KEY) == {"art-01": "red"}

        with GameSession(catalog, storage, clock=clock) as restored:
            assert restored.player.id == player_id
            assert restored.player.name == "Tester"
            assert restored.player.score == 125
            assert restored.art_points["art-01"].captured_by == "red"
            assert "first_blood" in restored.state.unlocked_achievements

    def test_close_unsubscribes_from_store(self, catalog, storage, store, clock) -> None:
        session = GameSession(catalog, storage, store=store, clock=clock).start()
        assert store.listener_count(CAPTURES) == 1
        session.close()
        assert store.listener_count(CAPTURES) == 0


class TestOffline:
    def test_capture_requires_team(self, offline) -> None:
        result = offline.capture("art-01")
        assert not result.success
        assert result.message == JOIN_TEAM_FIRST

    def test_capture_and_scores(self, offline) -> None:
        offline.join_team("blue")
        result = offline.capture("art-05")
        assert result.success
        assert result.points == 250  # large 200 + first capture 50
        assert offline.team_scores() == {"red": 0, "blue": 200}

    def test_invalid_team_raises(self, offline) -> None:
        with pytest.raises(ValueError):
            offline.join_team("green")

    def test_discover(self, offline) -> None:
        offline.set_game_mode("solo")
        result = offline.discover("art-01")
        assert result.success
        assert result.points == 0
        assert offline.discover("art-01").message == "Already discovered!"
        assert offline.storage.get(MODE_KEY) == "solo"

    def test_achievement_notification(self, offline) -> None:
        offline.join_team("red")
        offline.capture("art-01")
        kinds = [n.kind for n in offline.active_notifications()]
        assert kinds.count(KIND_ACHIEVEMENT) == 2

        first = offline.active_notifications()[0]
        assert offline.dismiss_notification(first.id)
        assert len(offline.active_notifications()) == 1

    def test_recent_captures_newest_first(self, offline, clock) -> None:
        offline.join_team("red")
        offline.capture("art-01")
        clock.advance(60)
        offline.capture("art-02")
        assert [c.art_id for c in offline.recent_captures()] == ["art-02", "art-01"]

    def test_find_nearest_art(self, offline, catalog) -> None:
        lat, lng = catalog.art["art-22"].location
        art, dist = offline.find_nearest_art(lat + 0.0005, lng)
        assert art.id == "art-22"
        assert 50 <= dist <= 60

    def test_no_cooldown_offline(self, offline) -> None:
        offline.join_team("red")
        offline.capture("art-01")
        assert offline.cooldown_remaining("art-01") == 0.0

    def test_reset_all(self, offline) -> None:
        offline.join_team("red")
        offline.capture("art-01")
        old_id = offline.player.id
        offline.reset_all()
        assert offline.player.id != old_id
        assert offline.player.team is None
        assert offline.storage.get(CAPTURES_KEY) == {}


class TestOnline:
    def test_capture_is_mirrored(self, online, store) -> None:
        online.set_name("Tester")
        online.join_team("red")
        online.capture("art-01")

        record = store.get(CAPTURES, "art-01")
        assert record["team"] == "red"
        assert record["player_id"] == online.player.id
        assert store.get(TEAMS, "red") == {"score": 125, "captures": 1}
        assert store.get(PLAYERS, online.player.id)["score"] == 125

    def test_unregistered_profile_not_mirrored(self, online, store) -> None:
        online.player.name = ""
        online.join_team("red")
        online.capture("art-01")
        assert store.get(PLAYERS, online.player.id) is None

    def test_cooldown_remaining(self, online, clock) -> None:
        online.join_team("red")
        online.capture("art-01")
        assert online.cooldown_remaining("art-01") == SCAN_COOLDOWN_SECONDS
        clock.advance(SCAN_COOLDOWN_SECONDS - 10)
        assert online.cooldown_remaining("art-01") == 10
        clock.advance(60)
        assert online.cooldown_remaining("art-01") == 0.0

    def test_remote_capture_updates_map_and_notifies(self, online, store) -> None:
        online.join_team("red")
        online.capture("art-01")
        store.set(CAPTURES, "art-01", {
            "art_id": "art-01",
            "team": "blue",
            "player_id": "rival",
            "player_name": "Rival",
            "points": 150,
            "is_recapture": True,
        })

        assert online.art_points["art-01"].captured_by == "blue"
        assert online.storage.get(CAPTURES_KEY) == {"art-01": "blue"}
        captures = [n for n in online.active_notifications() if n.kind == KIND_CAPTURE]
        assert [n.payload["player_name"] for n in captures] == ["Rival"]
        # Stolen back: allowed again
        assert online.capture("art-01").message == "Stolen from blue!"

    def test_remote_ownership_loaded_on_start(self, catalog, storage, store, clock) -> None:
        store.set(CAPTURES, "art-03", {"art_id": "art-03", "team": "blue", "player_id": "rival"})
        with GameSession(catalog, storage, store=store, clock=clock) as session:
            assert session.art_points["art-03"].captured_by == "blue"
            assert session.active_notifications() == []
