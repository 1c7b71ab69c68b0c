"""
Tests for the FastAPI backend.

Tests cover:
- Account registration, login and team membership
- Bearer tokens bound to the account they were issued for
- Sector control
- Art listing and capture rules (status codes, cooldown, steals)
- WebSocket relay and team rooms
"""

import asyncio
import threading

import pytest
from fastapi.testclient import TestClient

from streetart.api.broadcast import ConnectionManager
from streetart.api.documents import CAPTURES, PLAYERS, TEAMS, DocumentStore
from streetart.api.main import create_app
from streetart.api.models import Player


@pytest.fixture
def app(session_factory, store, catalog):
    return create_app(session_factory=session_factory, store=store, catalog=catalog)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register(client, username="tester", password="secret", team=None):
    body = {"username": username, "password": password}
    if team:
        body["team"] = team
    return client.post("/api/auth/register", json=body)


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def capture(client, art_id, team, **extra):
    return client.post("/api/art/capture", json={"art_id": art_id, "team": team, **extra})


# =============================================================================
# Accounts
# =============================================================================


class TestAccounts:
    def test_health(self, client) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_register_returns_token_and_user(self, client) -> None:
        response = register(client, team="red")
        assert response.status_code == 200
        data = response.json()
        assert data["token"]
        assert data["user"]["username"] == "tester"
        assert data["user"]["team"] == "red"
        assert data["user"]["score"] == 0

    def test_register_rejections(self, client) -> None:
        assert register(client).status_code == 200
        assert register(client).status_code == 400
        assert register(client, username="bad name").status_code == 400
        assert register(client, username="x").status_code == 400
        assert register(client, username="other", team="green").status_code == 400

    def test_login(self, client) -> None:
        register(client)
        ok = client.post("/api/auth/login", json={"username": "tester", "password": "secret"})
        assert ok.status_code == 200
        assert ok.json()["user"]["username"] == "tester"
        bad = client.post("/api/auth/login", json={"username": "tester", "password": "wrong"})
        assert bad.status_code == 401

    def test_me_requires_token(self, client) -> None:
        token = register(client).json()["token"]
        assert client.get("/api/auth/me").status_code == 401
        assert client.get("/api/auth/me", headers=auth_header("garbage")).status_code == 401
        me = client.get("/api/auth/me", headers=auth_header(token))
        assert me.status_code == 200
        assert "password_hash" not in me.json()

    def test_join_team(self, client) -> None:
        token = register(client).json()["token"]
        response = client.post("/api/auth/join-team", json={"team": "blue"}, headers=auth_header(token))
        assert response.json() == {"success": True, "team": "blue"}
        assert client.get("/api/auth/me", headers=auth_header(token)).json()["team"] == "blue"
        bad = client.post("/api/auth/join-team", json={"team": "green"}, headers=auth_header(token))
        assert bad.status_code == 400

    def test_register_requires_password(self, client) -> None:
        response = register(client, password="")
        assert response.status_code == 400
        assert response.json()["detail"] == "Username and password required"

    @pytest.mark.parametrize("change", ["rename", "delete"])
    def test_token_for_changed_account_rejected(self, client, session_factory, change) -> None:
        token = register(client).json()["token"]
        with session_factory() as db:
            player = db.query(Player).filter(Player.username == "tester").one()
            if change == "rename":
                player.username = "someone_else"
            else:
                db.delete(player)
            db.commit()
        response = client.get("/api/auth/me", headers=auth_header(token))
        assert response.status_code == 401
        assert response.json()["detail"] == "Player not found"


# =============================================================================
# Sectors
# =============================================================================


class TestSectors:
    def test_sectors_are_catalog_hoods(self, client, catalog) -> None:
        sectors = client.get("/api/game/sectors").json()
        assert {s["id"] for s in sectors} == set(catalog.hoods)
        assert all(s["controlled_by"] is None for s in sectors)

    def test_sector_capture(self, client) -> None:
        response = client.post("/api/game/sector/vysocany/capture", json={"team": "red"})
        assert response.json()["controlled_by"] == "red"
        again = client.post("/api/game/sector/vysocany/capture", json={"team": "blue"}).json()
        assert again["previous_team"] == "red"
        state = client.get("/api/game/state").json()
        control = {s["id"]: s["controlled_by"] for s in state["sectors"]}
        assert control["vysocany"] == "blue"

    def test_unknown_sector(self, client) -> None:
        assert client.post("/api/game/sector/nowhere/capture", json={"team": "red"}).status_code == 404


# =============================================================================
# Art
# =============================================================================


class TestArt:
    def test_list_hides_locations(self, client, catalog) -> None:
        art = client.get("/api/art").json()
        assert len(art) == len(catalog.art)
        assert all("location" not in a for a in art)

    def test_sector_art(self, client) -> None:
        art = client.get("/api/art/sector/podebrady").json()
        assert art and all(a["sector_id"] == "podebrady" for a in art)
        assert client.get("/api/art/sector/nowhere").status_code == 404

    def test_targets_in_catalog_order(self, client) -> None:
        targets = client.get("/api/art/targets").json()
        assert targets[0] == {"target_index": 0, "id": "art-01", "name": "Kolbenova 1"}

    def test_capture(self, client) -> None:
        response = capture(client, "art-01", "red")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Captured!"
        assert data["points"] == 125
        assert data["base_points"] == 100
        assert data["team_scores"] == {"red": 125, "blue": 0}
        assert data["art"]["captured_by"] == "red"

    def test_capture_by_target_index(self, client) -> None:
        response = client.post("/api/art/capture", json={"target_index": 4, "team": "blue"})
        assert response.status_code == 200
        assert response.json()["art"]["id"] == "art-05"

    def test_rejections(self, client) -> None:
        capture(client, "art-01", "red")
        assert capture(client, "art-01", "red").status_code == 409
        assert capture(client, "art-10", "red").status_code == 400
        assert capture(client, "art-999", "red").status_code == 404
        assert capture(client, "art-02", "green").status_code == 400

    def test_steal_moves_base_points(self, client, store) -> None:
        capture(client, "art-01", "red")
        response = capture(client, "art-01", "blue")
        data = response.json()
        assert data["message"] == "Stolen from red!"
        assert data["points"] == 150
        assert data["team_scores"] == {"red": 25, "blue": 150}
        assert store.get(TEAMS, "red")["captures"] == 1

    def test_scan_cooldown(self, client) -> None:
        assert capture(client, "art-01", "red", player_id="p9").status_code == 200
        assert capture(client, "art-01", "blue", player_id="p8").status_code == 200
        response = capture(client, "art-01", "red", player_id="p9")
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0

    def test_registered_player_aggregate(self, client) -> None:
        registered = register(client, team="red").json()
        player_id = registered["user"]["id"]
        capture(client, "art-05", "red", player_id=player_id, player_name="tester")

        me = client.get("/api/auth/me", headers=auth_header(registered["token"])).json()
        assert me["score"] == 250
        assert me["captured_art"] == ["art-05"]

        board = client.get("/api/game/leaderboard").json()
        assert board["teams"][0]["team"] == "red"
        assert board["teams"][0]["rank"] == 1
        assert board["players"][0]["id"] == player_id
        assert board["players"][0]["captures"] == 1

    def test_capture_with_token_credits_account(self, client, store) -> None:
        registered = register(client, team="red").json()
        headers = auth_header(registered["token"])
        response = client.post(
            "/api/art/capture",
            json={"art_id": "art-05", "team": "red", "player_id": "spoofed", "player_name": "Spoof"},
            headers=headers,
        )
        assert response.status_code == 200
        me = client.get("/api/auth/me", headers=headers).json()
        assert me["score"] == 250
        assert me["captured_art"] == ["art-05"]
        assert store.get(PLAYERS, "spoofed") is None
        assert store.get(CAPTURES, "art-05")["player_name"] == "tester"

    def test_capture_team_must_match_account(self, client) -> None:
        token = register(client, team="red").json()["token"]
        response = client.post("/api/art/capture", json={"art_id": "art-01", "team": "blue"}, headers=auth_header(token))
        assert response.status_code == 400
        assert response.json()["detail"] == "Team does not match your account"

    def test_capture_with_invalid_token(self, client) -> None:
        response = client.post("/api/art/capture", json={"art_id": "art-01", "team": "red"}, headers=auth_header("garbage"))
        assert response.status_code == 401


# =============================================================================
# WebSocket
# =============================================================================


class TestWebSocket:
    def test_join_team_and_relay(self, client) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "join-team", "data": {"team": "red"}})
            assert ws.receive_json() == {"event": "team-joined", "data": {"team": "red"}}

            ws.send_json({"event": "art-captured", "data": {"art_id": "art-01", "team": "red"}})
            assert ws.receive_json() == {"event": "art-update", "data": {"art_id": "art-01", "team": "red"}}

            ws.send_text("{not json")
            assert ws.receive_json()["event"] == "error"


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


def test_team_rooms_and_dead_sockets() -> None:
    manager = ConnectionManager()
    red, blue, dead = FakeSocket(), FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        for ws in (red, blue, dead):
            await manager.connect(ws)
        manager.join_team(red, "red")
        manager.join_team(blue, "blue")
        await manager.send_to_team("red", "art-stolen", {"art_id": "art-01"})
        await manager.broadcast("art-captured", {"art_id": "art-02"})

    asyncio.run(scenario())
    assert [m["event"] for m in red.sent] == ["art-stolen", "art-captured"]
    assert [m["event"] for m in blue.sent] == ["art-captured"]
    assert dead not in manager.active


class ThreadRecordingStore(DocumentStore):
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.write_threads = set()

    def set(self, collection, doc_id, data, merge=False):
        self.write_threads.add(threading.get_ident())
        return super().set(collection, doc_id, data, merge=merge)


class ThreadRecordingManager(ConnectionManager):
    def __init__(self):
        super().__init__()
        self.broadcast_threads = set()

    async def broadcast(self, event, data):
        self.broadcast_threads.add(threading.get_ident())
        await super().broadcast(event, data)


def test_capture_writes_run_off_the_event_loop(session_factory, catalog) -> None:
    store = ThreadRecordingStore(session_factory)
    app = create_app(session_factory=session_factory, store=store, catalog=catalog)
    with TestClient(app) as client:
        app.state.manager = ThreadRecordingManager()
        assert capture(client, "art-01", "red").status_code == 200
        assert client.post("/api/game/sector/vysocany/capture", json={"team": "red"}).status_code == 200

    loop_threads = app.state.manager.broadcast_threads
    assert len(loop_threads) == 1
    assert store.write_threads
    assert not store.write_threads & loop_threads
