"""
FastAPI backend for Street Art CTF.
REST endpoints for accounts, sector control and art captures, plus a WebSocket
channel that broadcasts capture and sector changes to every connected client.
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from .auth import (
    check_credentials,
    create_access_token,
    get_current_player,
    get_optional_player,
    hash_password,
    verify_password,
)
from .broadcast import ConnectionManager
from .database import SessionLocal, get_db, init_db
from .documents import (
    CAPTURES,
    COOLDOWNS,
    PLAYERS,
    POINTS_META,
    SECTORS,
    TEAMS,
    DocumentStore,
    cooldown_id,
    record_capture,
)
from .models import Player

from streetart.config import DEFAULT_PLAYER_NAME, SCAN_COOLDOWN_SECONDS
from streetart.engine.actions import capture_art
from streetart.engine.definitions import Catalog, load_catalog
from streetart.engine.events import ART_CAPTURED
from streetart.engine.reducer import ALREADY_YOURS, ART_NOT_FOUND, apply_action, check_capture_allowed
from streetart.engine.state import ArtPoint, GameState, PlayerProfile
from streetart.engine.utils import build_art_points_from_records

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
LEADERBOARD_SIZE = 10

# CORS configuration for frontend
CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if o.strip()
]

# Precondition failures that map to something more specific than 400
REJECTION_STATUS = {ART_NOT_FOUND: 404, ALREADY_YOURS: 409}


# ===== Pydantic Models =====

class RegisterRequest(BaseModel):
    username: str
    password: str
    team: str | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class JoinTeamRequest(BaseModel):
    team: str


class SectorCaptureRequest(BaseModel):
    team: str


class ArtCaptureRequest(BaseModel):
    art_id: str | None = None
    target_index: int | None = None  # AR target index, used when art_id is omitted
    team: str
    player_id: str | None = None
    player_name: str | None = None
    location: list[float] | None = None  # [lat, lng]


# ===== Dependencies =====

def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager


# ===== Helper Functions =====

def _require_team(team: str | None, catalog: Catalog) -> str:
    if team not in catalog.teams:
        raise HTTPException(status_code=400, detail="Invalid team")
    return team


def user_response(player: Player, store: DocumentStore) -> dict[str, Any]:
    """Account fields plus the aggregate profile kept in the players collection."""
    profile = store.get(PLAYERS, player.id) or {}
    return {
        "id": player.id,
        "username": player.username,
        "team": player.team,
        "score": profile.get("score", 0),
        "captured_art": profile.get("captured_art", []),
    }


def team_scores(store: DocumentStore, catalog: Catalog) -> dict[str, int]:
    docs = store.list_documents(TEAMS)
    return {team: int(docs.get(team, {}).get("score", 0)) for team in catalog.teams}


def current_art_points(store: DocumentStore, catalog: Catalog) -> dict[str, ArtPoint]:
    return build_art_points_from_records(catalog, store.list_documents(CAPTURES), store.list_documents(POINTS_META))


def art_summary(art: ArtPoint, catalog: Catalog) -> dict[str, Any]:
    """Public view of a piece; exact locations are not exposed."""
    return {
        "id": art.id,
        "name": art.name,
        "sector_id": art.hood,
        "area": art.area,
        "size": art.size,
        "points": catalog.point_value(art.size),
        "status": art.status,
        "captured_by": art.captured_by,
        "captured_by_player_name": art.captured_by_player_name,
    }


def sectors(store: DocumentStore, catalog: Catalog) -> list[dict[str, Any]]:
    control = store.list_documents(SECTORS)
    counts: dict[str, int] = {}
    for art in catalog.art.values():
        counts[art.hood] = counts.get(art.hood, 0) + 1
    return [
        {
            "id": hood.id,
            "name": hood.name,
            "type": "neighborhood",
            "center": list(hood.center),
            "controlled_by": control.get(hood.id, {}).get("controlled_by"),
            "art_count": counts.get(hood.id, 0),
        }
        for hood in catalog.hoods.values()
    ]


def _capturing_profile(body: ArtCaptureRequest, account: Player | None, store: DocumentStore) -> PlayerProfile:
    """Stored aggregate profile for the signed-in or named player, else a throwaway one."""
    player_id = account.id if account is not None else body.player_id
    doc = store.get(PLAYERS, player_id) if player_id else None
    if doc:
        profile = PlayerProfile.from_dict(doc)
    else:
        profile = PlayerProfile(id=player_id or "", name=DEFAULT_PLAYER_NAME)
    profile.team = body.team
    if account is not None:
        profile.name = account.username
    elif body.player_name:
        profile.name = body.player_name
    return profile


# ===== API Endpoints =====

router = APIRouter(prefix="/api")


@router.get("/health")
def health():
    return {"status": "ok", "timestamp": time.time()}


# ----- Auth -----

@router.post("/auth/register")
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
):
    """Register with username (unique, no spaces/special), password and optionally a team."""
    check_credentials(request.username, request.password)
    if request.team is not None:
        _require_team(request.team, catalog)
    if db.query(Player).filter(Player.username == request.username).first():
        raise HTTPException(status_code=400, detail="Username already taken")
    player = Player(
        id=str(uuid.uuid4()),
        username=request.username,
        password_hash=hash_password(request.password),
        team=request.team,
    )
    db.add(player)
    db.commit()
    store.set(PLAYERS, player.id, {"id": player.id, "name": player.username, "team": player.team, "score": 0}, merge=True)
    logger.info("Registered %s (%s)", player.username, player.team or "no team")
    token = create_access_token(player)
    return {"token": token, "user": user_response(player, store)}


@router.post("/auth/login")
def login(request: LoginRequest, db: Session = Depends(get_db), store: DocumentStore = Depends(get_store)):
    player = db.query(Player).filter(Player.username == request.username).first()
    if not player or not verify_password(request.password, player.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    token = create_access_token(player)
    return {"token": token, "user": user_response(player, store)}


@router.post("/auth/join-team")
def join_team(
    request: JoinTeamRequest,
    player: Player = Depends(get_current_player),
    db: Session = Depends(get_db),
    store: DocumentStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
):
    team = _require_team(request.team, catalog)
    player.team = team
    db.commit()
    store.set(PLAYERS, player.id, {"id": player.id, "name": player.username, "team": team}, merge=True)
    return {"success": True, "team": team}


@router.get("/auth/me")
def auth_me(player: Player = Depends(get_current_player), store: DocumentStore = Depends(get_store)):
    """Current account (password not included)."""
    return user_response(player, store)


# ----- Game -----

@router.get("/game/state")
def game_state(store: DocumentStore = Depends(get_store), catalog: Catalog = Depends(get_catalog)):
    return {"sectors": sectors(store, catalog), "team_scores": team_scores(store, catalog)}


@router.get("/game/sectors")
def game_sectors(store: DocumentStore = Depends(get_store), catalog: Catalog = Depends(get_catalog)):
    return sectors(store, catalog)


@router.get("/game/scores")
def game_scores(store: DocumentStore = Depends(get_store), catalog: Catalog = Depends(get_catalog)):
    return team_scores(store, catalog)


@router.get("/game/leaderboard")
def leaderboard(store: DocumentStore = Depends(get_store), catalog: Catalog = Depends(get_catalog)):
    """Teams ranked by score, plus the top players."""
    teams_docs = store.list_documents(TEAMS)
    teams = sorted(
        (
            {
                "team": team,
                "score": int(teams_docs.get(team, {}).get("score", 0)),
                "captures": int(teams_docs.get(team, {}).get("captures", 0)),
                "color": catalog.team_color(team),
            }
            for team in catalog.teams
        ),
        key=lambda t: (-t["score"], t["team"]),
    )
    for rank, entry in enumerate(teams, start=1):
        entry["rank"] = rank

    players = sorted(
        store.list_documents(PLAYERS).values(),
        key=lambda p: (-int(p.get("score", 0)), str(p.get("name", ""))),
    )[:LEADERBOARD_SIZE]
    return {
        "teams": teams,
        "players": [
            {
                "rank": rank,
                "id": p.get("id"),
                "name": p.get("name"),
                "team": p.get("team"),
                "score": int(p.get("score", 0)),
                "captures": int(p.get("capture_count", 0)),
            }
            for rank, p in enumerate(players, start=1)
        ],
    }


def _capture_sector(sector_id: str, team: str, store: DocumentStore, catalog: Catalog) -> str | None:
    """Record sector control; returns the team that held it before."""
    if sector_id not in catalog.hoods:
        raise HTTPException(status_code=404, detail=f"Sector {sector_id} not found")
    _require_team(team, catalog)
    previous = (store.get(SECTORS, sector_id) or {}).get("controlled_by")
    store.set(SECTORS, sector_id, {"controlled_by": team, "captured_at": time.time()})
    return previous


@router.post("/game/sector/{sector_id}/capture")
async def capture_sector(
    sector_id: str,
    request: SectorCaptureRequest,
    store: DocumentStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    manager: ConnectionManager = Depends(get_manager),
):
    # Store work runs off the event loop; only the broadcast is awaited here
    previous = await run_in_threadpool(_capture_sector, sector_id, request.team, store, catalog)
    team = request.team
    await manager.broadcast("sector-update", {"sector_id": sector_id, "team": team, "previous_team": previous})
    return {"success": True, "sector_id": sector_id, "controlled_by": team, "previous_team": previous}


# ----- Art -----

@router.get("/art")
def list_art(store: DocumentStore = Depends(get_store), catalog: Catalog = Depends(get_catalog)):
    return [art_summary(a, catalog) for a in current_art_points(store, catalog).values()]


@router.get("/art/sector/{sector_id}")
def list_sector_art(sector_id: str, store: DocumentStore = Depends(get_store), catalog: Catalog = Depends(get_catalog)):
    if sector_id not in catalog.hoods:
        raise HTTPException(status_code=404, detail=f"Sector {sector_id} not found")
    return [art_summary(a, catalog) for a in current_art_points(store, catalog).values() if a.hood == sector_id]


@router.get("/art/targets")
def art_targets(catalog: Catalog = Depends(get_catalog)):
    """AR target index -> art id, in target order."""
    return [
        {"target_index": idx, "id": art_id, "name": catalog.art[art_id].name}
        for idx, art_id in catalog.target_index.items()
    ]


def _capture_art(
    request: ArtCaptureRequest,
    account: Player | None,
    store: DocumentStore,
    catalog: Catalog,
) -> tuple[dict[str, Any], ArtPoint, PlayerProfile]:
    """
    Validate and record one art capture against the store.
    Returns the reducer's capture payload, the updated piece and the capturing profile.
    """
    team = _require_team(request.team, catalog)
    if account is not None and account.team and account.team != team:
        raise HTTPException(status_code=400, detail="Team does not match your account")
    art_id = request.art_id
    if art_id is None and request.target_index is not None:
        art_id = catalog.target_index.get(request.target_index)
    art_points = current_art_points(store, catalog)

    try:
        check_capture_allowed(art_points.get(art_id), team)
    except ValueError as e:
        raise HTTPException(status_code=REJECTION_STATUS.get(str(e), 400), detail=str(e))

    profile = _capturing_profile(request, account, store)
    now = time.time()
    if profile.id:
        cooldown = store.get(COOLDOWNS, cooldown_id(profile.id, art_id)) or {}
        scanned_at = cooldown.get("scanned_at")
        if isinstance(scanned_at, (int, float)) and now - scanned_at < SCAN_COOLDOWN_SECONDS:
            retry_after = int(SCAN_COOLDOWN_SECONDS - (now - scanned_at)) + 1
            raise HTTPException(
                status_code=429,
                detail=f"Scan cooldown active, try again in {retry_after}s",
                headers={"Retry-After": str(retry_after)},
            )

    location = tuple(request.location) if request.location and len(request.location) == 2 else None
    state = GameState(player=profile, art_points=art_points)
    try:
        new_state, events = apply_action(state, capture_art(profile.id, art_id, location), catalog, now=now)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    captured = next(e for e in events if e.type == ART_CAPTURED).payload
    record_capture(
        store,
        new_state.recent_activity[0].to_dict(),
        captured["base_points"],
        new_state.player.to_dict() if profile.id else None,
    )
    logger.info("%s captured %s for %s (+%s)", profile.name, art_id, team, captured["points"])
    return captured, new_state.art_points[art_id], new_state.player


@router.post("/art/capture")
async def capture_art_piece(
    request: ArtCaptureRequest,
    account: Player | None = Depends(get_optional_player),
    store: DocumentStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    manager: ConnectionManager = Depends(get_manager),
):
    """
    Capture a piece for a team.
    Same preconditions and scoring as the client; additionally enforces the
    per-player scan cooldown. With a bearer token the capture is credited to
    that account and the body's player fields are ignored.
    """
    captured, art, profile = await run_in_threadpool(_capture_art, request, account, store, catalog)
    team = art.captured_by
    await manager.broadcast("art-captured", {
        "art_id": art.id,
        "art_name": art.name,
        "sector_id": art.hood,
        "team": team,
        "previous_team": captured["previous_team"],
        "points": captured["points"],
        "player_id": profile.id or None,
        "player_name": profile.name,
    })
    if captured["previous_team"]:
        await manager.send_to_team(captured["previous_team"], "art-stolen", {
            "art_id": art.id,
            "art_name": art.name,
            "by_team": team,
            "player_name": profile.name,
        })
    scores = await run_in_threadpool(team_scores, store, catalog)
    return {
        "success": True,
        "message": captured["message"],
        "art": art_summary(art, catalog),
        "points": captured["points"],
        "base_points": captured["base_points"],
        "bonuses": captured["bonuses"],
        "streak": captured["streak"],
        "team_scores": scores,
    }


# ===== WebSocket =====

# Client event -> event re-broadcast to everyone
RELAYED_EVENTS = {"art-captured": "art-update", "sector-captured": "sector-update"}


async def websocket_endpoint(websocket: WebSocket):
    manager: ConnectionManager = websocket.app.state.manager
    await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"detail": "Invalid JSON"}})
                continue
            if not isinstance(message, dict):
                continue
            event = message.get("event")
            data = message.get("data") if isinstance(message.get("data"), dict) else {}
            if event == "join-team":
                team = data.get("team")
                if team in websocket.app.state.catalog.teams:
                    manager.join_team(websocket, team)
                    await websocket.send_json({"event": "team-joined", "data": {"team": team}})
            elif event in RELAYED_EVENTS:
                await manager.broadcast(RELAYED_EVENTS[event], data)
    except WebSocketDisconnect:
        manager.disconnect(websocket)


# ===== App =====

def create_app(
    session_factory: sessionmaker | None = None,
    store: DocumentStore | None = None,
    catalog: Catalog | None = None,
) -> FastAPI:
    """
    Build the API. Without a session factory the module-level database is used
    and its tables are created on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if session_factory is None:
            init_db()
        logger.info("Street Art CTF API ready (catalog %s)", app.state.catalog.id)
        yield

    app = FastAPI(
        title="Street Art CTF API",
        description="Backend API for Street Art CTF - capture street art for your team",
        version=API_VERSION,
        lifespan=lifespan,
    )
    factory = session_factory or SessionLocal
    app.state.session_factory = factory
    app.state.store = store or DocumentStore(factory)
    app.state.catalog = catalog or load_catalog()
    app.state.manager = ConnectionManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request, call_next):
        """Log method and path so 500s can be traced to the failing endpoint."""
        path = request.url.path
        try:
            response = await call_next(request)
        except Exception:
            logger.error("[500] %s %s (exception)", request.method, path)
            raise
        if response.status_code >= 500:
            logger.error("[500] %s %s", request.method, path)
        return response

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request, exc):
        """Return 500 with CORS headers so the frontend can read the error."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        origin = request.headers.get("origin")
        allow_origin = origin if origin in CORS_ORIGINS else CORS_ORIGINS[0]
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)},
            headers={
                "Access-Control-Allow-Origin": allow_origin,
                "Access-Control-Allow-Credentials": "true",
            },
        )

    @app.get("/")
    def root():
        return {"message": "Street Art CTF API", "version": API_VERSION}

    app.include_router(router)
    app.add_api_websocket_route("/ws", websocket_endpoint)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
