"""
WebSocket connection manager.
Every connection receives global broadcasts; connections that sent join-team
also receive messages addressed to that team's room.
"""

import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active: list[WebSocket] = []
        self.teams: dict[WebSocket, str] = {}

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active.append(websocket)
        logger.info("WebSocket connected (%d active)", len(self.active))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.active:
            self.active.remove(websocket)
        self.teams.pop(websocket, None)
        logger.info("WebSocket disconnected (%d active)", len(self.active))

    def join_team(self, websocket: WebSocket, team: str) -> None:
        self.teams[websocket] = team

    def team_members(self, team: str) -> list[WebSocket]:
        return [ws for ws, t in self.teams.items() if t == team]

    async def broadcast(self, event: str, data: dict[str, Any]) -> None:
        await self._send_all(list(self.active), event, data)

    async def send_to_team(self, team: str, event: str, data: dict[str, Any]) -> None:
        await self._send_all(self.team_members(team), event, data)

    async def _send_all(self, targets: list[WebSocket], event: str, data: dict[str, Any]) -> None:
        message = {"event": event, "data": data}
        for websocket in targets:
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError):
                # Closed between receive loops; drop it
                logger.warning("Dropping dead WebSocket while sending %s", event)
                self.disconnect(websocket)
