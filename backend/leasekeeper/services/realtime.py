"""WebSocket connection registry for socket-push notifications."""

import logging
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Open sockets per user. One instance per process, kept on ``app.state``."""

    def __init__(self):
        self.active_connections: dict[UUID, list[WebSocket]] = {}

    async def connect(self, user_id: UUID, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

    async def disconnect(self, user_id: UUID, websocket: WebSocket):
        connections = self.active_connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(user_id, None)

    def is_connected(self, user_id: UUID) -> bool:
        return bool(self.active_connections.get(user_id))

    async def send_to_user(self, user_id: UUID, payload: dict) -> int:
        """Send to every socket of the user; drop sockets that fail. Returns deliveries."""
        delivered = 0
        for ws in list(self.active_connections.get(user_id, [])):
            try:
                await ws.send_json(payload)
                delivered += 1
            except (RuntimeError, ConnectionError) as e:
                logger.info(f"[SOCKET] Dropping dead socket for user {user_id}: {e}")
                await self.disconnect(user_id, ws)
        return delivered
