"""
service.py — WebSocket Connection Manager
==========================================
Subscribers per battle room. Anyone may watch a room; the manager only
fans out the room's state, it never changes it.

    await manager.connect("room1", "alice", websocket)
    await manager.broadcast("room1", {"event": "room_updated", "data": {...}})
"""

import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """match_id → {user_id → WebSocket}. A reconnect replaces the older socket."""

    def __init__(self):
        self.rooms: dict[str, dict[str, WebSocket]] = {}

    async def connect(self, match_id: str, user_id: str, websocket: WebSocket):
        await websocket.accept()
        self.rooms.setdefault(match_id, {})[user_id] = websocket
        logger.info(f"✅ {user_id} watching room {match_id}")

        await self.broadcast(
            match_id,
            {"event": "player_connected", "data": {"user_id": user_id, "active_users": self.get_active_users(match_id)}},
            exclude={user_id},
        )

    def disconnect(self, match_id: str, user_id: str):
        subscribers = self.rooms.get(match_id)
        if subscribers is None:
            return
        if subscribers.pop(user_id, None) is not None:
            logger.info(f"❌ {user_id} stopped watching room {match_id}")
        if not subscribers:
            del self.rooms[match_id]

    async def broadcast(self, match_id: str, message: dict, exclude: set[str] = frozenset()):
        """Send to every subscriber of a room. Rooms nobody watches are skipped."""
        dead = []
        for user_id, websocket in list(self.rooms.get(match_id, {}).items()):
            if user_id in exclude:
                continue
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"⚠️  Dropping {user_id} from room {match_id}: {e}")
                dead.append(user_id)
        for user_id in dead:
            self.disconnect(match_id, user_id)

    def get_active_users(self, match_id: str) -> list[str]:
        return list(self.rooms.get(match_id, {}))


manager = ConnectionManager()
