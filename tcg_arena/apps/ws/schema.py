"""
schema.py — WebSocket Event Schemas
====================================
Every message in both directions has the same envelope:

{
    "event": "event_name",
    "data": {...}
}

Server → Client: connected, room_state, room_updated, player_connected,
                 player_disconnected, pong, error
Client → Server: heartbeat, request_state
"""

from typing import Any

from pydantic import BaseModel, Field


class ServerEvent(BaseModel):
    event: str = Field(description="Event type")
    data: dict = Field(default_factory=dict, description="Event payload")


class ClientEvent(BaseModel):
    """Message sent by a subscriber."""
    event: str = Field(..., min_length=1, description="heartbeat | request_state")
    data: dict[str, Any] = Field(default_factory=dict)


def error_event(code: str, message: str) -> dict:
    return ServerEvent(event="error", data={"code": code, "message": message}).model_dump()
