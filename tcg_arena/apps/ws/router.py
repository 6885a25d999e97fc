"""
router.py — Battle Room WebSocket
==================================

ENDPOINT:
---------
WS /ws/battle/{match_id}/{user_id}

FLOW:
-----
1. Client connects; unknown rooms are refused (close code 4404)
2. Server sends "connected" and the current "room_state"
3. Every transition made over REST is pushed as "room_updated"
4. Client may send "heartbeat" (→ "pong") or "request_state"
"""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from tcg_arena.apps.battle.schema import RoomResponse
from tcg_arena.apps.ws.schema import ClientEvent, ServerEvent, error_event
from tcg_arena.apps.ws.service import manager
from tcg_arena.core.dependencies import get_engine
from tcg_arena.core.errors import NotFound
from tcg_arena.core.match_engine import MatchEngine

logger = logging.getLogger(__name__)

ROOM_NOT_FOUND_CLOSE_CODE = 4404

router = APIRouter(tags=["websocket"])


async def _room_state(engine: MatchEngine, match_id: str) -> dict:
    match = await run_in_threadpool(engine.get_match, match_id)
    return ServerEvent(
        event="room_state",
        data=RoomResponse.from_match(match).model_dump(mode="json"),
    ).model_dump()


@router.websocket("/ws/battle/{match_id}/{user_id}")
async def battle_room_socket(
    websocket: WebSocket,
    match_id: str,
    user_id: str,
    engine: MatchEngine = Depends(get_engine),
):
    logger.info(f"🔌 WebSocket connection attempt: {match_id}/{user_id}")

    # ═══ 1. ROOM CHECK + ACCEPT ═══
    try:
        state = await _room_state(engine, match_id)
    except NotFound:
        logger.warning(f"⚠️  WebSocket refused, unknown room {match_id}")
        await websocket.close(code=ROOM_NOT_FOUND_CLOSE_CODE)
        return

    await manager.connect(match_id, user_id, websocket)
    await websocket.send_json(
        ServerEvent(
            event="connected",
            data={"match_id": match_id, "active_users": manager.get_active_users(match_id)},
        ).model_dump()
    )
    await websocket.send_json(state)

    # ═══ 2. MESSAGE LOOP ═══
    try:
        while True:
            raw = await websocket.receive_json()
            try:
                message = ClientEvent.model_validate(raw)
            except ValidationError:
                await websocket.send_json(
                    error_event("invalid_format", "Message must be JSON with an 'event' field")
                )
                continue

            if message.event == "heartbeat":
                await websocket.send_json(
                    ServerEvent(event="pong", data={"timestamp": message.data.get("timestamp")}).model_dump()
                )
            elif message.event == "request_state":
                try:
                    await websocket.send_json(await _room_state(engine, match_id))
                except NotFound:
                    await websocket.send_json(error_event("not_found", f"Room not found: {match_id}"))
            else:
                await websocket.send_json(error_event("unknown_event", f"Unknown event type: {message.event}"))
                logger.warning(f"⚠️  Unknown event from {user_id}: {message.event}")

    except WebSocketDisconnect:
        logger.info(f"🔌 WebSocket disconnected: {match_id}/{user_id}")
        manager.disconnect(match_id, user_id)
        await manager.broadcast(
            match_id,
            {
                "event": "player_disconnected",
                "data": {"user_id": user_id, "active_users": manager.get_active_users(match_id)},
            },
        )

    except Exception as e:
        logger.error(f"❌ WebSocket error on {match_id}/{user_id}: {e}")
        manager.disconnect(match_id, user_id)
