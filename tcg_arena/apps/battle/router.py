"""
router.py — Battle Room REST Endpoints
=======================================

ENDPOINTS:
----------
POST   /api/battle/rooms/                 → create room (caller takes slot-1)
GET    /api/battle/rooms/                 → joinable rooms, newest first
GET    /api/battle/rooms/{id}             → room state
POST   /api/battle/rooms/{id}/join        → take the free seat
POST   /api/battle/rooms/{id}/ready       → ready up (both ready → in_progress)
POST   /api/battle/rooms/{id}/turn        → hand the turn to the opponent
POST   /api/battle/rooms/{id}/end         → finish with a winner
POST   /api/battle/rooms/{id}/password    → check a room password

The caller is identified by the X-User-Id header. Rejected transitions
are raised as MatchError and rendered by the app-level handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from tcg_arena.apps.battle import service
from tcg_arena.apps.battle.models import Visibility
from tcg_arena.apps.battle.schema import (
    EndRequest,
    JoinRequest,
    PasswordCheckRequest,
    PasswordCheckResponse,
    RoomCreateRequest,
    RoomListResponse,
    RoomResponse,
)
from tcg_arena.core.config import get_settings
from tcg_arena.core.dependencies import get_current_user, get_engine
from tcg_arena.core.match_engine import MatchEngine

# ═══════════════════════════════════════════════════
# ROUTER SETUP
# ═══════════════════════════════════════════════════

router = APIRouter(
    prefix="/api/battle/rooms",
    tags=["battle"],
    responses={
        401: {"description": "Missing identity, not a player or wrong password"},
        404: {"description": "Room not found"},
        409: {"description": "Transition not allowed or concurrent update"},
    },
)


# ═══════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════

@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room_endpoint(
    req: RoomCreateRequest,
    user_id: str = Depends(get_current_user),
    engine: MatchEngine = Depends(get_engine),
):
    """
    Create a battle room.

    Returns:
        201: Room created (state: open)
        409: Room id already taken
        422: Private room without password, unknown rarity
    """
    match = await service.create_room(engine, user_id, req)
    return RoomResponse.from_match(match)


@router.get("/", response_model=RoomListResponse)
async def list_rooms_endpoint(
    visibility: Optional[Visibility] = Query(None),
    wager_rarity: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    offset: int = Query(0, ge=0),
    engine: MatchEngine = Depends(get_engine),
):
    """Joinable rooms (fewer than 2 players, not started), newest first."""
    limit = limit or get_settings().DEFAULT_PAGE_SIZE
    items = await service.list_rooms(engine, visibility, wager_rarity, limit, offset)
    return RoomListResponse(items=items, limit=limit, offset=offset)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room_endpoint(room_id: str, engine: MatchEngine = Depends(get_engine)):
    match = await service.get_room(engine, room_id)
    return RoomResponse.from_match(match)


@router.post("/{room_id}/join", response_model=RoomResponse)
async def join_room_endpoint(
    room_id: str,
    req: JoinRequest,
    user_id: str = Depends(get_current_user),
    engine: MatchEngine = Depends(get_engine),
):
    """
    Join a room.

    Returns:
        200: Seated (state becomes ready_pending once both seats are taken)
        401: Wrong password
        404: Room not found
        409: Room full, already started, or already seated
    """
    match = await service.join_room(engine, room_id, user_id, req)
    return RoomResponse.from_match(match)


@router.post("/{room_id}/ready", response_model=RoomResponse)
async def ready_endpoint(
    room_id: str,
    user_id: str = Depends(get_current_user),
    engine: MatchEngine = Depends(get_engine),
):
    """
    Signal readiness. The second ready starts the battle (slot-1 moves first).
    """
    match = await service.ready_up(engine, room_id, user_id)
    return RoomResponse.from_match(match)


@router.post("/{room_id}/turn", response_model=RoomResponse)
async def pass_turn_endpoint(
    room_id: str,
    user_id: str = Depends(get_current_user),
    engine: MatchEngine = Depends(get_engine),
):
    match = await service.pass_turn(engine, room_id, user_id)
    return RoomResponse.from_match(match)


@router.post("/{room_id}/end", response_model=RoomResponse)
async def end_room_endpoint(
    room_id: str,
    req: EndRequest,
    user_id: str = Depends(get_current_user),
    engine: MatchEngine = Depends(get_engine),
):
    """
    Finish the battle (players only).

    Repeating with the same winner returns the finished room; a different
    winner afterwards is rejected with 409 CONFLICT.
    """
    match = await service.end_room(engine, room_id, user_id, req)
    return RoomResponse.from_match(match)


@router.post("/{room_id}/password", response_model=PasswordCheckResponse)
async def check_password_endpoint(
    room_id: str,
    req: PasswordCheckRequest,
    engine: MatchEngine = Depends(get_engine),
):
    await service.check_password(engine, room_id, req.password)
    return PasswordCheckResponse(success=True)
